from .base import JSON_OBJECT, JSON_SCHEMA, PROMPT_ONLY, ModelClient
from .echo_dev_client import EchoDevClient
from .ollama_client import OllamaClient
from .openai_client import OpenAIClient

__all__ = [
    "JSON_OBJECT",
    "JSON_SCHEMA",
    "PROMPT_ONLY",
    "ModelClient",
    "EchoDevClient",
    "OllamaClient",
    "OpenAIClient",
]
