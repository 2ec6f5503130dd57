# Generator package

# Request pipeline, model clients and the fragment output schema.

from .errors import GenerationError, ProviderError, classify_provider_error
from .factory import ModelClientFactory
from .generator import FragmentGenerator
from .types import ChatMessage, ChatRequest, Fragment, GenerationParams
from .clients.echo_dev_client import EchoDevClient

__all__ = [
    "GenerationError",
    "ProviderError",
    "classify_provider_error",
    "ModelClientFactory",
    "FragmentGenerator",
    "ChatMessage",
    "ChatRequest",
    "Fragment",
    "GenerationParams",
    "EchoDevClient",
]
