"""
Abstract model client.

A client is bound to one provider, model and endpoint when the factory builds
it, and is used for a single streamed generation. Implementations yield raw
text deltas of the JSON document the model writes; turning those into partial
fragments is the generator's job.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Type

from pydantic import BaseModel

from ..types import ChatMessage, GenerationParams

# how a provider is asked for structured output
JSON_SCHEMA = "json_schema"   # native schema-constrained decoding
JSON_OBJECT = "json_object"   # JSON mode + schema described in the prompt
PROMPT_ONLY = "prompt"        # schema described in the prompt only


def schema_instructions(schema: Type[BaseModel]) -> str:
    """System prompt suffix for providers without native schema support."""
    return (
        "\n\nRespond with a single JSON object and nothing else. "
        "It must match this JSON schema:\n"
        + json.dumps(schema.model_json_schema(), indent=2)
    )


class ModelClient(ABC):
    provider: str
    model: str
    base_url: Optional[str] = None

    @abstractmethod
    def stream_text(
        self,
        system: str,
        messages: List[ChatMessage],
        schema: Type[BaseModel],
        params: GenerationParams,
    ) -> AsyncIterator[str]:
        """Stream the model's JSON output as text deltas.

        Raises:
            ProviderError on any provider or transport failure.
        """
