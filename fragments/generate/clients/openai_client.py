# Client for OpenAI Chat Completions and the OpenAI-compatible endpoints of
# the other hosted providers (Anthropic, Google AI, Groq, Fireworks, Together,
# Mistral, xAI). Streams the JSON document as it is decoded.

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Type

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from ..errors import ProviderError
from ..types import ChatMessage, GenerationParams
from .base import JSON_OBJECT, JSON_SCHEMA, ModelClient, schema_instructions

logger = logging.getLogger(__name__)


def to_openai_messages(system: str, messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    formatted: List[Dict[str, Any]] = [{"role": "system", "content": system}]
    for m in messages:
        if isinstance(m.content, str):
            formatted.append({"role": m.role.value, "content": m.content})
            continue
        parts = []
        for p in m.content:
            if p.type == "text":
                parts.append({"type": "text", "text": p.text})
            elif p.type == "image":
                parts.append({"type": "image_url", "image_url": {"url": _image_url(p.image, p.mime_type)}})
            else:
                parts.append({"type": "file", "file": {"file_data": f"data:{p.mime_type};base64,{p.data}"}})
        formatted.append({"role": m.role.value, "content": parts})
    return formatted


def _image_url(image: str, mime_type: Optional[str]) -> str:
    if image.startswith(("http://", "https://", "data:")):
        return image
    return f"data:{mime_type or 'image/png'};base64,{image}"


class OpenAIClient(ModelClient):
    def __init__(
        self,
        model: str,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        provider: str = "openai",
        structured_output: str = JSON_SCHEMA,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider = provider
        self.model = model
        self.base_url = base_url
        self.structured_output = structured_output
        # retries are disabled: provider errors must surface, not be masked
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            timeout=timeout,
            http_client=http_client,
        )

    def _request(
        self,
        system: str,
        messages: List[ChatMessage],
        schema: Type[BaseModel],
        params: GenerationParams,
    ) -> Dict[str, Any]:
        if self.structured_output != JSON_SCHEMA:
            system = system + schema_instructions(schema)

        request: Dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(system, messages),
            "stream": True,
        }
        if self.structured_output == JSON_SCHEMA:
            request["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__.lower(),
                    "schema": schema.model_json_schema(),
                    "strict": True,
                },
            }
        elif self.structured_output == JSON_OBJECT:
            request["response_format"] = {"type": "json_object"}

        opts = params.as_dict()
        # top_k is not part of the Chat Completions API
        opts.pop("top_k", None)
        request.update(opts)
        return request

    async def stream_text(
        self,
        system: str,
        messages: List[ChatMessage],
        schema: Type[BaseModel],
        params: GenerationParams,
    ) -> AsyncIterator[str]:
        request = self._request(system, messages, schema, params)
        logger.debug(
            "%s request: model=%s, messages=%d, mode=%s",
            self.provider, self.model, len(messages), self.structured_output,
        )
        try:
            stream = await self.client.chat.completions.create(**request)
        except openai.APIStatusError as e:
            raise ProviderError(e.status_code, e.message, self.provider) from e
        except openai.APIError as e:
            raise ProviderError(None, str(e), self.provider) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.APIStatusError as e:
            raise ProviderError(e.status_code, e.message, self.provider) from e
        except openai.APIError as e:
            raise ProviderError(None, str(e), self.provider) from e
        finally:
            await stream.close()
