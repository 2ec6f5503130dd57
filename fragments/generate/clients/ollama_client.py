# Client for Ollama local inference.
# Uses /api/chat with `format` set to the JSON schema so decoding is
# constrained to the fragment shape.

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Type

import httpx
from pydantic import BaseModel

from ..errors import ProviderError
from ..types import ChatMessage, GenerationParams
from .base import ModelClient

logger = logging.getLogger(__name__)

OLLAMA_OPTIONS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "top_k": "top_k",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
    "max_tokens": "num_predict",
}


class OllamaClient(ModelClient):
    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        timeout: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = "ollama"
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _compose_messages(self, system: str, messages: List[ChatMessage]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = [{"role": "system", "content": system}]
        for m in messages:
            entry: Dict[str, Any] = {"role": m.role.value, "content": m.text()}
            if not isinstance(m.content, str):
                images = [p.image.split(",", 1)[-1] for p in m.content if p.type == "image"]
                if images:
                    entry["images"] = images
            out.append(entry)
        return out

    async def stream_text(
        self,
        system: str,
        messages: List[ChatMessage],
        schema: Type[BaseModel],
        params: GenerationParams,
    ) -> AsyncIterator[str]:
        payload = {
            "model": self.model,
            "messages": self._compose_messages(system, messages),
            "stream": True,
            "format": schema.model_json_schema(),
            "options": {OLLAMA_OPTIONS[k]: v for k, v in params.as_dict().items()},
        }
        url = f"{self.base_url}/api/chat"
        logger.debug("ollama request: model=%s, messages=%d", self.model, len(messages))

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                async with client.stream("POST", url, json=payload) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode("utf-8", "replace")
                        raise ProviderError(resp.status_code, _error_text(body), self.provider)
                    async for line in resp.aiter_lines():
                        if not line.strip():
                            continue
                        data = json.loads(line)
                        if data.get("error"):
                            raise ProviderError(None, str(data["error"]), self.provider)
                        delta = (data.get("message") or {}).get("content", "")
                        if delta:
                            yield delta
                        if data.get("done"):
                            break
            except httpx.HTTPError as e:
                raise ProviderError(None, str(e), self.provider) from e
            except json.JSONDecodeError as e:
                raise ProviderError(None, f"Malformed stream line: {e}", self.provider) from e


def _error_text(body: str) -> str:
    try:
        return str(json.loads(body).get("error", body))
    except (ValueError, AttributeError):
        return body
