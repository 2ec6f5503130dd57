from __future__ import annotations

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic_core import from_json

from .errors import SchemaViolationError

T = TypeVar("T", bound=BaseModel)


def _strip_fence(text: str) -> str:
    """Drop a markdown code fence some models wrap around JSON."""
    stripped = text.lstrip()
    if not stripped.startswith("```"):
        return text
    _, _, body = stripped.partition("\n")
    body = body.rstrip()
    if body.endswith("```"):
        body = body[:-3]
    return body


class PartialObjectStream(Generic[T]):
    """Turns streamed JSON text into progressively more complete objects.

    `feed` returns the newest partial object whenever the parsed document
    changed, `finish` validates the full text against the schema.
    """

    def __init__(self, schema: Type[T]):
        self.schema = schema
        self._buffer: list = []
        self._last: Optional[Dict[str, Any]] = None

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    def feed(self, delta: str) -> Optional[Dict[str, Any]]:
        if not delta:
            return None
        self._buffer.append(delta)
        try:
            parsed = from_json(_strip_fence(self.text), allow_partial="trailing-strings")
        except ValueError:
            return None
        if not isinstance(parsed, dict) or parsed == self._last:
            return None
        self._last = parsed
        return parsed

    def finish(self) -> T:
        text = _strip_fence(self.text)
        if not text.strip():
            raise SchemaViolationError("Model returned no output")
        try:
            return self.schema.model_validate_json(text)
        except ValidationError as e:
            raise SchemaViolationError(f"Output does not match {self.schema.__name__}: {e}") from e
