"""
Error taxonomy for the generation pipeline.

Everything that can stop a request is a GenerationError carrying the status
code, the client-facing message and any extra headers. Provider failures are
first captured as ProviderError by the clients, then mapped onto this small,
stable set by `classify_provider_error`; raw provider text never reaches the
caller.
"""
from __future__ import annotations

from typing import Dict, Optional


class GenerationError(Exception):
    status_code: int = 500
    message: str = "An unexpected error has occurred. Please try again later."

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(detail or self.message)
        self.detail = detail
        self.headers = headers or {}

    def to_event(self) -> dict:
        return {"error": {"status": self.status_code, "message": self.message}}


class MalformedRequestError(GenerationError):
    status_code = 400
    message = "Invalid request."


class UnsupportedProviderError(MalformedRequestError):
    pass


class RateLimitedError(GenerationError):
    status_code = 429
    message = "You have reached your request limit."


class ProviderRateLimitedError(GenerationError):
    status_code = 429
    message = "The provider is currently unavailable due to request limit. Try using your own API key."


class ProviderOverloadedError(GenerationError):
    status_code = 529
    message = "The provider is currently unavailable. Please try again later."


class AccessDeniedError(GenerationError):
    status_code = 403
    message = "Access denied. Please make sure your API key is valid."


class MissingCredentialError(AccessDeniedError):
    pass


class GenerationTimeoutError(GenerationError):
    status_code = 504
    message = "The request took too long to complete. Please try again later."


class UnexpectedError(GenerationError):
    pass


class ProviderError(Exception):
    """Raw failure reported by a provider or its transport."""

    def __init__(self, status_code: Optional[int], message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        return f"{self.provider or 'provider'} error (status={self.status_code}): {self.message}"


class SchemaViolationError(Exception):
    """The model's output did not match the fragment schema."""


OVERLOAD_STATUSES = {503, 529}
ACCESS_DENIED_STATUSES = {401, 403}
_OVERLOAD_HINTS = ("overload", "capacity", "unavailable")


def classify_provider_error(exc: BaseException) -> GenerationError:
    """Map any failure raised while generating onto the client-facing taxonomy."""
    if isinstance(exc, GenerationError):
        return exc
    if not isinstance(exc, ProviderError):
        return UnexpectedError(str(exc))

    status = exc.status_code
    text = (exc.message or "").lower()

    if status in OVERLOAD_STATUSES or (status == 429 and any(h in text for h in _OVERLOAD_HINTS)):
        return ProviderOverloadedError(str(exc))
    if status == 429:
        return ProviderRateLimitedError(str(exc))
    if status in ACCESS_DENIED_STATUSES:
        return AccessDeniedError(str(exc))
    # Only status-less failures are matched on "limit"; a 4xx such as a
    # context length limit stays unexpected instead of becoming 429.
    if status is None and "limit" in text:
        return ProviderRateLimitedError(str(exc))
    return UnexpectedError(str(exc))
