"""
Fragment generator: the request pipeline.

    parse -> admission -> sanitize -> resolve client -> stream fragments

`stream()` does every check up front and waits for the first partial
fragment before returning, so anything that fails before output starts is
raised as a GenerationError with its proper status. Failures after that end
the stream with a single error event.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import ValidationError

from fragments.ratelimit import RateLimiter, parse_duration
from fragments.registry.models import ModelRegistry
from fragments.registry.templates import TemplateRegistry
from fragments.sanitize import sanitize, sanitize_messages
from fragments.settings import Settings

from .clients.base import ModelClient
from .errors import (
    GenerationError,
    GenerationTimeoutError,
    MalformedRequestError,
    RateLimitedError,
    UnexpectedError,
    classify_provider_error,
)
from .factory import ModelClientFactory
from .partial import PartialObjectStream
from .prompts import to_prompt
from .types import ChatMessage, ChatRequest, Fragment, GenerationParams

logger = logging.getLogger(__name__)

Event = Dict[str, Any]


class FragmentGenerator:
    def __init__(
        self,
        settings: Settings,
        limiter: RateLimiter,
        client_factory: ModelClientFactory,
        models: ModelRegistry,
        templates: TemplateRegistry,
    ):
        self.settings = settings
        self.limiter = limiter
        self.client_factory = client_factory
        self.models = models
        self.templates = templates
        self.max_requests = settings.RATE_LIMIT_MAX_REQUESTS
        self.window_ms = parse_duration(settings.RATE_LIMIT_WINDOW)
        self.max_duration = settings.MAX_DURATION

    # -------------------------
    # Pipeline steps
    # -------------------------
    def parse(self, body: bytes) -> ChatRequest:
        """Validate the raw body; registry entries override the sent descriptor."""
        try:
            req = ChatRequest.model_validate_json(body)
        except ValidationError as e:
            raise MalformedRequestError(f"{e.error_count()} validation error(s)") from e
        if req.template not in self.templates:
            raise MalformedRequestError(f"Unknown template: {req.template}")
        registered = self.models.get(req.model.id)
        if registered is not None:
            req = req.model_copy(update={"model": registered})
        return req

    async def admit(self, req: ChatRequest, identity: Optional[str]) -> None:
        """Rate-limit callers that have no key of their own for this provider."""
        if self.client_factory.has_credential(req.model.provider_id, req.config):
            logger.debug("Admission skipped: credential available for %s", req.model.provider_id.value)
            return
        decision = await self.limiter.check(identity, self.max_requests, self.window_ms)
        if not decision.allowed:
            logger.info("Rate limit reached: limit=%d, reset=%d", decision.amount, decision.reset)
            raise RateLimitedError(headers=decision.headers())

    def prepare(self, req: ChatRequest):
        system = sanitize(to_prompt(req.template, self.templates))
        messages = sanitize_messages(req.messages)
        return system, messages

    # -------------------------
    # Entry point
    # -------------------------
    async def stream(self, body: bytes, identity: Optional[str] = None) -> AsyncIterator[Event]:
        """Run the pipeline and return an iterator of fragment events.

        Raises:
            GenerationError for anything that fails before the first event.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration

        req = self.parse(body)
        logger.info(
            "Chat request: model=%s, provider=%s, template=%s, messages=%d, user=%s, team=%s",
            req.model.id, req.model.provider_id.value, req.template, len(req.messages),
            req.user_id or "-", req.team_id or "-",
        )
        await self.admit(req, identity)
        system, messages = self.prepare(req)
        client = self.client_factory.resolve(req.model, req.config)
        params = GenerationParams.from_config(req.config)

        events = self.generate(client, system, messages, params)
        try:
            first = await asyncio.wait_for(events.__anext__(), timeout=max(0.0, deadline - loop.time()))
        except asyncio.TimeoutError:
            await events.aclose()
            raise self._fail(GenerationTimeoutError(), client)
        except StopAsyncIteration:
            raise self._fail(UnexpectedError("stream ended without output"), client)
        except Exception as e:
            await events.aclose()
            raise self._fail(e, client) from e

        return self._forward(first, events, deadline, client)

    async def generate(
        self,
        client: ModelClient,
        system: str,
        messages: List[ChatMessage],
        params: GenerationParams,
    ) -> AsyncIterator[Event]:
        """Partial fragments as they are decoded, then the validated result."""
        started = time.time()
        partials = PartialObjectStream(Fragment)
        async with aclosing(client.stream_text(system, messages, Fragment, params)) as deltas:
            async for delta in deltas:
                partial = partials.feed(delta)
                if partial is not None:
                    yield partial
        fragment = partials.finish()
        logger.info(
            "Generation complete: provider=%s, model=%s, latency=%dms, chars=%d",
            client.provider, client.model, int((time.time() - started) * 1000), len(partials.text),
        )
        yield fragment.model_dump()

    async def _forward(
        self,
        first: Event,
        events: AsyncIterator[Event],
        deadline: float,
        client: ModelClient,
    ) -> AsyncIterator[Event]:
        loop = asyncio.get_running_loop()
        try:
            yield first
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise GenerationTimeoutError()
                try:
                    event = await asyncio.wait_for(events.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    break
                yield event
        except asyncio.TimeoutError:
            yield self._fail(GenerationTimeoutError(), client).to_event()
        except Exception as e:
            yield self._fail(e, client).to_event()
        finally:
            await events.aclose()

    def _fail(self, exc: BaseException, client: ModelClient) -> GenerationError:
        err = classify_provider_error(exc)
        if isinstance(err, UnexpectedError):
            logger.error(
                "Generation failed: provider=%s, model=%s: %s",
                client.provider, client.model, exc, exc_info=exc,
            )
        else:
            logger.warning(
                "Generation failed: provider=%s, model=%s, status=%d: %s",
                client.provider, client.model, err.status_code, exc,
            )
        return err
