# Shared test doubles: stub model clients, a counting limiter, a fake clock.

import asyncio
import json
from typing import List, Optional

from fragments.generate import FragmentGenerator, ModelClientFactory
from fragments.generate.clients.base import ModelClient
from fragments.ratelimit import MemoryCounterStore, RateLimiter
from fragments.registry import ModelRegistry, TemplateRegistry
from fragments.settings import Settings

PROVIDER_ENV = [
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_AI_API_KEY",
    "GROQ_API_KEY",
    "FIREWORKS_API_KEY",
    "TOGETHER_API_KEY",
    "MISTRAL_API_KEY",
    "XAI_API_KEY",
    "KV_REST_API_URL",
    "KV_REST_API_TOKEN",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_WINDOW",
    "RATE_LIMIT_FAIL_OPEN",
    "ALLOW_CALLER_API_KEYS",
    "HIDE_LOCAL_MODELS",
    "HIDE_DEV_MODELS",
    "MAX_DURATION",
]

FRAGMENT = {
    "commentary": "A small calculator in Python.",
    "template": "code-interpreter-v1",
    "title": "Calculator",
    "description": "Adds two numbers.",
    "additional_dependencies": [],
    "has_additional_dependencies": False,
    "install_dependencies_command": "",
    "port": None,
    "file_path": "script.py",
    "code": "print(1 + 2)",
}


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def chunked(text: str, size: int = 24) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def chat_body(
    content="Build a calculator",
    model_id: str = "gpt-4o",
    provider_id: str = "openai",
    template: str = "auto",
    config: Optional[dict] = None,
    **extra,
) -> bytes:
    body = {
        "messages": [{"role": "user", "content": content}],
        "template": template,
        "model": {"id": model_id, "providerId": provider_id, "provider": "", "name": ""},
        "config": config or {},
    }
    body.update(extra)
    return json.dumps(body).encode("utf-8")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubClient(ModelClient):
    """Streams canned chunks; optionally raises before or part way through."""

    def __init__(self, chunks=None, error=None, fail_after=None, delay=0.0):
        self.provider = "stub"
        self.model = "stub-model"
        self.chunks = chunks if chunks is not None else chunked(json.dumps(FRAGMENT))
        self.error = error
        self.fail_after = fail_after
        self.delay = delay
        self.calls = 0
        self.closed = False
        self.system = None
        self.messages = None

    async def stream_text(self, system, messages, schema, params):
        self.calls += 1
        self.system = system
        self.messages = messages
        try:
            if self.error is not None and self.fail_after is None:
                raise self.error
            for i, chunk in enumerate(self.chunks):
                if self.error is not None and i == self.fail_after:
                    raise self.error
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield chunk
        finally:
            self.closed = True


class StubFactory(ModelClientFactory):
    """Real credential rules, stubbed client construction."""

    def __init__(self, settings: Settings, client: ModelClient):
        super().__init__(settings)
        self.client = client
        self.resolved = []

    def resolve(self, descriptor, config):
        super().resolve(descriptor, config)  # credential rules still apply
        self.resolved.append((descriptor, config))
        return self.client


class CountingLimiter(RateLimiter):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def check(self, identity, max_requests, window_ms):
        self.calls += 1
        return await super().check(identity, max_requests, window_ms)


def make_generator(settings: Settings, client: ModelClient, clock=None):
    clock = clock or FakeClock()
    limiter = CountingLimiter(MemoryCounterStore(clock=clock), clock=clock)
    return FragmentGenerator(
        settings=settings,
        limiter=limiter,
        client_factory=StubFactory(settings, client),
        models=ModelRegistry.from_yaml(),
        templates=TemplateRegistry.from_yaml(),
    )


async def collect(events) -> list:
    return [e async for e in events]
