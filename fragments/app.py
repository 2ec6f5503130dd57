# ============================================================
# Fragments FastAPI App
# ------------------------------------------------------------
# This app wires everything together:
#   - Admission control (per-IP fixed window, memory or KV store)
#   - Model + template registries (YAML)
#   - Streaming fragment generation over NDJSON
# ============================================================

import json
import logging
from contextlib import aclosing, asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel

# --- Local imports ---
from fragments.generate import FragmentGenerator, GenerationError, ModelClientFactory
from fragments.ratelimit import CounterStore, KVRestCounterStore, MemoryCounterStore, RateLimiter
from fragments.registry import ModelRegistry, TemplateRegistry
from fragments.settings import Settings, get_settings

logger = logging.getLogger("fragments")

NDJSON = "application/x-ndjson"


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ------------------------------------------------------------
# 🔧 Wiring
# ------------------------------------------------------------
def build_store(settings: Settings) -> CounterStore:
    if settings.kv_configured:
        logger.info("Rate limit store: KV REST (%s)", settings.KV_REST_API_URL)
        return KVRestCounterStore(settings.KV_REST_API_URL, settings.KV_REST_API_TOKEN)
    logger.info("Rate limit store: in-memory")
    return MemoryCounterStore()


def build_generator(settings: Settings, store: Optional[CounterStore] = None) -> FragmentGenerator:
    return FragmentGenerator(
        settings=settings,
        limiter=RateLimiter(store or build_store(settings), fail_open=settings.RATE_LIMIT_FAIL_OPEN),
        client_factory=ModelClientFactory(settings),
        models=ModelRegistry.from_yaml(settings.MODELS_PATH),
        templates=TemplateRegistry.from_yaml(settings.TEMPLATES_PATH),
    )


def client_identity(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For; None puts the caller in the shared bucket."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    return first or None


async def ndjson_lines(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[bytes]:
    # closing on disconnect also closes the provider stream
    async with aclosing(events):
        async for event in events:
            yield (json.dumps(event) + "\n").encode("utf-8")


# ------------------------------------------------------------
# 📦 Pydantic models
# ------------------------------------------------------------
class ModelInfo(BaseModel):
    id: str
    providerId: str
    provider: str
    name: str
    multiModal: bool


class ModelsResponse(BaseModel):
    models: List[ModelInfo]


class TemplateInfo(BaseModel):
    id: str
    name: str
    lib: List[str]
    file: Optional[str]
    instructions: str
    port: Optional[int]


class TemplatesResponse(BaseModel):
    templates: List[TemplateInfo]


# ------------------------------------------------------------
# 🚀 FastAPI init
# ------------------------------------------------------------
def create_app(settings: Optional[Settings] = None, generator: Optional[FragmentGenerator] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)
    generator = generator or build_generator(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("%s starting up", settings.app_name)
        yield
        logger.info("%s shutting down", settings.app_name)
        await generator.limiter.store.close()

    app = FastAPI(title=f"{settings.app_name} API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.generator = generator

    @app.exception_handler(GenerationError)
    async def generation_error_handler(request: Request, exc: GenerationError):
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=exc.headers)

    # --------------------------------------------------------
    # 💬 Main chat route
    # --------------------------------------------------------
    @app.post("/api/chat")
    async def chat(request: Request):
        body = await request.body()
        events = await generator.stream(body, identity=client_identity(request))
        return StreamingResponse(ndjson_lines(events), media_type=NDJSON)

    # --------------------------------------------------------
    # 🤖 Discovery
    # --------------------------------------------------------
    @app.get("/api/models", response_model=ModelsResponse)
    def list_models():
        visible = generator.models.visible(
            hide_local=settings.HIDE_LOCAL_MODELS,
            hide_dev=settings.HIDE_DEV_MODELS,
        )
        return {"models": [m.model_dump(by_alias=True, mode="json") for m in visible]}

    @app.get("/api/templates", response_model=TemplatesResponse)
    def list_templates():
        items = [{"id": k, **t.model_dump()} for k, t in generator.templates.items()]
        return {"templates": items}

    # --------------------------------------------------------
    # 🧭 Health checks
    # --------------------------------------------------------
    @app.get("/healthz")
    def healthz():
        return {
            "ok": True,
            "env": settings.ENV,
            "debug": settings.DEBUG,
            "app": settings.app_name,
        }

    @app.get("/health")
    def health():
        return {"status": "ok", "env": settings.ENV}

    @app.get("/")
    def hello():
        return {"message": f"{settings.app_name} service running."}

    return app


app = create_app()
