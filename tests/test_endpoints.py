import json

import pytest
from fastapi.testclient import TestClient

from fragments.app import build_generator, client_identity, create_app, ndjson_lines
from fragments.generate.errors import ProviderError
from fragments.ratelimit import MemoryCounterStore

from helpers import FRAGMENT, StubClient, chat_body, make_generator, make_settings

ECHO = {"model_id": "echo-dev", "provider_id": "echo"}


def make_client(**overrides) -> TestClient:
    return TestClient(create_app(make_settings(**overrides)))


def ndjson(r):
    return [json.loads(line) for line in r.text.splitlines() if line.strip()]


def test_root_ok():
    r = make_client().get("/")
    assert r.status_code == 200
    assert "running" in r.json()["message"]


def test_health_ok():
    client = make_client(ENV="test")
    assert client.get("/health").json() == {"status": "ok", "env": "test"}
    assert client.get("/healthz").json()["ok"] is True


def test_shutdown_closes_the_counter_store():
    class ClosingStore(MemoryCounterStore):
        closed = False

        async def close(self):
            self.closed = True

    settings = make_settings()
    store = ClosingStore()
    with TestClient(create_app(settings, build_generator(settings, store=store))) as client:
        assert client.get("/health").status_code == 200
        assert not store.closed
    assert store.closed


# ------------------------------------------------------------
# Discovery
# ------------------------------------------------------------
def test_models_respect_hide_flags():
    default = {m["providerId"] for m in make_client().get("/api/models").json()["models"]}
    assert "echo" not in default
    assert "ollama" in default

    r = make_client(HIDE_LOCAL_MODELS=True, HIDE_DEV_MODELS=False).get("/api/models")
    models = r.json()["models"]
    providers = {m["providerId"] for m in models}
    assert "ollama" not in providers
    assert "echo" in providers
    assert {"id", "providerId", "provider", "name", "multiModal"} == set(models[0])


def test_templates_listing():
    r = make_client().get("/api/templates")
    assert r.status_code == 200
    templates = {t["id"]: t for t in r.json()["templates"]}
    assert templates["streamlit-developer"]["port"] == 8501
    assert templates["code-interpreter-v1"]["port"] is None


# ------------------------------------------------------------
# Chat
# ------------------------------------------------------------
def test_chat_streams_ndjson_with_echo_model():
    client = make_client()
    r = client.post("/api/chat", content=chat_body("hello there", **ECHO))

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/x-ndjson")
    events = ndjson(r)
    assert events[-1]["commentary"] == "[ECHO RESPONSE] hello there"
    assert events[-1]["code"] == 'print("hello there")'


def test_chat_with_stub_provider():
    settings = make_settings(OPENAI_API_KEY="sk-operator")
    client = TestClient(create_app(settings, make_generator(settings, StubClient())))

    r = client.post("/api/chat", content=chat_body())

    assert r.status_code == 200
    assert ndjson(r)[-1] == FRAGMENT


def test_chat_rate_limited_with_headers():
    client = make_client(RATE_LIMIT_MAX_REQUESTS=1)
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}

    assert client.post("/api/chat", content=chat_body(**ECHO), headers=headers).status_code == 200
    r = client.post("/api/chat", content=chat_body(**ECHO), headers=headers)

    assert r.status_code == 429
    assert r.text == "You have reached your request limit."
    assert r.headers["x-ratelimit-limit"] == "1"
    assert r.headers["x-ratelimit-remaining"] == "0"
    assert int(r.headers["x-ratelimit-reset"]) > 0

    # a different forwarded address gets its own window
    other = {"X-Forwarded-For": "198.51.100.1"}
    assert client.post("/api/chat", content=chat_body(**ECHO), headers=other).status_code == 200


def test_chat_malformed_body_is_plain_text_400():
    r = make_client().post("/api/chat", content=b"{not json")
    assert r.status_code == 400
    assert r.headers["content-type"].startswith("text/plain")
    assert r.text == "Invalid request."


def test_chat_missing_credential_is_403():
    r = make_client().post("/api/chat", content=chat_body())
    assert r.status_code == 403


def test_provider_auth_failure_maps_to_403():
    settings = make_settings(OPENAI_API_KEY="sk-operator")
    stub = StubClient(error=ProviderError(401, "Incorrect API key provided: sk-oper****"))
    client = TestClient(create_app(settings, make_generator(settings, stub)))

    r = client.post("/api/chat", content=chat_body())

    assert r.status_code == 403
    assert "sk-oper" not in r.text


def test_mid_stream_failure_is_last_line():
    settings = make_settings(OPENAI_API_KEY="sk-operator")
    stub = StubClient(error=ProviderError(429, "Rate limit reached"), fail_after=3)
    client = TestClient(create_app(settings, make_generator(settings, stub)))

    r = client.post("/api/chat", content=chat_body())

    assert r.status_code == 200
    assert ndjson(r)[-1]["error"]["status"] == 429


def test_client_identity_uses_first_forwarded_hop():
    class FakeRequest:
        def __init__(self, headers):
            self.headers = headers

    assert client_identity(FakeRequest({"x-forwarded-for": " 1.2.3.4 , 5.6.7.8"})) == "1.2.3.4"
    assert client_identity(FakeRequest({})) is None


@pytest.mark.asyncio
async def test_ndjson_writer_closes_events_when_closed():
    settings = make_settings(OPENAI_API_KEY="sk-operator")
    stub = StubClient(delay=0.05)
    events = await make_generator(settings, stub).stream(chat_body())

    lines = ndjson_lines(events)
    assert json.loads(await lines.__anext__())
    await lines.aclose()

    assert stub.closed
