import pytest

from fragments.generate.prompts import BASE_INSTRUCTIONS, to_prompt
from fragments.registry import AUTO_TEMPLATE, ModelRegistry, ProviderId, Template, TemplateRegistry
from fragments.sanitize import sanitize


@pytest.fixture(scope="module")
def templates():
    return TemplateRegistry.from_yaml()


def test_bundled_templates_load(templates):
    ids = [k for k, _ in templates.items()]
    assert ids[0] == "code-interpreter-v1"
    assert {"nextjs-developer", "streamlit-developer", "gradio-developer"} <= set(ids)
    assert AUTO_TEMPLATE in templates
    assert "nope" not in templates


def test_auto_lists_every_template(templates):
    prompt = to_prompt("auto", templates)
    assert prompt.startswith(BASE_INSTRUCTIONS)
    for index, (template_id, _) in enumerate(templates.items(), start=1):
        assert f"{index}. {template_id}: " in prompt


def test_single_template_prompt(templates):
    prompt = to_prompt("streamlit-developer", templates)
    assert '1. streamlit-developer: "A streamlit app that reloads automatically."' in prompt
    assert "File: app.py." in prompt
    assert "Port: 8501." in prompt
    assert "nextjs-developer" not in prompt


def test_missing_file_and_port_render_none():
    registry = TemplateRegistry({"bare": Template(name="Bare", lib=["a", "b"], instructions="Do it.")})
    prompt = to_prompt("bare", registry)
    assert prompt.endswith('1. bare: "Do it.". File: none. Dependencies installed: a, b. Port: none.')


def test_prompt_is_deterministic_and_sanitizer_safe(templates):
    prompt = to_prompt("auto", templates)
    assert prompt == to_prompt("auto", templates)
    assert sanitize(prompt) == prompt.strip()


def test_unknown_template_raises(templates):
    with pytest.raises(KeyError):
        to_prompt("cobol-developer", templates)


# ------------------------------------------------------------
# Model registry
# ------------------------------------------------------------
def test_model_registry_lookup():
    models = ModelRegistry.from_yaml()
    gpt = models.get("gpt-4o")
    assert gpt.provider_id == ProviderId.OPENAI
    assert gpt.multi_modal is True
    assert models.get("unknown-model") is None


def test_model_registry_hide_flags():
    models = ModelRegistry.from_yaml()
    default = {m.provider_id for m in models.visible()}
    assert ProviderId.ECHO not in default
    assert ProviderId.OLLAMA in default

    no_local = {m.provider_id for m in models.visible(hide_local=True)}
    assert ProviderId.OLLAMA not in no_local

    everything = {m.provider_id for m in models.visible(hide_local=False, hide_dev=False)}
    assert ProviderId.ECHO in everything
    assert {"echo-dev", "llama3.1", "gpt-4o"} <= {m.id for m in models.visible(hide_dev=False)}
