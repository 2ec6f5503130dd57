"""
Model client factory.

Resolves a model descriptor + per-request config into a client bound to one
provider. Everything provider-specific lives in the PROVIDERS table: which
environment variable holds the operator key, the default endpoint, which
client speaks to it and how it is asked for structured output.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fragments.registry.models import ModelConfig, ModelDescriptor, ProviderId
from fragments.settings import Settings

from .clients.base import JSON_OBJECT, JSON_SCHEMA, PROMPT_ONLY, ModelClient
from .clients.echo_dev_client import EchoDevClient
from .clients.ollama_client import OllamaClient
from .clients.openai_client import OpenAIClient
from .errors import MissingCredentialError, UnsupportedProviderError

logger = logging.getLogger(__name__)

OPENAI_COMPATIBLE = "openai"
OLLAMA = "ollama"
ECHO = "echo"


@dataclass(frozen=True)
class ProviderSpec:
    credential_env: Optional[str]  # None: the provider needs no key
    base_url: Optional[str]
    kind: str
    structured_output: str = JSON_SCHEMA

    @property
    def keyless(self) -> bool:
        return self.credential_env is None


PROVIDERS: Dict[ProviderId, ProviderSpec] = {
    ProviderId.OPENAI: ProviderSpec("OPENAI_API_KEY", None, OPENAI_COMPATIBLE, JSON_SCHEMA),
    ProviderId.ANTHROPIC: ProviderSpec(
        "ANTHROPIC_API_KEY", "https://api.anthropic.com/v1/", OPENAI_COMPATIBLE, PROMPT_ONLY
    ),
    ProviderId.GOOGLE: ProviderSpec(
        "GOOGLE_AI_API_KEY", "https://generativelanguage.googleapis.com/v1beta/openai/",
        OPENAI_COMPATIBLE, JSON_SCHEMA,
    ),
    ProviderId.GROQ: ProviderSpec(
        "GROQ_API_KEY", "https://api.groq.com/openai/v1", OPENAI_COMPATIBLE, JSON_OBJECT
    ),
    ProviderId.FIREWORKS: ProviderSpec(
        "FIREWORKS_API_KEY", "https://api.fireworks.ai/inference/v1", OPENAI_COMPATIBLE, JSON_OBJECT
    ),
    ProviderId.TOGETHERAI: ProviderSpec(
        "TOGETHER_API_KEY", "https://api.together.xyz/v1", OPENAI_COMPATIBLE, JSON_OBJECT
    ),
    ProviderId.MISTRAL: ProviderSpec(
        "MISTRAL_API_KEY", "https://api.mistral.ai/v1", OPENAI_COMPATIBLE, JSON_OBJECT
    ),
    ProviderId.XAI: ProviderSpec("XAI_API_KEY", "https://api.x.ai/v1", OPENAI_COMPATIBLE, JSON_SCHEMA),
    ProviderId.OLLAMA: ProviderSpec(None, None, OLLAMA),
    ProviderId.ECHO: ProviderSpec(None, None, ECHO),
}


class ModelClientFactory:
    def __init__(self, settings: Settings, providers: Optional[Dict[ProviderId, ProviderSpec]] = None):
        self.settings = settings
        self.providers = dict(PROVIDERS if providers is None else providers)
        self._builders: Dict[str, Callable[..., ModelClient]] = {
            OPENAI_COMPATIBLE: self._build_openai,
            OLLAMA: self._build_ollama,
            ECHO: self._build_echo,
        }

    def spec_for(self, provider: ProviderId) -> ProviderSpec:
        spec = self.providers.get(provider)
        if spec is None or spec.kind not in self._builders:
            raise UnsupportedProviderError(f"Unsupported provider: {provider}")
        return spec

    def operator_key(self, provider: ProviderId) -> Optional[str]:
        return self.settings.credential(self.spec_for(provider).credential_env)

    def caller_key(self, config: ModelConfig) -> Optional[str]:
        if not self.settings.ALLOW_CALLER_API_KEYS:
            return None
        return config.api_key or None

    def has_credential(self, provider: ProviderId, config: ModelConfig) -> bool:
        """True when an operator or caller key exists for `provider`.

        Keyless providers never have one: a key sent for them is not used,
        so it cannot exempt the caller from admission.
        """
        return self.credential_for(provider, config) is not None

    def credential_for(self, provider: ProviderId, config: ModelConfig) -> Optional[str]:
        # The operator key always wins; a caller key is only used when the
        # operator has none configured for this provider.
        if self.spec_for(provider).keyless:
            return None
        return self.operator_key(provider) or self.caller_key(config)

    def resolve(self, descriptor: ModelDescriptor, config: ModelConfig) -> ModelClient:
        spec = self.spec_for(descriptor.provider_id)
        api_key = self.credential_for(descriptor.provider_id, config)
        if api_key is None and not spec.keyless:
            raise MissingCredentialError(f"No API key available for provider {descriptor.provider_id.value}")

        source = "none" if api_key is None else (
            "operator" if api_key == self.operator_key(descriptor.provider_id) else "caller"
        )
        # a caller-chosen endpoint only ever receives the caller's own key
        base_url = config.base_url if source == "caller" else None
        if config.base_url and base_url is None:
            logger.warning(
                "Ignoring caller base URL: provider=%s, credential=%s",
                descriptor.provider_id.value, source,
            )
        logger.info(
            "Resolved model client: provider=%s, model=%s, credential=%s",
            descriptor.provider_id.value, descriptor.id, source,
        )
        return self._builders[spec.kind](descriptor, spec, api_key, base_url)

    def _build_openai(self, descriptor, spec, api_key, base_url) -> ModelClient:
        return OpenAIClient(
            model=descriptor.id,
            api_key=api_key,
            base_url=base_url or spec.base_url,
            provider=descriptor.provider_id.value,
            structured_output=spec.structured_output,
            timeout=self.settings.MAX_DURATION,
        )

    def _build_ollama(self, descriptor, spec, api_key, base_url) -> ModelClient:
        return OllamaClient(
            model=descriptor.id,
            base_url=base_url or self.settings.OLLAMA_HOST,
            timeout=self.settings.MAX_DURATION,
        )

    def _build_echo(self, descriptor, spec, api_key, base_url) -> ModelClient:
        return EchoDevClient(model=descriptor.id)
