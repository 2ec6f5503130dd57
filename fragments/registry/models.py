# Static model registry: id -> provider/display metadata.
# Read once from YAML; the request's ModelConfig is the only per-call input.

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

DATA_DIR = Path(__file__).resolve().parent / "data"


class ProviderId(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    GROQ = "groq"
    FIREWORKS = "fireworks"
    TOGETHERAI = "togetherai"
    MISTRAL = "mistral"
    XAI = "xai"
    OLLAMA = "ollama"
    ECHO = "echo"


# provider sets that can be hidden from discovery
LOCAL_PROVIDERS = {ProviderId.OLLAMA}
DEV_PROVIDERS = {ProviderId.ECHO}


class ModelDescriptor(BaseModel):
    """A selectable model, as listed in models.yaml."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    provider_id: ProviderId = Field(alias="providerId")
    provider: str = ""
    name: str = ""
    multi_modal: bool = Field(default=False, alias="multiModal")


class ModelConfig(BaseModel):
    """Per-request generation parameters chosen by the caller."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    model: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    base_url: Optional[str] = Field(default=None, alias="baseURL")
    temperature: Optional[float] = None
    top_p: Optional[float] = Field(default=None, alias="topP")
    top_k: Optional[int] = Field(default=None, alias="topK")
    frequency_penalty: Optional[float] = Field(default=None, alias="frequencyPenalty")
    presence_penalty: Optional[float] = Field(default=None, alias="presencePenalty")
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")


class ModelRegistry:
    def __init__(self, models: List[ModelDescriptor]):
        self._models: Dict[str, ModelDescriptor] = {m.id: m for m in models}

    @classmethod
    def from_yaml(cls, path: Optional[str] = None) -> "ModelRegistry":
        path = path or os.fspath(DATA_DIR / "models.yaml")
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return cls([ModelDescriptor.model_validate(m) for m in raw.get("models", [])])

    def get(self, model_id: str) -> Optional[ModelDescriptor]:
        return self._models.get(model_id)

    def visible(self, hide_local: bool = False, hide_dev: bool = True) -> List[ModelDescriptor]:
        """Models visible to discovery, honoring the hide flags."""
        hidden = set()
        if hide_local:
            hidden |= LOCAL_PROVIDERS
        if hide_dev:
            hidden |= DEV_PROVIDERS
        return [m for m in self._models.values() if m.provider_id not in hidden]
