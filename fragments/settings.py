# fragments/settings.py
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # core
    APP_NAME: str = Field(default="Fragments")
    ENV: str = Field(default=os.getenv("APP_ENV", "dev"))
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="info")

    # operator-held provider credentials (one per provider)
    OPENAI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    GOOGLE_AI_API_KEY: Optional[str] = None
    GROQ_API_KEY: Optional[str] = None
    FIREWORKS_API_KEY: Optional[str] = None
    TOGETHER_API_KEY: Optional[str] = None
    MISTRAL_API_KEY: Optional[str] = None
    XAI_API_KEY: Optional[str] = None
    OLLAMA_HOST: str = Field(default="http://localhost:11434")

    # whether a caller may bring their own provider key
    ALLOW_CALLER_API_KEYS: bool = Field(default=True)

    # admission control
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=10, ge=1)
    RATE_LIMIT_WINDOW: str = Field(default="1d")
    RATE_LIMIT_FAIL_OPEN: bool = Field(default=False)
    KV_REST_API_URL: Optional[str] = None
    KV_REST_API_TOKEN: Optional[str] = None

    # hard ceiling on one request, in seconds
    MAX_DURATION: float = Field(default=60.0, gt=0)

    # discovery
    HIDE_LOCAL_MODELS: bool = Field(default=False)
    HIDE_DEV_MODELS: bool = Field(default=True)

    # registry overrides (defaults ship inside the package)
    MODELS_PATH: Optional[str] = None
    TEMPLATES_PATH: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def app_name(self) -> str:
        return self.APP_NAME

    @property
    def kv_configured(self) -> bool:
        return bool(self.KV_REST_API_URL and self.KV_REST_API_TOKEN)

    def credential(self, env_var: Optional[str]) -> Optional[str]:
        """Operator key stored under `env_var`, or None when unset/blank."""
        if not env_var:
            return None
        value = getattr(self, env_var, None)
        return value or None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
