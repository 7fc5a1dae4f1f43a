"""Gateway settings from environment variables."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendId(str, Enum):
    """Backends the gateway can front."""

    OLLAMA = "OLLAMA"
    GLM = "GLM"
    KIMI = "KIMI"

    @classmethod
    def parse(cls, value: str | None) -> "BackendId":
        """Case-insensitive lookup; anything unrecognized means OLLAMA."""
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.OLLAMA


class Settings(BaseSettings):
    """Service settings. The backend is fixed for the process lifetime."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Server
    gateway_host: str = "0.0.0.0"
    gateway_port: int = 3000

    # Backend selection
    llm_backend: BackendId = BackendId.GLM
    ollama_host: str = "127.0.0.1:11434"

    # Outbound client; model responses can take many minutes
    upstream_timeout: float = 1800.0
    connect_timeout: float = 5.0
    connect_retries: int = 5
    max_connections: int = 1000
    max_keepalive_connections: int = 100
    keepalive_expiry: float = 5.0

    # Logging
    log_level: str = "info"
    log_path: str = ""

    @field_validator("llm_backend", mode="before")
    @classmethod
    def _parse_backend(cls, value: object) -> BackendId:
        if isinstance(value, BackendId):
            return value
        return BackendId.parse(str(value) if value is not None else None)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
