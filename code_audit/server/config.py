"""Настройки сервера."""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Настройки сервера аудита (env: CODE_AUDIT_*)."""

    model_config = SettingsConfigDict(
        env_prefix="CODE_AUDIT_",
        env_file=".env",
        extra="ignore",
    )

    name: str = "code-audit-mcp"
    version: str = "1.0.0"

    # Ollama
    ollama_host: str = "http://localhost:11434"
    ollama_timeout: float = Field(30.0, description="Request timeout, seconds")
    retry_attempts: int = Field(3, ge=1)
    retry_delay: float = Field(1.0, ge=0, description="Base backoff delay, seconds")
    health_check_interval: float = Field(60.0, ge=0, description="Seconds between real health probes")

    # Audits
    max_concurrent_audits: int = Field(3, ge=1)
    max_request_size: int = 100_000
    model_strategy: Literal["default", "performance", "quality"] = "default"
    disabled_auditors: List[str] = Field(default_factory=list)

    # Logging
    log_level: str = "INFO"
    enable_metrics: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
