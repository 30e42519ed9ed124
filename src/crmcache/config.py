from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CRMCACHE_", env_file=".env", extra="ignore")

    # Generic TTL cache (milliseconds)
    default_ttl_ms: int = Field(default=5 * 60 * 1000, ge=0)
    default_max_size: int = Field(default=100, ge=1)
    storage_key: str = "crm_cache"
    sweep_interval_seconds: float = Field(default=60.0, gt=0)

    # Remote-fetch cache
    api_ttl_ms: int = Field(default=10 * 60 * 1000, ge=0)
    api_max_size: int = Field(default=200, ge=1)
    api_storage: str = "durable"  # memory | durable | session

    # Query-result cache (search results are session-specific)
    query_ttl_ms: int = Field(default=2 * 60 * 1000, ge=0)
    query_max_size: int = Field(default=50, ge=1)

    # Durable snapshot backend
    durable_backend: str = "file"  # file | redis
    snapshot_dir: Path = Field(default_factory=lambda: Path.home() / ".cache" / "crmcache")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Observability
    log_level: str = "INFO"
    log_json: bool = True


settings = Settings()
