from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExternalStoreConfig(BaseModel):
    """Options for the shared Redis tier."""

    url: str = "redis://localhost:6379/0"
    prefix: str = "dmcache"


class CacheSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DMCACHE_", env_file=".env", extra="ignore")

    # Read-through behaviour
    append_source: bool = False
    cache_size: int = Field(default=1000, gt=0)
    # Seconds; None uses the store default, 0 caches until invalidated
    time_to_live: int | None = Field(default=None, ge=0)
    namespace: str | None = None

    # Shared tier (enabled when redis_url is set)
    redis_url: str | None = None
    redis_prefix: str = "dmcache"

    # Change notifications
    data_manager_short_id: str | None = None
    exchange: str = "publicAPI"

    # Observability
    log_level: str = "INFO"
    log_json: bool = True

    def external_store(self) -> ExternalStoreConfig | None:
        if not self.redis_url:
            return None
        return ExternalStoreConfig(url=self.redis_url, prefix=self.redis_prefix)
