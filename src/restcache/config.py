from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from restcache.cache.models import StrategyConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RESTCACHE_", env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = "restcache"
    env: str = "dev"

    # Store backend: "memory" or "redis"
    store_backend: str = Field(default="memory", validation_alias="RESTCACHE_STORE")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    memory_max_entries: int = Field(default=10_000, validation_alias="RESTCACHE_MEMORY_MAX")

    # Strategy
    keys_prefix: str = Field(default="", validation_alias="RESTCACHE_KEYS_PREFIX")
    enable_etag: bool = Field(default=False, validation_alias="RESTCACHE_ENABLE_ETAG")
    enable_x_cache_headers: bool = Field(
        default=False, validation_alias="RESTCACHE_ENABLE_X_CACHE_HEADERS"
    )
    default_max_age: int = Field(default=3600, validation_alias="RESTCACHE_MAX_AGE")
    reset_on_startup: bool = Field(default=False, validation_alias="RESTCACHE_RESET_ON_STARTUP")

    # Observability
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    log_level: str = "INFO"

    def strategy(self) -> StrategyConfig:
        """Snapshot the strategy toggles as an immutable value."""
        return StrategyConfig(
            enable_etag=self.enable_etag,
            enable_x_cache_headers=self.enable_x_cache_headers,
            keys_prefix=self.keys_prefix,
        )


settings = Settings()
