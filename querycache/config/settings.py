"""Cache settings loaded from environment variables via pydantic-settings.

Sources, highest priority first:

  1. Environment variables -- ``QUERYCACHE_MAX_SIZE=500``
  2. ``.env`` file in the working directory
  3. The defaults below

Limits left unset stay unbounded.  Negative limits are ignored, the same
as when passed to :meth:`querycache.cache.QueryCache.configure`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from querycache.models.query import QueryCacheOptions


class Settings(BaseSettings):
    """querycache settings.  Environment variables override defaults."""

    model_config = SettingsConfigDict(
        env_prefix="QUERYCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Cache policy ===
    max_size: int | None = None
    stale_time: float | None = None  # milliseconds
    refetch_on_invalidate: bool = True

    # === Logging ===
    env: str = "development"  # "production" switches logs to JSON
    log_level: str = "WARNING"

    def to_options(self) -> QueryCacheOptions:
        """Return the cache policy portion as :class:`QueryCacheOptions`."""
        return QueryCacheOptions(
            max_size=self.max_size,
            stale_time=self.stale_time,
            refetch_on_invalidate=self.refetch_on_invalidate,
        )
