"""
escola_portal.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Describe session cookie/TTL/timeout policy in one place.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Enterprise pattern:
    - Strict env-driven configuration
    - Defaults safe for local dev
    - Single settings object injected across layers
    """

    model_config = SettingsConfigDict(env_prefix="ESCOLA_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "escola-portal"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./escola.db"

    # Session cookie
    session_cookie_name: str = "escola_sid"
    session_cookie_path: str = "/"
    session_cookie_secure: bool = False
    session_cookie_samesite: Literal["lax", "strict", "none"] = "lax"

    # Session lifetime
    session_ttl_seconds: int = Field(default=24 * 60 * 60, ge=60)
    session_sliding: bool = True
    session_store_timeout_seconds: float = Field(default=2.0, gt=0)
    session_sweep_interval_seconds: int = Field(default=300, ge=1)

    # Credentials
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(seconds=self.session_ttl_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Expired sessions are reclaimed lazily on read and by the sweeper, so the worst case
# lifetime of a stale row is session_ttl_seconds + session_sweep_interval_seconds.
