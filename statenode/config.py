"""
config.py - statenode application settings.

Usage:
    from statenode.config import settings
    print(settings.redis_url)

Never use FastAPI Depends() for settings - import directly as a module-level singleton.
"""
import os
import secrets
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_instance_id() -> str:
    """HOSTNAME is set per container/instance; fall back to a random label."""
    return os.environ.get("HOSTNAME") or f"instance-{secrets.token_hex(5)}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Shared store (Redis) ---
    redis_url: str = "redis://localhost:6379"
    session_ttl_seconds: int = 86400  # 24 hours, reset on every write
    store_op_timeout_seconds: float = 2.0
    store_connect_timeout_seconds: float = 2.0

    # Reconnect backoff: base * 2^(attempt-1), capped at max
    reconnect_base_delay_seconds: float = 0.05
    reconnect_max_delay_seconds: float = 0.5
    health_probe_interval_seconds: float = 5.0

    # --- Session identity ---
    session_cookie_name: str = "sid"
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    session_secret: str = "your-secret-key-change-this"

    # --- Uploads ---
    upload_dir: str = Field(default_factory=lambda: os.path.join(os.getcwd(), "uploads"))
    upload_max_bytes: int = 10 * 1024 * 1024  # 10 MB

    # --- CORS ---
    # Comma-separated list of allowed origins; "*" allows any
    cors_origins: str = "*"

    # --- Application ---
    instance_id: str = Field(default_factory=_default_instance_id)
    environment: str = "development"
    debug: bool = False
    app_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 3000

    @property
    def cors_origins_list(self) -> List[str]:
        """Split comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def expose_error_details(self) -> bool:
        """Unhandled-error messages are only surfaced in debug / development mode."""
        return self.debug or self.environment.lower() == "development"


# Module-level singleton - import this throughout the codebase
settings = Settings()
