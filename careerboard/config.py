from __future__ import annotations

import os
from enum import Enum
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

from careerboard.logging import get_logger

logger = get_logger(__name__)

# Well-known fallback so local development works without configuration.
# Never acceptable in production; see Settings.check_secret().
DEV_SESSION_SECRET = "dev-secret-change-me"
MIN_SECRET_LENGTH = 32


class AppEnv(str, Enum):
    """Deployment environments that change how strictly settings are checked."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the career board service."""

    app_env: AppEnv = env_field(AppEnv.DEVELOPMENT, "APP_ENV")
    session_secret: str = env_field(
        DEV_SESSION_SECRET,
        "SESSION_SECRET",
        description="HMAC key for session tokens; rotating it logs every user out",
    )
    session_ttl_days: int = env_field(7, "SESSION_TTL_DAYS", ge=1, le=365)
    cookie_secure: bool = env_field(
        False,
        "COOKIE_SECURE",
        description="Always mark the session cookie Secure, even behind a TLS-terminating proxy",
    )
    use_memory_store: bool = env_field(True, "USE_MEMORY_STORE")
    database_url: str = env_field(
        "postgresql://localhost:5432/careerboard", "DATABASE_URL"
    )
    state_dir: str | None = env_field(
        None,
        "STATE_DIR",
        description="Directory for the memory store snapshot; unset keeps state in process only",
    )
    argon2_time_cost: int = env_field(3, "ARGON2_TIME_COST", ge=1)
    argon2_memory_cost: int = env_field(
        64 * 1024, "ARGON2_MEMORY_COST", ge=8, description="Argon2 memory in KiB"
    )
    argon2_parallelism: int = env_field(4, "ARGON2_PARALLELISM", ge=1)
    admin_email: str = env_field("admin@example.com", "ADMIN_EMAIL")
    admin_password: str | None = env_field(None, "ADMIN_PASSWORD")
    seed_on_startup: bool = env_field(False, "SEED_ON_STARTUP")
    cors_allow_origins: list[str] = env_field(
        ["http://localhost:3000", "http://127.0.0.1:3000"], "CORS_ALLOW_ORIGINS"
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("app_env", mode="before")
    @classmethod
    def _normalize_env(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env == AppEnv.PRODUCTION

    def check_secret(self) -> None:
        """Refuse to serve with an unusable session secret.

        An empty secret is always fatal. The development default or a short
        secret is fatal in production and logged as a warning elsewhere.
        """
        secret = self.session_secret or ""
        if not secret.strip():
            raise RuntimeError("SESSION_SECRET is empty; refusing to sign sessions")
        insecure = secret == DEV_SESSION_SECRET or len(secret) < MIN_SECRET_LENGTH
        if not insecure:
            return
        if self.is_production:
            raise RuntimeError(
                "SESSION_SECRET must be set to a random value of at least "
                f"{MIN_SECRET_LENGTH} characters in production"
            )
        logger.warning(
            "session_secret_insecure",
            app_env=self.app_env.value,
            using_default=secret == DEV_SESSION_SECRET,
            message="sessions are signed with a guessable key; set SESSION_SECRET",
        )


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
