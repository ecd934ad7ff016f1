# tokenauth/core/config.py
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field

from tokenauth.core.errors import ConfigurationError

MIN_SECRET_BYTES = 32


def _default_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./data/tokenauth.db")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def ensure_signing_secret(secret: str | None) -> str:
    """Reject missing or short signing secrets before any token is signed."""
    if not secret:
        raise ConfigurationError("SECRET_KEY is not configured")
    if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
        raise ConfigurationError(f"SECRET_KEY must be at least {MIN_SECRET_BYTES} bytes")
    return secret


class Settings(BaseModel):
    DATABASE_URL: str = Field(default_factory=_default_database_url)

    # Assinatura dos access tokens
    SECRET_KEY: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", ""))
    ALGORITHM: str = "HS256"
    ISSUER: str = Field(default_factory=lambda: os.getenv("TOKEN_ISSUER", "tokenauth"))

    # Tempos de vida
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default_factory=lambda: _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
    RENEW_THRESHOLD_MINUTES: int = Field(default_factory=lambda: _env_int("RENEW_THRESHOLD_MINUTES", 10))
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default_factory=lambda: _env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30))
    MAX_ACTIVE_REFRESH_TOKENS: int = Field(default_factory=lambda: _env_int("MAX_ACTIVE_REFRESH_TOKENS", 0))

    # Rate limit (janela fixa)
    LOGIN_MAX_ATTEMPTS: int = Field(default_factory=lambda: _env_int("LOGIN_MAX_ATTEMPTS", 5))
    LOGIN_WINDOW_SECONDS: int = Field(default_factory=lambda: _env_int("LOGIN_WINDOW_SECONDS", 900))
    REFRESH_MAX_ATTEMPTS: int = Field(default_factory=lambda: _env_int("REFRESH_MAX_ATTEMPTS", 30))
    REFRESH_WINDOW_SECONDS: int = Field(default_factory=lambda: _env_int("REFRESH_WINDOW_SECONDS", 900))
    LOGOUT_MAX_ATTEMPTS: int = Field(default_factory=lambda: _env_int("LOGOUT_MAX_ATTEMPTS", 30))
    LOGOUT_WINDOW_SECONDS: int = Field(default_factory=lambda: _env_int("LOGOUT_WINDOW_SECONDS", 900))
    LOGOUT_ALL_MAX_ATTEMPTS: int = Field(default_factory=lambda: _env_int("LOGOUT_ALL_MAX_ATTEMPTS", 10))
    LOGOUT_ALL_WINDOW_SECONDS: int = Field(default_factory=lambda: _env_int("LOGOUT_ALL_WINDOW_SECONDS", 900))
    VERIFY_MAX_ATTEMPTS: int = Field(default_factory=lambda: _env_int("VERIFY_MAX_ATTEMPTS", 300))
    VERIFY_WINDOW_SECONDS: int = Field(default_factory=lambda: _env_int("VERIFY_WINDOW_SECONDS", 900))
    REDIS_URL: str = Field(default_factory=lambda: os.getenv("REDIS_URL", ""))

    REFRESH_CLEANUP_INTERVAL_SECONDS: int = Field(
        default_factory=lambda: _env_int("REFRESH_CLEANUP_INTERVAL_SECONDS", 3600)
    )
    METRICS_ENABLED: bool = Field(default_factory=lambda: _env_bool("METRICS_ENABLED", True))
    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def ensure_valid(self) -> "Settings":
        ensure_signing_secret(self.SECRET_KEY)
        if self.ACCESS_TOKEN_EXPIRE_MINUTES <= 0:
            raise ConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")
        if not 0 < self.RENEW_THRESHOLD_MINUTES < self.ACCESS_TOKEN_EXPIRE_MINUTES:
            raise ConfigurationError("RENEW_THRESHOLD_MINUTES must be positive and below the access token lifetime")
        if self.REFRESH_TOKEN_EXPIRE_DAYS <= 0:
            raise ConfigurationError("REFRESH_TOKEN_EXPIRE_DAYS must be positive")
        return self


@lru_cache
def get_settings() -> Settings:
    # Apenas a camada HTTP usa este cache; o núcleo recebe Settings explícito.
    return Settings()
