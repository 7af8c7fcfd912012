"""
Configuration and startup security checks for the Summer School backend.

Why: A course marketplace handles payments and identities; we must prevent
accidental insecure deployments without burdening local development.

Permissions: The caller needs no special privileges. `load_settings()` reads
environment variables; `ensure_secure_config_on_startup()` raises `SystemExit`
on fatal misconfiguration.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

DEV_JWT_SECRET = "dev-only-insecure-jwt-secret-change-me"
MIN_JWT_SECRET_LEN = 32
_PLACEHOLDER_PREFIXES = ("CHANGE_ME", "DUMMY", "DEV-ONLY")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    environment: str
    jwt_secret: str
    jwt_ttl_seconds: int
    store_backend: str
    database_url: str
    payment_key: str
    payment_currency: str
    cors_allow_origins: Tuple[str, ...]
    legacy_open_cart_delete: bool

    @property
    def is_prod_like(self) -> bool:
        return _is_prod_like(self.environment)


def load_settings() -> Settings:
    """Build `Settings` from the process environment with dev-friendly defaults."""
    try:
        ttl = int(os.getenv("JWT_TTL_SECONDS", "86400"))
    except ValueError:
        raise SystemExit("Refusing to start: JWT_TTL_SECONDS must be an integer.")
    if ttl <= 0:
        raise SystemExit("Refusing to start: JWT_TTL_SECONDS must be positive.")
    origins = tuple(
        o.strip() for o in (os.getenv("CORS_ALLOW_ORIGINS", "*") or "").split(",") if o.strip()
    )
    return Settings(
        environment=(os.getenv("SUMMER_SCHOOL_ENV", "dev") or "dev").lower(),
        jwt_secret=(os.getenv("JWT_TOKEN_SECRET") or DEV_JWT_SECRET).strip(),
        jwt_ttl_seconds=ttl,
        store_backend=(os.getenv("STORE_BACKEND", "memory") or "memory").strip().lower(),
        database_url=(os.getenv("DATABASE_URL") or "").strip(),
        payment_key=(os.getenv("PAYMENT_KEY") or "").strip(),
        payment_currency=(os.getenv("PAYMENT_CURRENCY", "usd") or "usd").strip().lower(),
        cors_allow_origins=origins or ("*",),
        legacy_open_cart_delete=_env_flag("LEGACY_OPEN_CART_DELETE"),
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - JWT_TOKEN_SECRET must be set, not a placeholder and at least 32 chars.
    - PAYMENT_KEY must be set.
    - STORE_BACKEND must be `db` (the in-memory store loses data on restart).
    - DATABASE_URL must be set and must not explicitly disable TLS.
    - LEGACY_OPEN_CART_DELETE must be off.
    """

    env = os.getenv("SUMMER_SCHOOL_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Token secret
    secret = (os.getenv("JWT_TOKEN_SECRET", "") or "").strip()
    if not secret or secret.upper().startswith(_PLACEHOLDER_PREFIXES):
        raise SystemExit(
            "Refusing to start: JWT_TOKEN_SECRET is unset or a placeholder in production."
        )
    if len(secret) < MIN_JWT_SECRET_LEN:
        raise SystemExit(
            f"Refusing to start: JWT_TOKEN_SECRET must be at least {MIN_JWT_SECRET_LEN} characters in production."
        )

    # 2) Payment processor key
    if not (os.getenv("PAYMENT_KEY", "") or "").strip():
        raise SystemExit("Refusing to start: PAYMENT_KEY is unset in production.")

    # 3) Persistent store with TLS
    backend = (os.getenv("STORE_BACKEND", "memory") or "").strip().lower()
    if backend != "db":
        raise SystemExit("Refusing to start: STORE_BACKEND=db is mandatory in production/staging.")
    dsn = os.getenv("DATABASE_URL", "")
    if not dsn:
        raise SystemExit("Refusing to start: DATABASE_URL is unset in production.")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 4) Compatibility toggles
    if _env_flag("LEGACY_OPEN_CART_DELETE"):
        raise SystemExit(
            "Refusing to start: LEGACY_OPEN_CART_DELETE must be false in production/staging."
        )
