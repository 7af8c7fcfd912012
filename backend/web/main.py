"Summer School course marketplace API"
from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from backend.enrollment.charges import ChargeGatewayProtocol
from backend.storage.ports import MarketplaceStore

from . import config as _cfg
from .routes.auth import auth_router
from .routes.cart import cart_router
from .routes.courses import courses_router
from .routes.payments import payments_router
from .routes.users import users_router
from .storage_wiring import Services, build_services


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via SUMMER_SCHOOL_ENABLE_DOTENV (default true
      outside pytest).
    """
    import sys
    # Under pytest, do not load .env – tests provide their own env.
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SUMMER_SCHOOL_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

logger = logging.getLogger("summer_school.web")


def create_app(
    *,
    services: Optional[Services] = None,
    store: Optional[MarketplaceStore] = None,
    charges: Optional[ChargeGatewayProtocol] = None,
) -> FastAPI:
    """Build the API with explicitly constructed services.

    Why: Tests and the CLI pass their own store (and a fake charge gateway);
    production builds everything from the environment after the startup
    security guard has passed.
    """
    _cfg.ensure_secure_config_on_startup()
    if services is None:
        services = build_services(_cfg.load_settings(), store=store, charges=charges)
    settings = services.settings

    app = FastAPI(title="Summer School", description="Course marketplace API", version="1.0.0")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if settings.is_prod_like:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(courses_router)
    app.include_router(cart_router)
    app.include_router(payments_router)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "The Web is running"

    @app.get("/health")
    async def health_check():
        # Security: include no-store to avoid caching any runtime status.
        return JSONResponse({"status": "ok"}, headers={"Cache-Control": "private, no-store"})

    logger.info("app created env=%s store=%s", settings.environment, type(services.store).__name__)
    return app


app = create_app()
