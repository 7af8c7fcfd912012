"""
Shared helper for wiring the store and the services that use it.

Why:
    Every route reaches its collaborators through `request.app.state.services`
    instead of module-level singletons. Building them in one place keeps the
    choice of store (in-memory or Postgres) and the payment gateway a startup
    decision, and lets tests hand in their own store and fake gateway.

Security:
    The payment key and the DSN are read from `Settings` and only passed to
    server-side adapters; neither is logged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from backend.catalog.service import CourseCatalog
from backend.enrollment.cart import CartLedger
from backend.enrollment.charges import ChargeGatewayError, ChargeGatewayProtocol, StripeChargeGateway
from backend.enrollment.settlement import PaymentSettlement
from backend.identity_access.directory import RoleDirectory
from backend.identity_access.tokens import TokenService
from backend.storage.memory import InMemoryStore
from backend.storage.ports import MarketplaceStore

from .config import Settings

logger = logging.getLogger("summer_school.web.wiring")


@dataclass
class Services:
    settings: Settings
    store: MarketplaceStore
    tokens: TokenService
    directory: RoleDirectory
    catalog: CourseCatalog
    cart: CartLedger
    settlement: PaymentSettlement


class _UnconfiguredChargeGateway:
    """Gateway used when no payment key is configured (dev only)."""

    def create_intent(self, *, amount: int, currency: str) -> str:
        raise ChargeGatewayError("payment_provider_unconfigured")


def build_store(settings: Settings) -> MarketplaceStore:
    """Return the store selected by `STORE_BACKEND` (`memory` or `db`)."""
    if settings.store_backend == "db":
        from backend.storage.repo_db import DBMarketplaceStore

        store = DBMarketplaceStore(dsn=settings.database_url or None)
        logger.info("Store wired: postgres")
        return store
    if settings.store_backend != "memory":
        raise SystemExit(f"Refusing to start: unknown STORE_BACKEND={settings.store_backend!r}")
    logger.info("Store wired: in-memory")
    return InMemoryStore()


def build_charge_gateway(settings: Settings) -> ChargeGatewayProtocol:
    if settings.payment_key:
        return StripeChargeGateway(settings.payment_key)
    logger.warning("PAYMENT_KEY unset; payment intents are disabled")
    return _UnconfiguredChargeGateway()


def build_services(
    settings: Settings,
    *,
    store: Optional[MarketplaceStore] = None,
    charges: Optional[ChargeGatewayProtocol] = None,
) -> Services:
    """Construct every service over one explicitly passed store."""
    store = store if store is not None else build_store(settings)
    charges = charges if charges is not None else build_charge_gateway(settings)
    return Services(
        settings=settings,
        store=store,
        tokens=TokenService(settings.jwt_secret, ttl_seconds=settings.jwt_ttl_seconds),
        directory=RoleDirectory(store),
        catalog=CourseCatalog(store),
        cart=CartLedger(store, courses=store),
        settlement=PaymentSettlement(store, charges, currency=settings.payment_currency),
    )


__all__ = ["Services", "build_store", "build_charge_gateway", "build_services"]
