"""
Cart API routes: add, remove and list a student's cart entries.

Security:
    Removal requires the owner's token. `LEGACY_OPEN_CART_DELETE=true`
    restores the old unauthenticated delete for clients that have not been
    updated; the production guard refuses to start with it.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from backend.storage.ports import OwnershipMismatch

from ..guards import bad_request, forbidden, gate, invalid_id, json_private, require_token, services

cart_router = APIRouter(tags=["Cart"])
logger = logging.getLogger("summer_school.web.cart")


class CartItemCreate(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None
    course_id: Optional[str] = None
    course_title: Optional[str] = None
    course_img: Optional[str] = None
    price: Any = None


@cart_router.post("/cart")
async def add_cart_item(request: Request, payload: CartItemCreate):
    """Add a course to the cart of `email`.

    Behavior:
        - 200 `{"acknowledged": true, "insertedId": ...}`
        - 400 for a missing email, malformed course id or invalid price

    Permissions:
        Public.
    """
    try:
        result = services(request).cart.add(payload.model_dump(exclude_none=True))
    except ValueError as exc:
        return bad_request(str(exc))
    return json_private(result)


@cart_router.delete("/cart/{item_id}")
async def remove_cart_item(request: Request, item_id: str):
    """Remove a cart entry; unknown ids answer `{"deletedCount": 0}`.

    Permissions:
        Token and ownership of the entry, unless the legacy open delete is on.
    """
    svc = services(request)
    if svc.settings.legacy_open_cart_delete:
        bad = invalid_id(item_id)
        if bad:
            return bad
        return json_private(svc.cart.remove(item_id))
    caller, error = require_token(request)
    if error:
        return error
    bad = invalid_id(item_id)
    if bad:
        return bad
    try:
        result = svc.cart.remove(item_id, owner_email=caller.email)
    except OwnershipMismatch:
        logger.info("cart delete rejected reason=owner_mismatch")
        return forbidden()
    return json_private(result)


@cart_router.get("/cart")
async def list_my_cart(request: Request, email: Optional[str] = None):
    """List the caller's cart entries.

    Permissions:
        Token, `email` must be the caller's.
    """
    caller, early = gate(request, email)
    if early:
        return early
    return json_private(services(request).cart.list_mine(caller.email))


@cart_router.get("/cart/enrolled")
async def list_my_enrollments(request: Request, email: Optional[str] = None):
    """List the caller's paid (enrolled) cart entries.

    Permissions:
        Token, `email` must be the caller's.
    """
    caller, early = gate(request, email)
    if early:
        return early
    return json_private(services(request).cart.list_enrolled(caller.email))


@cart_router.get("/cart/{item_id}")
async def get_my_cart_item(request: Request, item_id: str, email: Optional[str] = None):
    """Fetch one of the caller's cart entries; `null` when it is not theirs.

    Permissions:
        Token, `email` must be the caller's.
    """
    caller, early = gate(request, email)
    if early:
        return early
    bad = invalid_id(item_id)
    if bad:
        return bad
    return json_private(services(request).cart.get_mine(item_id, caller.email))
