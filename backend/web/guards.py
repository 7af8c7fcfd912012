"""
Authorization gate shared by the route modules.

Why:
    Guarded endpoints run the same checks in the same order: bearer token,
    then self-match against the email the caller asserts, then role
    membership looked up in the role directory. The first failure ends the
    request before any catalog, cart or payment code runs.

Design:
    Helpers return `(caller, error_response)` tuples; handlers do
    `if error: return error`. Error bodies keep the `{"error": true,
    "message": ...}` shape existing clients parse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse

from backend.identity_access.tokens import TokenVerificationError
from backend.storage.keys import is_record_id

from .storage_wiring import Services

logger = logging.getLogger("summer_school.web.guards")

_PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


@dataclass(frozen=True)
class Caller:
    email: str
    claims: Dict[str, Any] = field(default_factory=dict)


def services(request: Request) -> Services:
    return request.app.state.services


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    return JSONResponse(content=payload, status_code=status_code, headers=dict(_PRIVATE_HEADERS))


def unauthorized() -> JSONResponse:
    return json_private({"error": True, "message": "unauthorized access"}, status_code=401)


def forbidden() -> JSONResponse:
    return json_private({"error": True, "message": "forbidden access"}, status_code=403)


def not_found() -> JSONResponse:
    return json_private({"error": True, "message": "not_found"}, status_code=404)


def bad_request(detail: str) -> JSONResponse:
    return json_private({"error": "bad_request", "detail": detail}, status_code=400)


def conflict(detail: str) -> JSONResponse:
    return json_private({"error": "conflict", "detail": detail}, status_code=409)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_token(request: Request) -> Tuple[Optional[Caller], Optional[JSONResponse]]:
    """Verify the bearer token; 401 when it is missing, malformed or expired."""
    token = _bearer_token(request)
    if token is None:
        logger.info("gate rejected reason=missing_token path=%s", request.url.path)
        return None, unauthorized()
    try:
        claims = services(request).tokens.verify(token)
    except TokenVerificationError as exc:
        logger.info("gate rejected reason=%s path=%s", exc.code, request.url.path)
        return None, unauthorized()
    return Caller(email=str(claims["email"]), claims=claims), None


def gate(
    request: Request,
    asserted_email: Optional[str],
    *,
    role: Optional[str] = None,
    when_absent: Any = None,
) -> Tuple[Optional[Caller], Optional[JSONResponse]]:
    """Token, then self-match against `asserted_email`, then `role`.

    An absent `asserted_email` ends the request with a 200 carrying
    `when_absent` (an empty list unless given) instead of an error; existing
    clients rely on that.
    """
    caller, error = require_token(request)
    if error:
        return None, error
    if not asserted_email:
        return None, json_private([] if when_absent is None else when_absent)
    if asserted_email != caller.email:
        logger.info("gate rejected reason=email_mismatch path=%s", request.url.path)
        return None, forbidden()
    if role is not None:
        return _require_membership(request, caller, role)
    return caller, None


def require_role(request: Request, role: str) -> Tuple[Optional[Caller], Optional[JSONResponse]]:
    """Token then role membership, for endpoints without an asserted email."""
    caller, error = require_token(request)
    if error:
        return None, error
    return _require_membership(request, caller, role)


def _require_membership(request: Request, caller: Caller, role: str) -> Tuple[Optional[Caller], Optional[JSONResponse]]:
    if not services(request).directory.has_role(caller.email, role):
        logger.info("gate rejected reason=role_required role=%s path=%s", role, request.url.path)
        return None, forbidden()
    return caller, None


def invalid_id(value: str) -> Optional[JSONResponse]:
    """Return a 400 response when `value` is not a record id."""
    if not is_record_id(value):
        return bad_request("invalid_id")
    return None


__all__ = [
    "Caller",
    "services",
    "json_private",
    "unauthorized",
    "forbidden",
    "not_found",
    "bad_request",
    "conflict",
    "require_token",
    "gate",
    "require_role",
    "invalid_id",
]
