"""
Token issuing route (router-only module).

Why:
    Clients sign users in with an external identity provider and then trade
    the user's profile for a bearer token accepted by every guarded endpoint.

Security:
    - The token carries the posted claims verbatim plus `iat`/`exp`; roles
      are never taken from the token but looked up per request.
    - Tokens are never logged.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from backend.identity_access.tokens import TokenVerificationError

from ..guards import bad_request, json_private, services

auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("summer_school.web.auth")


class TokenRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None


@auth_router.post("/jwt")
async def issue_token(request: Request, payload: TokenRequest):
    """Issue a bearer token for the posted claims.

    Behavior:
        - 200 `{"token": ...}` valid for the configured window (24h default)
        - 400 when the payload carries no email

    Permissions:
        Public.
    """
    try:
        token = services(request).tokens.issue(payload.model_dump(exclude_none=True))
    except TokenVerificationError as exc:
        return bad_request(exc.code)
    logger.debug("token issued")
    return json_private({"token": token})
