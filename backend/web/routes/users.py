"""
Users (role directory) API routes: registration, admin listing, promotion and
role probes.

Why:
    The client registers every signed-in user once and asks the probes which
    dashboard to show. Admins list users and promote students to mentors or
    admins.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from backend.storage.ports import RecordNotFound

from ..guards import bad_request, gate, invalid_id, json_private, not_found, services

users_router = APIRouter(tags=["Users"])  # explicit paths below
logger = logging.getLogger("summer_school.web.users")


class UserRegistration(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None


@users_router.post("/users")
async def register_user(request: Request, payload: UserRegistration):
    """Register a user unless the email is already known.

    Behavior:
        - 200 `{"acknowledged": true, "insertedId": ...}` for a new email
        - 200 `{"message": "Already A registered Student"}` otherwise
        - 400 when the email is missing

    Permissions:
        Public. Roles in the body are ignored.
    """
    try:
        result = services(request).directory.register_if_absent(payload.model_dump())
    except ValueError as exc:
        return bad_request(str(exc))
    return json_private(result)


@users_router.get("/users")
async def list_users(request: Request, email: Optional[str] = None):
    """List all users.

    Permissions:
        Token, `email` must be the caller's, caller must be `admin`.
    """
    _, early = gate(request, email, role="admin")
    if early:
        return early
    return json_private(services(request).directory.list_users())


@users_router.put("/users/{user_id}")
async def promote_user(request: Request, user_id: str, email: Optional[str] = None, role: Optional[str] = None):
    """Set the role of an existing user.

    Behavior:
        - 200 with the update result
        - 400 for a malformed id or a role outside student/mentor/admin
        - 404 when no user has this id (no record is created)

    Permissions:
        Token, `email` must be the caller's, caller must be `admin`.
    """
    _, early = gate(request, email, role="admin")
    if early:
        return early
    bad = invalid_id(user_id)
    if bad:
        return bad
    try:
        result = services(request).directory.promote(user_id, role or "")
    except ValueError as exc:
        return bad_request(str(exc))
    except RecordNotFound:
        return not_found()
    return json_private(result)


@users_router.get("/users/admin/{email}")
async def probe_admin(request: Request, email: str):
    """Return `{"admin": bool}` for the caller.

    Permissions:
        Token, path `email` must be the caller's.
    """
    caller, early = gate(request, email)
    if early:
        return early
    return json_private({"admin": services(request).directory.is_admin(caller.email)})


@users_router.get("/users/mentor/{email}")
async def probe_mentor(request: Request, email: str):
    """Return `{"mentor": bool, "admin": bool}` for the caller.

    The `admin` key mirrors `mentor` for older clients that read the mentor
    probe through the same field as the admin probe.

    Permissions:
        Token, path `email` must be the caller's.
    """
    caller, early = gate(request, email)
    if early:
        return early
    is_mentor = services(request).directory.is_mentor(caller.email)
    return json_private({"mentor": is_mentor, "admin": is_mentor})
