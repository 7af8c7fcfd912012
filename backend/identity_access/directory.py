"""
Role directory: user registration and role lookup backed by the user store.

Why:
    Every guarded endpoint resolves the caller's role per request instead of
    trusting a claim inside the token, so a promotion takes effect on the next
    request. This service is the only writer of user records besides the
    operator CLI.

Semantics:
    - One record per email; a second registration is a no-op.
    - A record without a role is a student.
    - Promotion updates existing records only; an unknown id is an error.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from backend.storage.ports import RecordNotFound, UsersRepoProtocol

from .domain import ALLOWED_ROLES, effective_role

logger = logging.getLogger("summer_school.identity_access.directory")

ALREADY_REGISTERED_MESSAGE = "Already A registered Student"


class RoleDirectory:
    def __init__(self, repo: UsersRepoProtocol) -> None:
        self._repo = repo

    def register_if_absent(self, user: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a user unless the email is already known.

        Returns the insert acknowledgement, or the informational message when
        a record with this email exists. New records carry no role (student);
        a `role` in `user` is ignored, only `promote` grants roles. Raises
        `ValueError("invalid_email")` for a missing email.
        """
        email = user.get("email")
        if not isinstance(email, str) or not email.strip():
            raise ValueError("invalid_email")
        created = self._repo.insert_user(
            email=email.strip(),
            name=_opt_str(user.get("name")),
            photo_url=_opt_str(user.get("photo_url") or user.get("photoURL")),
            role=None,
        )
        if created is None:
            logger.debug("registration skipped, email already known")
            return {"message": ALREADY_REGISTERED_MESSAGE}
        logger.info("user registered id=%s", created["id"])
        return {"acknowledged": True, "insertedId": created["id"]}

    def lookup_role(self, email: Optional[str]) -> Optional[str]:
        if not email:
            return None
        return effective_role(self._repo.find_user_by_email(email))

    def has_role(self, email: Optional[str], role: str) -> bool:
        return self.lookup_role(email) == role

    def is_admin(self, email: Optional[str]) -> bool:
        return self.has_role(email, "admin")

    def is_mentor(self, email: Optional[str]) -> bool:
        return self.has_role(email, "mentor")

    def promote(self, user_id: str, role: str) -> Dict[str, Any]:
        """Set the role of an existing user record.

        Raises `ValueError("invalid_role")` for an unknown role and
        `RecordNotFound` when no user has this id.
        """
        if role not in ALLOWED_ROLES:
            raise ValueError("invalid_role")
        existing = self._repo.get_user(user_id)
        if existing is None:
            raise RecordNotFound("user", user_id)
        updated = self._repo.set_user_role(user_id, role)
        if updated is None:
            raise RecordNotFound("user", user_id)
        logger.info("role changed id=%s role=%s", user_id, role)
        modified = 0 if existing.get("role") == role else 1
        return {"acknowledged": True, "matchedCount": 1, "modifiedCount": modified}

    def grant_by_email(self, email: str, role: str) -> Dict[str, Any]:
        """Promote the user registered under `email`; used by the operator CLI."""
        record = self._repo.find_user_by_email(email)
        if record is None:
            raise RecordNotFound("user", email)
        return self.promote(record["id"], role)

    def list_users(self) -> List[Dict[str, Any]]:
        return self._repo.list_users()


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = ["ALREADY_REGISTERED_MESSAGE", "RoleDirectory"]
