"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the CLI and the web layer.
- A user record without an explicit role is a student.
"""

from __future__ import annotations

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "mentor", "admin"})
DEFAULT_ROLE = "student"


def effective_role(record: dict | None) -> str | None:
    """Return the role of a user record; absent records have no role."""
    if not record:
        return None
    return record.get("role") or DEFAULT_ROLE


__all__ = ["ALLOWED_ROLES", "DEFAULT_ROLE", "effective_role"]
