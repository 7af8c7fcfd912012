"""
Helpers for record identifiers.

Conventions:
    - Every record id is a random UUID rendered as a lowercase string.
    - Path parameters are validated before they reach a store so malformed
      ids answer 400 instead of surfacing a driver error.
"""
from __future__ import annotations

from uuid import UUID, uuid4


def new_record_id() -> str:
    return str(uuid4())


def is_record_id(value: object) -> bool:
    """Best-effort UUID format check without coercing FastAPI to return 422."""
    try:
        UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True


__all__ = ["new_record_id", "is_record_id"]
