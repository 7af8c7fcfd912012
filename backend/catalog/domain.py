"""
Catalog domain constants.

Courses enter the catalog as `pending` and only `approved` courses are
visible to the public listings.
"""

from __future__ import annotations

import math
from typing import Any

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DENIED = "denied"
COURSE_STATUSES = frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_DENIED})

# Fields an owning mentor may edit; counters and moderation stay out of reach.
MENTOR_EDITABLE_FIELDS = ("course_title", "course_img", "price", "available_seats")
MODERATION_FIELDS = frozenset({"status", "feedback"})

POPULAR_LIMIT = 6

# Largest value a numeric(12, 2) column holds.
MAX_PRICE = 9_999_999_999.99
MAX_SEATS = 100_000


def parse_amount(value: Any, code: str, *, upper: float) -> float:
    """Return `value` as a finite float in `[0, upper]` or raise `ValueError(code)`.

    JSON bodies may carry `NaN` or `1e999` (infinity); both are rejected here
    so they never reach storage or a JSON response.
    """
    # bool is an int subclass; reject it explicitly
    if value is None or isinstance(value, bool):
        raise ValueError(code)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(code)
    if not math.isfinite(number) or number < 0 or number > upper:
        raise ValueError(code)
    return number


__all__ = [
    "STATUS_PENDING",
    "STATUS_APPROVED",
    "STATUS_DENIED",
    "COURSE_STATUSES",
    "MENTOR_EDITABLE_FIELDS",
    "MODERATION_FIELDS",
    "POPULAR_LIMIT",
    "MAX_PRICE",
    "MAX_SEATS",
    "parse_amount",
]
