"""
Store ports shared by the identity, catalog and enrollment contexts.

Why:
    Every service receives its store at construction time instead of reaching
    for a global connection. Keeping the contracts as Protocols lets tests hand
    in the in-memory store while production wires the psycopg-backed one.

Records:
    Stores return plain dicts (JSON-ready, ids as strings) so the web adapter
    stays independent of the persistence technology.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class StoreError(Exception):
    """Base class for store-level domain errors carrying a machine code."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class RecordNotFound(StoreError):
    """Raised when an update or settlement references a record that does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind}_not_found")
        self.kind = kind
        self.record_id = record_id


class SeatsExhausted(StoreError):
    """Raised when a course has no seat left to decrement."""

    def __init__(self, course_id: str):
        super().__init__("seats_exhausted")
        self.course_id = course_id


class AlreadyEnrolled(StoreError):
    """Raised when a cart entry is settled a second time."""

    def __init__(self, cart_id: str):
        super().__init__("already_enrolled")
        self.cart_id = cart_id


class OwnershipMismatch(StoreError):
    """Raised when a record does not belong to the caller (or to the referenced course)."""

    def __init__(self, detail: str = "owner_mismatch"):
        super().__init__(detail)


class UsersRepoProtocol(Protocol):
    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    def insert_user(self, *, email: str, name: Optional[str], photo_url: Optional[str], role: Optional[str]) -> Optional[Dict[str, Any]]:
        """Insert a user unless one with this email exists; returns None on conflict."""
        ...

    def set_user_role(self, user_id: str, role: str) -> Optional[Dict[str, Any]]:
        ...

    def list_users(self) -> List[Dict[str, Any]]:
        ...


class CoursesRepoProtocol(Protocol):
    def insert_course(
        self,
        *,
        mentor_email: str,
        mentor_name: Optional[str],
        course_title: str,
        course_img: Optional[str],
        price: float,
        available_seats: int,
    ) -> Dict[str, Any]:
        ...

    def list_courses(self, *, status: Optional[str] = None, mentor_email: Optional[str] = None) -> List[Dict[str, Any]]:
        ...

    def list_popular_courses(self, *, status: str, limit: int) -> List[Dict[str, Any]]:
        ...

    def get_course(self, course_id: str) -> Optional[Dict[str, Any]]:
        ...

    def get_course_for_mentor(self, course_id: str, mentor_email: str) -> Optional[Dict[str, Any]]:
        ...

    def update_course_owned(self, course_id: str, mentor_email: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def set_course_moderation(self, course_id: str, field: str, value: Optional[str]) -> Optional[Dict[str, Any]]:
        ...


class CartRepoProtocol(Protocol):
    def insert_cart_item(
        self,
        *,
        email: str,
        course_id: str,
        course_title: Optional[str],
        course_img: Optional[str],
        price: Optional[float],
    ) -> Dict[str, Any]:
        ...

    def get_cart_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list_cart_items(self, *, email: str, enrolled_only: bool = False) -> List[Dict[str, Any]]:
        ...

    def delete_cart_item(self, item_id: str) -> int:
        ...


class PaymentsRepoProtocol(Protocol):
    def list_payments(self, *, email: str) -> List[Dict[str, Any]]:
        ...

    def settle_payment(
        self,
        *,
        payer_email: str,
        cart_id: str,
        course_id: str,
        amount: float,
        transaction_id: Optional[str],
        paid_at: str,
    ) -> Dict[str, Any]:
        """Record the payment, enroll the cart entry and take one seat atomically.

        Returns a mapping with keys `payment`, `cart_item` and `course` holding
        the records after the transition. Raises `RecordNotFound`,
        `OwnershipMismatch`, `AlreadyEnrolled` or `SeatsExhausted` before any
        state is changed.
        """
        ...


class MarketplaceStore(UsersRepoProtocol, CoursesRepoProtocol, CartRepoProtocol, PaymentsRepoProtocol, Protocol):
    """One logical document store holding users, courses, cart items and payments."""


__all__ = [
    "StoreError",
    "RecordNotFound",
    "SeatsExhausted",
    "AlreadyEnrolled",
    "OwnershipMismatch",
    "UsersRepoProtocol",
    "CoursesRepoProtocol",
    "CartRepoProtocol",
    "PaymentsRepoProtocol",
    "MarketplaceStore",
]
