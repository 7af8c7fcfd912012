"""
In-memory marketplace store for tests and local offline work.

Why:
    Mirrors the psycopg-backed store record for record so the web adapter and
    services can be exercised without Postgres. Records are copied on the way
    in and out; callers never hold references into the store.

Concurrency:
    Request handlers run on one event loop and none of these methods awaits,
    so a settlement validates everything first and then applies its three
    writes without a suspension point in between.
"""
from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend.catalog.domain import MENTOR_EDITABLE_FIELDS, MODERATION_FIELDS, STATUS_PENDING
from backend.enrollment.domain import ENROLLED_MARKER

from .keys import new_record_id
from .ports import AlreadyEnrolled, OwnershipMismatch, RecordNotFound, SeatsExhausted


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _copy(record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return copy.deepcopy(record) if record is not None else None


class InMemoryStore:
    def __init__(self) -> None:
        self.users: Dict[str, Dict[str, Any]] = {}
        self.courses: Dict[str, Dict[str, Any]] = {}
        self.cart_items: Dict[str, Dict[str, Any]] = {}
        self.payments: Dict[str, Dict[str, Any]] = {}

    # --- Users -----------------------------------------------------------------
    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for user in self.users.values():
            if user["email"] == email:
                return _copy(user)
        return None

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return _copy(self.users.get(user_id))

    def insert_user(self, *, email: str, name: Optional[str], photo_url: Optional[str], role: Optional[str]) -> Optional[Dict[str, Any]]:
        if any(u["email"] == email for u in self.users.values()):
            return None
        uid = new_record_id()
        record = {
            "id": uid,
            "email": email,
            "name": name,
            "photo_url": photo_url,
            "role": role,
            "created_at": _now_iso(),
        }
        self.users[uid] = record
        return _copy(record)

    def set_user_role(self, user_id: str, role: str) -> Optional[Dict[str, Any]]:
        user = self.users.get(user_id)
        if user is None:
            return None
        user["role"] = role
        return _copy(user)

    def list_users(self) -> List[Dict[str, Any]]:
        return [_copy(u) for u in self.users.values()]

    # --- Courses ---------------------------------------------------------------
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
        cid = new_record_id()
        record = {
            "id": cid,
            "mentor_email": mentor_email,
            "mentor_name": mentor_name,
            "course_title": course_title,
            "course_img": course_img,
            "price": price,
            "available_seats": available_seats,
            "enrolled": 0,
            "status": STATUS_PENDING,
            "feedback": None,
            "created_at": _now_iso(),
        }
        self.courses[cid] = record
        return _copy(record)

    def list_courses(self, *, status: Optional[str] = None, mentor_email: Optional[str] = None) -> List[Dict[str, Any]]:
        items = list(self.courses.values())
        if status is not None:
            items = [c for c in items if c["status"] == status]
        if mentor_email is not None:
            items = [c for c in items if c["mentor_email"] == mentor_email]
        return [_copy(c) for c in items]

    def list_popular_courses(self, *, status: str, limit: int) -> List[Dict[str, Any]]:
        items = [c for c in self.courses.values() if c["status"] == status]
        # sorted() is stable: ties keep insertion order like the DB's created_at tiebreak
        items = sorted(items, key=lambda c: int(c.get("enrolled") or 0), reverse=True)
        return [_copy(c) for c in items[:limit]]

    def get_course(self, course_id: str) -> Optional[Dict[str, Any]]:
        return _copy(self.courses.get(course_id))

    def get_course_for_mentor(self, course_id: str, mentor_email: str) -> Optional[Dict[str, Any]]:
        course = self.courses.get(course_id)
        if course is None or course["mentor_email"] != mentor_email:
            return None
        return _copy(course)

    def update_course_owned(self, course_id: str, mentor_email: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        course = self.courses.get(course_id)
        if course is None or course["mentor_email"] != mentor_email:
            return None
        for key, value in fields.items():
            if key not in MENTOR_EDITABLE_FIELDS:
                raise ValueError(f"invalid_{key}")
            course[key] = value
        return _copy(course)

    def set_course_moderation(self, course_id: str, field: str, value: Optional[str]) -> Optional[Dict[str, Any]]:
        if field not in MODERATION_FIELDS:
            raise ValueError(f"invalid_{field}")
        course = self.courses.get(course_id)
        if course is None:
            return None
        course[field] = value
        return _copy(course)

    # --- Cart ------------------------------------------------------------------
    def insert_cart_item(
        self,
        *,
        email: str,
        course_id: str,
        course_title: Optional[str],
        course_img: Optional[str],
        price: Optional[float],
    ) -> Dict[str, Any]:
        iid = new_record_id()
        record = {
            "id": iid,
            "email": email,
            "course_id": course_id,
            "course_title": course_title,
            "course_img": course_img,
            "price": price,
            "enrolled": None,
            "created_at": _now_iso(),
        }
        self.cart_items[iid] = record
        return _copy(record)

    def get_cart_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        return _copy(self.cart_items.get(item_id))

    def list_cart_items(self, *, email: str, enrolled_only: bool = False) -> List[Dict[str, Any]]:
        items = [i for i in self.cart_items.values() if i["email"] == email]
        if enrolled_only:
            items = [i for i in items if i["enrolled"] == ENROLLED_MARKER]
        return [_copy(i) for i in items]

    def delete_cart_item(self, item_id: str) -> int:
        return 1 if self.cart_items.pop(item_id, None) is not None else 0

    # --- Payments --------------------------------------------------------------
    def list_payments(self, *, email: str) -> List[Dict[str, Any]]:
        items = [p for p in self.payments.values() if p["email"] == email]
        items.sort(key=lambda p: p["date"], reverse=True)
        return [_copy(p) for p in items]

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
        item = self.cart_items.get(cart_id)
        if item is None:
            raise RecordNotFound("cart_item", cart_id)
        if item["email"] != payer_email:
            raise OwnershipMismatch("cart_owner_mismatch")
        if item["course_id"] != course_id:
            raise OwnershipMismatch("cart_course_mismatch")
        if item["enrolled"] == ENROLLED_MARKER:
            raise AlreadyEnrolled(cart_id)
        course = self.courses.get(course_id)
        if course is None:
            raise RecordNotFound("course", course_id)
        if int(course.get("available_seats") or 0) <= 0:
            raise SeatsExhausted(course_id)

        pid = new_record_id()
        payment = {
            "id": pid,
            "email": payer_email,
            "amount": amount,
            "cart_id": cart_id,
            "course_id": course_id,
            "transaction_id": transaction_id,
            "date": paid_at,
        }
        self.payments[pid] = payment
        item["enrolled"] = ENROLLED_MARKER
        course["available_seats"] = int(course["available_seats"]) - 1
        course["enrolled"] = int(course.get("enrolled") or 0) + 1
        return {"payment": _copy(payment), "cart_item": _copy(item), "course": _copy(course)}


__all__ = ["InMemoryStore"]
