"""Cart ledger: a student's selected courses and their enrollment marker."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from backend.catalog.domain import MAX_PRICE, parse_amount
from backend.storage.keys import is_record_id
from backend.storage.ports import CartRepoProtocol, CoursesRepoProtocol, OwnershipMismatch

logger = logging.getLogger("summer_school.enrollment.cart")


class CartLedger:
    def __init__(self, repo: CartRepoProtocol, courses: Optional[CoursesRepoProtocol] = None) -> None:
        self._repo = repo
        self._courses = courses

    def add(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a cart entry owned by `item["email"]`.

        Title, image and price missing from `item` are copied from the course
        when it is known. The enrollment marker always starts unset.
        """
        email = item.get("email")
        if not isinstance(email, str) or not email.strip():
            raise ValueError("invalid_email")
        course_id = item.get("course_id") or item.get("courseId")
        if not is_record_id(course_id):
            raise ValueError("invalid_course_id")
        course_id = str(course_id)
        course = self._courses.get_course(course_id) if self._courses is not None else None
        snapshot = course or {}
        price = item.get("price", snapshot.get("price"))
        if price is not None:
            price = parse_amount(price, "invalid_price", upper=MAX_PRICE)
        created = self._repo.insert_cart_item(
            email=email.strip(),
            course_id=course_id,
            course_title=item.get("course_title") or snapshot.get("course_title"),
            course_img=item.get("course_img") or snapshot.get("course_img"),
            price=price,
        )
        logger.debug("cart entry added id=%s course=%s", created["id"], course_id)
        return {"acknowledged": True, "insertedId": created["id"]}

    def remove(self, item_id: str, *, owner_email: Optional[str] = None) -> Dict[str, Any]:
        """Delete a cart entry.

        With `owner_email` the entry must belong to that email, otherwise
        `OwnershipMismatch` is raised. Unknown ids delete nothing.
        """
        if owner_email is not None:
            existing = self._repo.get_cart_item(item_id)
            if existing is None:
                return {"acknowledged": True, "deletedCount": 0}
            if existing["email"] != owner_email:
                raise OwnershipMismatch("cart_owner_mismatch")
        deleted = self._repo.delete_cart_item(item_id)
        return {"acknowledged": True, "deletedCount": deleted}

    def list_mine(self, email: str) -> List[Dict[str, Any]]:
        return self._repo.list_cart_items(email=email)

    def list_enrolled(self, email: str) -> List[Dict[str, Any]]:
        return self._repo.list_cart_items(email=email, enrolled_only=True)

    def get_mine(self, item_id: str, email: str) -> Optional[Dict[str, Any]]:
        item = self._repo.get_cart_item(item_id)
        if item is None or item["email"] != email:
            return None
        return item


__all__ = ["CartLedger"]
