"""Course catalog service layer (Clean Architecture boundary).

Why:
    Encapsulates course listing, mentor authoring and admin moderation so the
    web adapter only translates HTTP and the validation rules can be unit
    tested without FastAPI.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from backend.storage.ports import CoursesRepoProtocol, RecordNotFound

from .domain import (
    COURSE_STATUSES,
    MAX_PRICE,
    MAX_SEATS,
    MENTOR_EDITABLE_FIELDS,
    POPULAR_LIMIT,
    STATUS_APPROVED,
    parse_amount,
)

logger = logging.getLogger("summer_school.catalog.service")

MAX_TITLE_LEN = 200


class CourseCatalog:
    def __init__(self, repo: CoursesRepoProtocol) -> None:
        self._repo = repo

    # --- Reads -------------------------------------------------------------------
    def list_public(self) -> List[Dict[str, Any]]:
        return self._repo.list_courses(status=STATUS_APPROVED)

    def list_popular(self) -> List[Dict[str, Any]]:
        return self._repo.list_popular_courses(status=STATUS_APPROVED, limit=POPULAR_LIMIT)

    def list_all(self) -> List[Dict[str, Any]]:
        return self._repo.list_courses()

    def list_for_mentor(self, mentor_email: str) -> List[Dict[str, Any]]:
        return self._repo.list_courses(mentor_email=mentor_email)

    def get_for_mentor(self, course_id: str, mentor_email: str) -> Optional[Dict[str, Any]]:
        return self._repo.get_course_for_mentor(course_id, mentor_email)

    # --- Mentor writes -----------------------------------------------------------
    def create(self, *, mentor_email: str, mentor_name: Optional[str], data: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a pending course owned by `mentor_email`.

        Raises `ValueError("invalid_<field>")` on bad input; status, counters
        and feedback in `data` are ignored.
        """
        fields = _validate_course_fields(data, partial=False)
        course = self._repo.insert_course(
            mentor_email=mentor_email,
            mentor_name=mentor_name,
            course_title=fields["course_title"],
            course_img=fields.get("course_img"),
            price=fields["price"],
            available_seats=fields["available_seats"],
        )
        logger.info("course created id=%s", course["id"])
        return course

    def update_owned(self, course_id: str, mentor_email: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Edit the core fields of a course the mentor owns.

        Only keys present in `data` change. Raises `RecordNotFound` when no
        course matches both id and owner.
        """
        fields = _validate_course_fields(data, partial=True)
        existing = self._repo.get_course_for_mentor(course_id, mentor_email)
        if existing is None:
            raise RecordNotFound("course", course_id)
        updated = self._repo.update_course_owned(course_id, mentor_email, fields)
        if updated is None:
            raise RecordNotFound("course", course_id)
        modified = int(any(existing.get(k) != v for k, v in fields.items()))
        return {"acknowledged": True, "matchedCount": 1, "modifiedCount": modified}

    # --- Admin moderation --------------------------------------------------------
    def set_status(self, course_id: str, status: Any) -> Dict[str, Any]:
        if status not in COURSE_STATUSES:
            raise ValueError("invalid_status")
        return self._moderate(course_id, "status", status)

    def set_feedback(self, course_id: str, feedback: Any) -> Dict[str, Any]:
        if feedback is not None and not isinstance(feedback, str):
            raise ValueError("invalid_feedback")
        return self._moderate(course_id, "feedback", feedback)

    def _moderate(self, course_id: str, field: str, value: Optional[str]) -> Dict[str, Any]:
        existing = self._repo.get_course(course_id)
        if existing is None:
            raise RecordNotFound("course", course_id)
        updated = self._repo.set_course_moderation(course_id, field, value)
        if updated is None:
            raise RecordNotFound("course", course_id)
        logger.info("course moderated id=%s field=%s", course_id, field)
        modified = 0 if existing.get(field) == value else 1
        return {"acknowledged": True, "matchedCount": 1, "modifiedCount": modified}


def _validate_course_fields(data: Mapping[str, Any], *, partial: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in MENTOR_EDITABLE_FIELDS:
        if key not in data or data[key] is None:
            if not partial and key != "course_img":
                raise ValueError(f"invalid_{key}")
            continue
        value = data[key]
        if key == "course_title":
            if not isinstance(value, str) or not value.strip() or len(value.strip()) > MAX_TITLE_LEN:
                raise ValueError("invalid_course_title")
            value = value.strip()
        elif key == "course_img":
            if not isinstance(value, str):
                raise ValueError("invalid_course_img")
        elif key == "price":
            value = parse_amount(value, "invalid_price", upper=MAX_PRICE)
        elif key == "available_seats":
            value = parse_amount(value, "invalid_available_seats", upper=MAX_SEATS)
            if int(value) != value:
                raise ValueError("invalid_available_seats")
            value = int(value)
        out[key] = value
    return out


__all__ = ["CourseCatalog"]
