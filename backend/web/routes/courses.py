"""
Course catalog API routes: public listings, mentor authoring and admin
moderation.

Why:
    Mentors publish courses that stay `pending` until an admin approves them;
    students only ever see approved courses.

Security:
    - Mentor endpoints derive the owner from the token; a body claiming
      another mentor is rejected.
    - All guarded responses are `private, no-store`.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from backend.storage.ports import RecordNotFound

from ..guards import bad_request, forbidden, gate, invalid_id, json_private, not_found, require_role, services

courses_router = APIRouter(tags=["Courses"])
logger = logging.getLogger("summer_school.web.courses")


class CourseCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    course_title: Any = None
    course_img: Optional[str] = None
    price: Any = None
    available_seats: Any = None
    mentor_email: Optional[str] = None
    mentor_name: Optional[str] = None


class CourseUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    mentor_email: Optional[str] = None
    course_title: Any = None
    course_img: Optional[str] = None
    price: Any = None
    available_seats: Any = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class FeedbackUpdate(BaseModel):
    feedback: Optional[str] = None


@courses_router.get("/courses")
async def list_approved_courses(request: Request):
    """List approved courses (public)."""
    return JSONResponse(services(request).catalog.list_public())


@courses_router.get("/courses/popular")
async def list_popular_courses(request: Request):
    """Top six approved courses by enrollment count (public)."""
    return JSONResponse(services(request).catalog.list_popular())


@courses_router.get("/courses/uncensored")
async def list_all_courses(request: Request, email: Optional[str] = None):
    """List courses of every status.

    Permissions:
        Token, `email` must be the caller's, caller must be `admin`.
    """
    _, early = gate(request, email, role="admin")
    if early:
        return early
    return json_private(services(request).catalog.list_all())


@courses_router.put("/courses/status/{course_id}")
async def moderate_status(request: Request, course_id: str, payload: StatusUpdate, email: Optional[str] = None):
    """Set the moderation status (`pending`, `approved`, `denied`).

    Behavior:
        - 200 with the update result; other fields are untouched
        - 400 for a malformed id or unknown status
        - 404 when the course does not exist

    Permissions:
        Token, `email` must be the caller's, caller must be `admin`.
    """
    _, early = gate(request, email, role="admin")
    if early:
        return early
    bad = invalid_id(course_id)
    if bad:
        return bad
    try:
        result = services(request).catalog.set_status(course_id, payload.status)
    except ValueError as exc:
        return bad_request(str(exc))
    except RecordNotFound:
        return not_found()
    return json_private(result)


@courses_router.put("/courses/feedback/{course_id}")
async def moderate_feedback(request: Request, course_id: str, payload: FeedbackUpdate, email: Optional[str] = None):
    """Set the admin feedback shown to the mentor.

    Permissions:
        Token, `email` must be the caller's, caller must be `admin`.
    """
    _, early = gate(request, email, role="admin")
    if early:
        return early
    bad = invalid_id(course_id)
    if bad:
        return bad
    try:
        result = services(request).catalog.set_feedback(course_id, payload.feedback)
    except ValueError as exc:
        return bad_request(str(exc))
    except RecordNotFound:
        return not_found()
    return json_private(result)


@courses_router.post("/courses")
async def create_course(request: Request, payload: CourseCreate):
    """Create a pending course owned by the calling mentor.

    Behavior:
        - 200 `{"acknowledged": true, "insertedId": ...}`
        - 400 on invalid title, price or seats
        - 403 when `mentor_email` in the body names someone else

    Permissions:
        Token, caller must be `mentor`.
    """
    caller, error = require_role(request, "mentor")
    if error:
        return error
    if payload.mentor_email and payload.mentor_email != caller.email:
        return forbidden()
    try:
        course = services(request).catalog.create(
            mentor_email=caller.email,
            mentor_name=payload.mentor_name or caller.claims.get("name"),
            data=payload.model_dump(),
        )
    except ValueError as exc:
        return bad_request(str(exc))
    return json_private({"acknowledged": True, "insertedId": course["id"]})


@courses_router.get("/courses/my-courses")
async def list_my_courses(request: Request, email: Optional[str] = None):
    """List the calling mentor's courses of every status.

    Permissions:
        Token, `email` must be the caller's, caller must be `mentor`.
    """
    caller, early = gate(request, email, role="mentor")
    if early:
        return early
    return json_private(services(request).catalog.list_for_mentor(caller.email))


@courses_router.get("/courses/myClasses/{course_id}")
async def get_my_course(request: Request, course_id: str, email: Optional[str] = None):
    """Fetch one of the calling mentor's courses; `null` when it is not theirs.

    Permissions:
        Token, `email` must be the caller's, caller must be `mentor`.
    """
    caller, early = gate(request, email, role="mentor")
    if early:
        return early
    bad = invalid_id(course_id)
    if bad:
        return bad
    return json_private(services(request).catalog.get_for_mentor(course_id, caller.email))


@courses_router.put("/courses/my-course")
async def update_my_course(request: Request, payload: CourseUpdate):
    """Edit title, image, price or seats of a course the caller owns.

    Behavior:
        - 200 with the update result; fields absent from the body stay as they are
        - 400 for a malformed id or invalid values
        - 403 when `mentor_email` in the body names someone else
        - 404 when the caller owns no course with this id (no record is created)

    Permissions:
        Token, caller must be `mentor`.
    """
    caller, error = require_role(request, "mentor")
    if error:
        return error
    if payload.mentor_email and payload.mentor_email != caller.email:
        return forbidden()
    bad = invalid_id(payload.id or "")
    if bad:
        return bad
    fields = payload.model_dump(exclude={"id", "mentor_email"}, exclude_none=True)
    try:
        result = services(request).catalog.update_owned(payload.id, caller.email, fields)
    except ValueError as exc:
        return bad_request(str(exc))
    except RecordNotFound:
        return not_found()
    return json_private(result)
