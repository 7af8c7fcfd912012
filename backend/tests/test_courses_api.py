"""
Courses API: public listings, mentor authoring and admin moderation.
"""
from __future__ import annotations

from uuid import uuid4

import httpx
import pytest
from httpx import ASGITransport

pytestmark = pytest.mark.anyio("asyncio")

MENTOR = "m@example.org"
ADMIN = "root@example.org"


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def people(store):
    store.insert_user(email=MENTOR, name="Mentor", photo_url=None, role="mentor")
    store.insert_user(email=ADMIN, name="Root", photo_url=None, role="admin")
    store.insert_user(email="s@example.org", name="Student", photo_url=None, role=None)


def _course(store, title: str, *, status: str = "pending", enrolled: int = 0, seats: int = 10, mentor: str = MENTOR) -> str:
    course = store.insert_course(
        mentor_email=mentor, mentor_name=None, course_title=title, course_img=None, price=20.0, available_seats=seats
    )
    store.courses[course["id"]]["status"] = status
    store.courses[course["id"]]["enrolled"] = enrolled
    return course["id"]


async def test_public_listing_only_has_approved(app, store):
    _course(store, "A", status="approved")
    _course(store, "P", status="pending")
    _course(store, "D", status="denied")
    async with _client(app) as client:
        r = await client.get("/courses")
    assert r.status_code == 200
    assert [c["course_title"] for c in r.json()] == ["A"]


async def test_popular_is_top_six_approved_by_enrolled(app, store):
    for i in range(8):
        _course(store, f"C{i}", status="approved", enrolled=i)
    _course(store, "Pending but popular", status="pending", enrolled=100)
    async with _client(app) as client:
        r = await client.get("/courses/popular")
    body = r.json()
    assert len(body) == 6
    assert [c["enrolled"] for c in body] == [7, 6, 5, 4, 3, 2]
    assert all(c["status"] == "approved" for c in body)


async def test_admin_listing_has_every_status(app, store, people, auth_header):
    _course(store, "A", status="approved")
    _course(store, "P", status="pending")
    _course(store, "D", status="denied")
    async with _client(app) as client:
        r = await client.get("/courses/uncensored", params={"email": ADMIN}, headers=auth_header(ADMIN))
        denied = await client.get("/courses/uncensored", params={"email": MENTOR}, headers=auth_header(MENTOR))
    assert sorted(c["status"] for c in r.json()) == ["approved", "denied", "pending"]
    assert denied.status_code == 403


async def test_mentor_creates_pending_course(app, store, people, auth_header):
    payload = {"course_title": "Python 101", "course_img": "https://img/x.png", "price": 49.5, "available_seats": 12, "status": "approved", "enrolled": 99}
    async with _client(app) as client:
        r = await client.post("/courses", json=payload, headers=auth_header(MENTOR))
    assert r.status_code == 200
    course = store.get_course(r.json()["insertedId"])
    assert course["mentor_email"] == MENTOR
    assert course["status"] == "pending"
    assert course["enrolled"] == 0
    assert course["available_seats"] == 12


async def test_student_cannot_create_course(app, people, auth_header):
    async with _client(app) as client:
        r = await client.post(
            "/courses", json={"course_title": "X", "price": 1, "available_seats": 1}, headers=auth_header("s@example.org")
        )
    assert r.status_code == 403


async def test_mentor_cannot_create_course_for_someone_else(app, people, auth_header):
    async with _client(app) as client:
        r = await client.post(
            "/courses",
            json={"course_title": "X", "price": 1, "available_seats": 1, "mentor_email": "other@example.org"},
            headers=auth_header(MENTOR),
        )
    assert r.status_code == 403


async def test_create_course_validates_fields(app, people, auth_header):
    async with _client(app) as client:
        r = await client.post(
            "/courses", json={"course_title": "X", "price": -5, "available_seats": 1}, headers=auth_header(MENTOR)
        )
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_price"


async def test_mentor_lists_and_fetches_own_courses(app, store, people, auth_header):
    mine = _course(store, "Mine")
    theirs = _course(store, "Theirs", mentor="other@example.org")
    async with _client(app) as client:
        listing = await client.get("/courses/my-courses", params={"email": MENTOR}, headers=auth_header(MENTOR))
        one = await client.get(f"/courses/myClasses/{mine}", params={"email": MENTOR}, headers=auth_header(MENTOR))
        other = await client.get(f"/courses/myClasses/{theirs}", params={"email": MENTOR}, headers=auth_header(MENTOR))
    assert [c["id"] for c in listing.json()] == [mine]
    assert one.json()["course_title"] == "Mine"
    assert other.status_code == 200
    assert other.json() is None


async def test_mentor_updates_own_course(app, store, people, auth_header):
    cid = _course(store, "Old title")
    async with _client(app) as client:
        r = await client.put(
            "/courses/my-course",
            json={"_id": cid, "mentor_email": MENTOR, "course_title": "New title", "price": 30},
            headers=auth_header(MENTOR),
        )
    assert r.status_code == 200
    assert r.json()["modifiedCount"] == 1
    course = store.get_course(cid)
    assert course["course_title"] == "New title"
    assert course["price"] == 30
    assert course["available_seats"] == 10


async def test_mentor_update_of_foreign_or_missing_course_is_not_found(app, store, people, auth_header):
    theirs = _course(store, "Theirs", mentor="other@example.org")
    before = len(store.courses)
    async with _client(app) as client:
        foreign = await client.put(
            "/courses/my-course", json={"_id": theirs, "course_title": "Hijack"}, headers=auth_header(MENTOR)
        )
        missing = await client.put(
            "/courses/my-course", json={"_id": str(uuid4()), "course_title": "Ghost"}, headers=auth_header(MENTOR)
        )
    assert foreign.status_code == 404
    assert missing.status_code == 404
    assert len(store.courses) == before
    assert store.get_course(theirs)["course_title"] == "Theirs"


async def test_admin_denies_with_feedback_leaving_other_fields(app, store, people, auth_header):
    cid = _course(store, "Needs work")
    before = store.get_course(cid)
    async with _client(app) as client:
        s = await client.put(
            f"/courses/status/{cid}", params={"email": ADMIN}, json={"status": "denied"}, headers=auth_header(ADMIN)
        )
        f = await client.put(
            f"/courses/feedback/{cid}",
            params={"email": ADMIN},
            json={"feedback": "Add a syllabus"},
            headers=auth_header(ADMIN),
        )
    assert s.status_code == 200
    assert f.status_code == 200
    after = store.get_course(cid)
    assert after["status"] == "denied"
    assert after["feedback"] == "Add a syllabus"
    for key in ("course_title", "price", "available_seats", "enrolled", "mentor_email"):
        assert after[key] == before[key]


async def test_moderation_rejects_bad_status_and_unknown_course(app, store, people, auth_header):
    cid = _course(store, "C")
    async with _client(app) as client:
        bad = await client.put(
            f"/courses/status/{cid}", params={"email": ADMIN}, json={"status": "published"}, headers=auth_header(ADMIN)
        )
        missing = await client.put(
            f"/courses/status/{uuid4()}", params={"email": ADMIN}, json={"status": "approved"}, headers=auth_header(ADMIN)
        )
    assert bad.status_code == 400
    assert missing.status_code == 404
    assert store.get_course(cid)["status"] == "pending"


async def test_mentor_cannot_moderate(app, store, people, auth_header):
    cid = _course(store, "C")
    async with _client(app) as client:
        r = await client.put(
            f"/courses/status/{cid}", params={"email": MENTOR}, json={"status": "approved"}, headers=auth_header(MENTOR)
        )
    assert r.status_code == 403
    assert store.get_course(cid)["status"] == "pending"


@pytest.mark.parametrize(
    "body, code",
    [
        ('{"course_title": "X", "price": NaN, "available_seats": 3}', "invalid_price"),
        ('{"course_title": "X", "price": 1e999, "available_seats": 3}', "invalid_price"),
        ('{"course_title": "X", "price": 10, "available_seats": 1e999}', "invalid_available_seats"),
    ],
)
async def test_create_rejects_non_finite_numbers(app, store, people, auth_header, body, code):
    headers = {**auth_header(MENTOR), "Content-Type": "application/json"}
    async with _client(app) as client:
        r = await client.post("/courses", content=body, headers=headers)
        listing = await client.get("/courses")
    assert r.status_code == 400
    assert r.json()["detail"] == code
    assert store.courses == {}
    assert listing.status_code == 200


async def test_update_rejects_nan_price_and_keeps_listing_healthy(app, store, people, auth_header):
    cid = _course(store, "Live", status="approved")
    headers = {**auth_header(MENTOR), "Content-Type": "application/json"}
    async with _client(app) as client:
        r = await client.put("/courses/my-course", content=f'{{"_id": "{cid}", "price": NaN}}', headers=headers)
        listing = await client.get("/courses")
    assert r.status_code == 400
    assert store.get_course(cid)["price"] == 20.0
    assert listing.status_code == 200
    assert [c["id"] for c in listing.json()] == [cid]
