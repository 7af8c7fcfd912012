"""
Service-layer unit tests without FastAPI: catalog validation, settlement
payload parsing and charge amounts, role directory semantics.
"""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from backend.catalog.service import CourseCatalog
from backend.enrollment.settlement import PaymentDetails, PaymentSettlement, to_minor_units
from backend.identity_access.directory import RoleDirectory
from backend.storage.memory import InMemoryStore
from backend.storage.ports import RecordNotFound
from conftest import FakeChargeGateway


@pytest.mark.parametrize(
    "data, code",
    [
        ({"price": 10, "available_seats": 5}, "invalid_course_title"),
        ({"course_title": "  ", "price": 10, "available_seats": 5}, "invalid_course_title"),
        ({"course_title": "T", "price": "free", "available_seats": 5}, "invalid_price"),
        ({"course_title": "T", "price": True, "available_seats": 5}, "invalid_price"),
        ({"course_title": "T", "price": 10, "available_seats": 2.5}, "invalid_available_seats"),
        ({"course_title": "T", "price": 10, "available_seats": -1}, "invalid_available_seats"),
        ({"course_title": "T", "price": 10}, "invalid_available_seats"),
        ({"course_title": "T", "price": float("nan"), "available_seats": 5}, "invalid_price"),
        ({"course_title": "T", "price": float("inf"), "available_seats": 5}, "invalid_price"),
        ({"course_title": "T", "price": 1e12, "available_seats": 5}, "invalid_price"),
        ({"course_title": "T", "price": 10, "available_seats": float("inf")}, "invalid_available_seats"),
        ({"course_title": "T", "price": 10, "available_seats": 10**7}, "invalid_available_seats"),
    ],
)
def test_catalog_create_validation(data, code):
    catalog = CourseCatalog(InMemoryStore())
    with pytest.raises(ValueError) as exc:
        catalog.create(mentor_email="m@x.com", mentor_name=None, data=data)
    assert str(exc.value) == code


def test_catalog_partial_update_reports_unchanged():
    store = InMemoryStore()
    catalog = CourseCatalog(store)
    course = catalog.create(mentor_email="m@x.com", mentor_name=None, data={"course_title": "T", "price": 10, "available_seats": 3})
    same = catalog.update_owned(course["id"], "m@x.com", {"price": 10})
    assert same["modifiedCount"] == 0
    with pytest.raises(RecordNotFound):
        catalog.update_owned(course["id"], "other@x.com", {"price": 11})


def test_minor_units_rounding():
    assert to_minor_units(19.99) == 1999
    assert to_minor_units(0.1 + 0.2) == 30
    assert to_minor_units(100) == 10000


def test_payment_details_accepts_both_spellings_and_dates():
    cart, course = str(uuid4()), str(uuid4())
    camel = PaymentDetails.from_payload({"cartId": cart, "courseId": course, "price": "12.5", "date": "2024-05-01T08:00:00Z"})
    snake = PaymentDetails.from_payload({"cart_id": cart, "course_id": course, "price": 12.5})
    assert camel.cart_id == snake.cart_id == cart
    assert camel.price == 12.5
    assert camel.paid_at == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
    assert snake.paid_at is None


@pytest.mark.parametrize(
    "payload, code",
    [
        ({"courseId": "c", "price": 1}, "invalid_cart_id"),
        ({"cartId": str(uuid4()), "price": 1}, "invalid_course_id"),
        ({"cartId": str(uuid4()), "courseId": str(uuid4())}, "invalid_price"),
        ({"cartId": str(uuid4()), "courseId": str(uuid4()), "price": float("nan")}, "invalid_price"),
        ({"cartId": str(uuid4()), "courseId": str(uuid4()), "price": "inf"}, "invalid_price"),
        ({"cartId": str(uuid4()), "courseId": str(uuid4()), "price": 1, "date": "yesterday"}, "invalid_date"),
    ],
)
def test_payment_details_validation(payload, code):
    with pytest.raises(ValueError) as exc:
        PaymentDetails.from_payload(payload)
    assert str(exc.value) == code


@pytest.mark.parametrize("price", [float("nan"), float("inf"), 1e999, 1e12])
def test_charge_intent_rejects_non_finite_or_huge_price(price):
    charges = FakeChargeGateway()
    settlement = PaymentSettlement(InMemoryStore(), charges)
    with pytest.raises(ValueError) as exc:
        settlement.create_charge_intent(price)
    assert str(exc.value) == "invalid_price"
    assert charges.calls == []


def test_settlement_stamps_now_when_date_missing():
    store = InMemoryStore()
    course = store.insert_course(mentor_email="m@x.com", mentor_name=None, course_title="C", course_img=None, price=5, available_seats=2)
    item = store.insert_cart_item(email="a@x.com", course_id=course["id"], course_title="C", course_img=None, price=5)
    fixed = datetime(2025, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
    settlement = PaymentSettlement(store, FakeChargeGateway(), now=lambda: fixed)
    out = settlement.settle("a@x.com", PaymentDetails(cart_id=item["id"], course_id=course["id"], price=5))
    assert out["updateSeats"]["available_seats"] == 1
    assert settlement.history("a@x.com")[0]["date"] == fixed.isoformat()


def test_directory_defaults_and_promotion():
    store = InMemoryStore()
    directory = RoleDirectory(store)
    result = directory.register_if_absent({"email": " s@x.com ", "photoURL": "https://p/x.png"})
    user = store.get_user(result["insertedId"])
    assert user["email"] == "s@x.com"
    assert user["photo_url"] == "https://p/x.png"
    assert directory.lookup_role("s@x.com") == "student"
    assert directory.lookup_role("ghost@x.com") is None
    assert directory.promote(user["id"], "mentor")["modifiedCount"] == 1
    assert directory.is_mentor("s@x.com")
    with pytest.raises(ValueError):
        directory.promote(user["id"], "owner")
    with pytest.raises(RecordNotFound):
        directory.promote(str(uuid4()), "mentor")
