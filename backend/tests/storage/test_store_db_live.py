"""
Postgres store against a live database (skips when none is reachable).

Runs in a throwaway schema so existing tables are never touched.
"""
from __future__ import annotations

from uuid import uuid4

import pytest

from backend.storage.bootstrap import ensure_schema
from backend.storage.ports import AlreadyEnrolled, SeatsExhausted
from utils.db import require_db_or_skip


@pytest.fixture
def db_store():
    dsn = require_db_or_skip()
    import psycopg
    from psycopg.conninfo import make_conninfo

    from backend.storage.repo_db import DBMarketplaceStore

    schema = f"ss_test_{uuid4().hex[:12]}"
    with psycopg.connect(dsn) as conn:
        conn.execute(f"create schema {schema}")
    scoped = make_conninfo(dsn, options=f"-csearch_path={schema}")
    try:
        ensure_schema(scoped)
        ensure_schema(scoped)  # idempotent
        yield DBMarketplaceStore(dsn=scoped)
    finally:
        with psycopg.connect(dsn) as conn:
            conn.execute(f"drop schema {schema} cascade")


def test_user_registration_is_unique(db_store):
    first = db_store.insert_user(email="a@x.com", name="A", photo_url=None, role=None)
    assert first["email"] == "a@x.com"
    assert db_store.insert_user(email="a@x.com", name="B", photo_url=None, role=None) is None
    assert db_store.set_user_role(first["id"], "mentor")["role"] == "mentor"
    assert db_store.set_user_role(str(uuid4()), "mentor") is None


def test_settlement_round_trip_and_seat_floor(db_store):
    course = db_store.insert_course(
        mentor_email="m@x.com", mentor_name=None, course_title="C", course_img=None, price=10, available_seats=1
    )
    first = db_store.insert_cart_item(email="a@x.com", course_id=course["id"], course_title="C", course_img=None, price=10)
    second = db_store.insert_cart_item(email="a@x.com", course_id=course["id"], course_title="C", course_img=None, price=10)

    out = db_store.settle_payment(
        payer_email="a@x.com",
        cart_id=first["id"],
        course_id=course["id"],
        amount=10,
        transaction_id="t1",
        paid_at="2024-01-01T00:00:00+00:00",
    )
    assert out["course"]["available_seats"] == 0
    assert out["course"]["enrolled"] == 1
    assert out["cart_item"]["enrolled"] == "enrolled"

    with pytest.raises(AlreadyEnrolled):
        db_store.settle_payment(
            payer_email="a@x.com", cart_id=first["id"], course_id=course["id"], amount=10, transaction_id="t2",
            paid_at="2024-01-02T00:00:00+00:00",
        )
    with pytest.raises(SeatsExhausted):
        db_store.settle_payment(
            payer_email="a@x.com", cart_id=second["id"], course_id=course["id"], amount=10, transaction_id="t3",
            paid_at="2024-01-03T00:00:00+00:00",
        )
    assert [p["transaction_id"] for p in db_store.list_payments(email="a@x.com")] == ["t1"]
    assert db_store.get_cart_item(second["id"])["enrolled"] is None
