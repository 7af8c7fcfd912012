"""
Postgres-backed marketplace store (users, courses, cart items, payments).

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Returns plain dicts to keep the web adapter independent of ORM.
- Settlement runs in a single transaction: the psycopg connection context
  commits on success and rolls back when any step raises, so a failed
  settlement leaves no orphaned payment row.
- Seats are taken with a conditional decrement (`available_seats > 0`) so
  concurrent settlements cannot oversell a course.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.catalog.domain import MENTOR_EDITABLE_FIELDS, MODERATION_FIELDS, STATUS_PENDING
from backend.enrollment.domain import ENROLLED_MARKER

from .keys import new_record_id
from .ports import AlreadyEnrolled, OwnershipMismatch, RecordNotFound, SeatsExhausted

logger = logging.getLogger("summer_school.storage.repo_db")

_TS = """to_char({col} at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')"""

_USER_COLUMNS_SQL = f"""
    id::text,
    email,
    name,
    photo_url,
    role,
    {_TS.format(col="created_at")}
"""

_COURSE_COLUMNS_SQL = f"""
    id::text,
    mentor_email,
    mentor_name,
    course_title,
    course_img,
    price,
    available_seats,
    enrolled,
    status,
    feedback,
    {_TS.format(col="created_at")}
"""

_CART_COLUMNS_SQL = f"""
    id::text,
    email,
    course_id::text,
    course_title,
    course_img,
    price,
    enrolled,
    {_TS.format(col="created_at")}
"""

_PAYMENT_COLUMNS_SQL = f"""
    id::text,
    email,
    amount,
    cart_id::text,
    course_id::text,
    transaction_id,
    {_TS.format(col="paid_at")}
"""


def _num(value) -> Optional[float]:
    return float(value) if value is not None else None


def _user_row_to_dict(row: Tuple) -> Dict[str, Any]:
    return {
        "id": row[0],
        "email": row[1],
        "name": row[2],
        "photo_url": row[3],
        "role": row[4],
        "created_at": row[5],
    }


def _course_row_to_dict(row: Tuple) -> Dict[str, Any]:
    return {
        "id": row[0],
        "mentor_email": row[1],
        "mentor_name": row[2],
        "course_title": row[3],
        "course_img": row[4],
        "price": _num(row[5]),
        "available_seats": int(row[6]),
        "enrolled": int(row[7]),
        "status": row[8],
        "feedback": row[9],
        "created_at": row[10],
    }


def _cart_row_to_dict(row: Tuple) -> Dict[str, Any]:
    return {
        "id": row[0],
        "email": row[1],
        "course_id": row[2],
        "course_title": row[3],
        "course_img": row[4],
        "price": _num(row[5]),
        "enrolled": row[6],
        "created_at": row[7],
    }


def _payment_row_to_dict(row: Tuple) -> Dict[str, Any]:
    return {
        "id": row[0],
        "email": row[1],
        "amount": _num(row[2]),
        "cart_id": row[3],
        "course_id": row[4],
        "transaction_id": row[5],
        "date": row[6],
    }


def _dsn() -> str:
    dsn = os.getenv("DATABASE_URL") or ""
    if not dsn:
        raise RuntimeError("Database DSN unavailable for DBMarketplaceStore (set DATABASE_URL)")
    return dsn


class DBMarketplaceStore:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize the store without connecting eagerly; connections are per call."""
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBMarketplaceStore")
        self._dsn = dsn or _dsn()

    # --- Users -----------------------------------------------------------------
    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_USER_COLUMNS_SQL} from users where email = %s", (email,))
                row = cur.fetchone()
        return _user_row_to_dict(row) if row else None

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_USER_COLUMNS_SQL} from users where id = %s::uuid", (user_id,))
                row = cur.fetchone()
        return _user_row_to_dict(row) if row else None

    def insert_user(self, *, email: str, name: Optional[str], photo_url: Optional[str], role: Optional[str]) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into users (id, email, name, photo_url, role)
                    values (%s::uuid, %s, %s, %s, %s)
                    on conflict (email) do nothing
                    returning {_USER_COLUMNS_SQL}
                    """,
                    (new_record_id(), email, name, photo_url, role),
                )
                row = cur.fetchone()
        return _user_row_to_dict(row) if row else None

    def set_user_role(self, user_id: str, role: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"update users set role = %s where id = %s::uuid returning {_USER_COLUMNS_SQL}",
                    (role, user_id),
                )
                row = cur.fetchone()
        return _user_row_to_dict(row) if row else None

    def list_users(self) -> List[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_USER_COLUMNS_SQL} from users order by created_at, id")
                rows = cur.fetchall() or []
        return [_user_row_to_dict(r) for r in rows]

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
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into courses (id, mentor_email, mentor_name, course_title, course_img,
                                         price, available_seats, enrolled, status)
                    values (%s::uuid, %s, %s, %s, %s, %s, %s, 0, %s)
                    returning {_COURSE_COLUMNS_SQL}
                    """,
                    (new_record_id(), mentor_email, mentor_name, course_title, course_img, price, available_seats, STATUS_PENDING),
                )
                row = cur.fetchone()
        return _course_row_to_dict(row)

    def list_courses(self, *, status: Optional[str] = None, mentor_email: Optional[str] = None) -> List[Dict[str, Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = %s")
            params.append(status)
        if mentor_email is not None:
            clauses.append("mentor_email = %s")
            params.append(mentor_email)
        where = f"where {' and '.join(clauses)}" if clauses else ""
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COURSE_COLUMNS_SQL} from courses {where} order by created_at, id", tuple(params))
                rows = cur.fetchall() or []
        return [_course_row_to_dict(r) for r in rows]

    def list_popular_courses(self, *, status: str, limit: int) -> List[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_COURSE_COLUMNS_SQL} from courses
                    where status = %s
                    order by enrolled desc, created_at, id
                    limit %s
                    """,
                    (status, limit),
                )
                rows = cur.fetchall() or []
        return [_course_row_to_dict(r) for r in rows]

    def get_course(self, course_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COURSE_COLUMNS_SQL} from courses where id = %s::uuid", (course_id,))
                row = cur.fetchone()
        return _course_row_to_dict(row) if row else None

    def get_course_for_mentor(self, course_id: str, mentor_email: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_COURSE_COLUMNS_SQL} from courses where id = %s::uuid and mentor_email = %s",
                    (course_id, mentor_email),
                )
                row = cur.fetchone()
        return _course_row_to_dict(row) if row else None

    def update_course_owned(self, course_id: str, mentor_email: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for key in fields:
            if key not in MENTOR_EDITABLE_FIELDS:
                raise ValueError(f"invalid_{key}")
        if not fields:
            return self.get_course_for_mentor(course_id, mentor_email)
        # Column names come from the whitelist above, never from the request.
        assignments = ", ".join(f"{key} = %s" for key in fields)
        params = list(fields.values()) + [course_id, mentor_email]
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    update courses set {assignments}
                    where id = %s::uuid and mentor_email = %s
                    returning {_COURSE_COLUMNS_SQL}
                    """,
                    tuple(params),
                )
                row = cur.fetchone()
        return _course_row_to_dict(row) if row else None

    def set_course_moderation(self, course_id: str, field: str, value: Optional[str]) -> Optional[Dict[str, Any]]:
        if field not in MODERATION_FIELDS:
            raise ValueError(f"invalid_{field}")
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"update courses set {field} = %s where id = %s::uuid returning {_COURSE_COLUMNS_SQL}",
                    (value, course_id),
                )
                row = cur.fetchone()
        return _course_row_to_dict(row) if row else None

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
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into cart_items (id, email, course_id, course_title, course_img, price)
                    values (%s::uuid, %s, %s::uuid, %s, %s, %s)
                    returning {_CART_COLUMNS_SQL}
                    """,
                    (new_record_id(), email, course_id, course_title, course_img, price),
                )
                row = cur.fetchone()
        return _cart_row_to_dict(row)

    def get_cart_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_CART_COLUMNS_SQL} from cart_items where id = %s::uuid", (item_id,))
                row = cur.fetchone()
        return _cart_row_to_dict(row) if row else None

    def list_cart_items(self, *, email: str, enrolled_only: bool = False) -> List[Dict[str, Any]]:
        sql = f"select {_CART_COLUMNS_SQL} from cart_items where email = %s"
        params: Tuple = (email,)
        if enrolled_only:
            sql += " and enrolled = %s"
            params = (email, ENROLLED_MARKER)
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(sql + " order by created_at, id", params)
                rows = cur.fetchall() or []
        return [_cart_row_to_dict(r) for r in rows]

    def delete_cart_item(self, item_id: str) -> int:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("delete from cart_items where id = %s::uuid", (item_id,))
                return int(cur.rowcount or 0)

    # --- Payments --------------------------------------------------------------
    def list_payments(self, *, email: str) -> List[Dict[str, Any]]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_PAYMENT_COLUMNS_SQL} from payment_history where email = %s order by paid_at desc, id",
                    (email,),
                )
                rows = cur.fetchall() or []
        return [_payment_row_to_dict(r) for r in rows]

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
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                # Lock the cart row so a parallel settlement of the same entry waits for us.
                cur.execute(
                    "select email, course_id::text, enrolled from cart_items where id = %s::uuid for update",
                    (cart_id,),
                )
                owner = cur.fetchone()
                if not owner:
                    raise RecordNotFound("cart_item", cart_id)
                if owner[0] != payer_email:
                    raise OwnershipMismatch("cart_owner_mismatch")
                if owner[1] != course_id:
                    raise OwnershipMismatch("cart_course_mismatch")
                if owner[2] == ENROLLED_MARKER:
                    raise AlreadyEnrolled(cart_id)

                cur.execute(
                    f"""
                    update courses
                       set available_seats = available_seats - 1,
                           enrolled = enrolled + 1
                     where id = %s::uuid and available_seats > 0
                    returning {_COURSE_COLUMNS_SQL}
                    """,
                    (course_id,),
                )
                course_row = cur.fetchone()
                if not course_row:
                    cur.execute("select 1 from courses where id = %s::uuid", (course_id,))
                    if not cur.fetchone():
                        raise RecordNotFound("course", course_id)
                    raise SeatsExhausted(course_id)

                cur.execute(
                    f"""
                    update cart_items set enrolled = %s
                     where id = %s::uuid and enrolled is null
                    returning {_CART_COLUMNS_SQL}
                    """,
                    (ENROLLED_MARKER, cart_id),
                )
                cart_row = cur.fetchone()
                if not cart_row:
                    raise AlreadyEnrolled(cart_id)

                cur.execute(
                    f"""
                    insert into payment_history (id, email, amount, cart_id, course_id, transaction_id, paid_at)
                    values (%s::uuid, %s, %s, %s::uuid, %s::uuid, %s, %s::timestamptz)
                    returning {_PAYMENT_COLUMNS_SQL}
                    """,
                    (new_record_id(), payer_email, amount, cart_id, course_id, transaction_id, paid_at),
                )
                payment_row = cur.fetchone()
        logger.debug("settlement committed cart=%s course=%s", cart_id, course_id)
        return {
            "payment": _payment_row_to_dict(payment_row),
            "cart_item": _cart_row_to_dict(cart_row),
            "course": _course_row_to_dict(course_row),
        }


__all__ = ["DBMarketplaceStore", "HAVE_PSYCOPG"]
