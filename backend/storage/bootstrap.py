"""
Postgres schema bootstrap for the marketplace store.

Intent:
    Create the four tables the psycopg store reads and writes (users, courses,
    cart_items, payment_history) on a fresh database.

Security & Safety:
    - Idempotent: every statement uses `if not exists`.
    - Ids are generated in Python, so no extension (pgcrypto) is required.
    - Seat and enrollment counters carry check constraints as a second line
      behind the conditional decrement in settlement.

Usage:
    `python -m backend.tools.marketplace_admin init-db --dsn ...`
"""
from __future__ import annotations

import logging
from typing import Iterable

try:
    import psycopg
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore

_log = logging.getLogger("summer_school.storage.bootstrap")


SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    create table if not exists users (
        id uuid primary key,
        email text not null unique,
        name text,
        photo_url text,
        role text check (role is null or role in ('student', 'mentor', 'admin')),
        created_at timestamptz not null default now()
    )
    """,
    """
    create table if not exists courses (
        id uuid primary key,
        mentor_email text not null,
        mentor_name text,
        course_title text not null,
        course_img text,
        price numeric(12, 2) not null check (price >= 0),
        available_seats integer not null check (available_seats >= 0),
        enrolled integer not null default 0 check (enrolled >= 0),
        status text not null default 'pending' check (status in ('pending', 'approved', 'denied')),
        feedback text,
        created_at timestamptz not null default now()
    )
    """,
    "create index if not exists courses_mentor_email_idx on courses (mentor_email)",
    "create index if not exists courses_status_enrolled_idx on courses (status, enrolled desc)",
    """
    create table if not exists cart_items (
        id uuid primary key,
        email text not null,
        course_id uuid not null,
        course_title text,
        course_img text,
        price numeric(12, 2),
        enrolled text check (enrolled is null or enrolled = 'enrolled'),
        created_at timestamptz not null default now()
    )
    """,
    "create index if not exists cart_items_email_idx on cart_items (email)",
    """
    create table if not exists payment_history (
        id uuid primary key,
        email text not null,
        amount numeric(12, 2) not null,
        cart_id uuid not null,
        course_id uuid not null,
        transaction_id text,
        paid_at timestamptz not null default now()
    )
    """,
    "create index if not exists payment_history_email_paid_at_idx on payment_history (email, paid_at desc)",
)


def apply_statements(conn, statements: Iterable[str] = SCHEMA_STATEMENTS) -> int:
    """Execute DDL statements on an open connection; returns how many ran."""
    count = 0
    with conn.cursor() as cur:
        for stmt in statements:
            cur.execute(stmt)
            count += 1
    return count


def ensure_schema(dsn: str) -> int:
    """Create the marketplace schema on `dsn` inside one transaction."""
    if psycopg is None:
        raise RuntimeError("psycopg3 is required to bootstrap the schema")
    with psycopg.connect(dsn) as conn:
        count = apply_statements(conn)
    _log.info("schema ensured statements=%s", count)
    return count


__all__ = ["SCHEMA_STATEMENTS", "apply_statements", "ensure_schema"]
