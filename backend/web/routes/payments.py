"""
Payment API routes: charge intents, settlement and payment history.

Why:
    The browser first asks for a charge intent, confirms the card payment
    with the processor and then posts the result here to be enrolled.

Behavior:
    Settlement is all-or-nothing: the payment record, the enrollment marker
    and the seat change are committed together or not at all.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from backend.enrollment.charges import ChargeGatewayError
from backend.enrollment.settlement import PaymentDetails
from backend.storage.ports import AlreadyEnrolled, OwnershipMismatch, RecordNotFound, SeatsExhausted

from ..guards import bad_request, conflict, forbidden, gate, json_private, not_found, require_token, services

payments_router = APIRouter(tags=["Payments"])
logger = logging.getLogger("summer_school.web.payments")


class ChargeIntentRequest(BaseModel):
    price: Any = None


class PaymentSubmission(BaseModel):
    model_config = ConfigDict(extra="allow")

    price: Any = None
    date: Optional[str] = None


@payments_router.post("/payment-intent")
async def create_payment_intent(request: Request, payload: ChargeIntentRequest):
    """Create a card charge intent for `price` and return its client secret.

    Behavior:
        - 200 `{"clientSecret": ...}`
        - 400 for a missing, negative or zero price
        - 502 when the payment processor fails or is not configured

    Permissions:
        Public.
    """
    try:
        result = services(request).settlement.create_charge_intent(payload.price)
    except ValueError as exc:
        return bad_request(str(exc))
    except ChargeGatewayError as exc:
        return json_private({"error": "payment_provider", "detail": exc.code}, status_code=502)
    return json_private(result)


@payments_router.post("/payments")
async def settle_payment(request: Request, payload: PaymentSubmission):
    """Record a confirmed payment and enroll the caller.

    Behavior:
        - 200 `{"insertResult", "changeEnrollStatus", "updateSeats"}`
        - 400 for malformed ids, price or date
        - 403 when the cart entry belongs to someone else or another course
        - 404 when the cart entry or course does not exist
        - 409 when the entry is already enrolled or the course is full

    Permissions:
        Token; the payer is the caller, never a field of the body.
    """
    caller, error = require_token(request)
    if error:
        return error
    try:
        details = PaymentDetails.from_payload(payload.model_dump())
    except ValueError as exc:
        return bad_request(str(exc))
    try:
        result = services(request).settlement.settle(caller.email, details)
    except RecordNotFound:
        return not_found()
    except OwnershipMismatch:
        return forbidden()
    except (AlreadyEnrolled, SeatsExhausted) as exc:
        return conflict(exc.code)
    return json_private(result)


@payments_router.get("/payments")
async def list_my_payments(request: Request, email: Optional[str] = None):
    """List the caller's payments, newest first.

    Permissions:
        Token, `email` must be the caller's.
    """
    caller, early = gate(request, email)
    if early:
        return early
    return json_private(services(request).settlement.history(caller.email))
