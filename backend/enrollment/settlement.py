"""Payment settlement service layer (Clean Architecture boundary).

Why:
    Turns a confirmed payment into persisted history, an enrolled cart entry
    and one taken seat. The three writes are delegated to the store as a
    single transactional operation so a failure never leaves a payment without
    its enrollment.

Behavior:
    - The payer is the authenticated caller, never a field of the payload.
    - Preconditions (cart exists, belongs to the payer, references the course,
      is not yet enrolled; course has a free seat) are enforced by the store
      before anything is written and surface as store errors.
    - `create_charge_intent` converts a price to minor units and asks the
      charge gateway for a client secret.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from backend.catalog.domain import MAX_PRICE, parse_amount
from backend.storage.keys import is_record_id
from backend.storage.ports import PaymentsRepoProtocol, StoreError

from .charges import ChargeGatewayProtocol

logger = logging.getLogger("summer_school.enrollment.settlement")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PaymentDetails:
    cart_id: str
    course_id: str
    price: float
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PaymentDetails":
        """Validate a settlement payload; accepts `cartId`/`courseId` spellings."""
        cart_id = payload.get("cart_id") or payload.get("cartId")
        course_id = payload.get("course_id") or payload.get("courseId")
        if not is_record_id(cart_id):
            raise ValueError("invalid_cart_id")
        if not is_record_id(course_id):
            raise ValueError("invalid_course_id")
        price = _parse_price(payload.get("price"))
        transaction_id = payload.get("transaction_id") or payload.get("transactionId")
        if transaction_id is not None and not isinstance(transaction_id, str):
            raise ValueError("invalid_transaction_id")
        return cls(
            cart_id=str(cart_id),
            course_id=str(course_id),
            price=price,
            transaction_id=transaction_id,
            paid_at=_parse_date(payload.get("date")),
        )


class PaymentSettlement:
    def __init__(
        self,
        repo: PaymentsRepoProtocol,
        charges: ChargeGatewayProtocol,
        *,
        currency: str = "usd",
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repo = repo
        self._charges = charges
        self.currency = currency
        self._now = now

    def settle(self, payer_email: str, details: PaymentDetails) -> Dict[str, Any]:
        """Record the payment and enroll the payer; returns the three sub-results."""
        paid_at = details.paid_at or self._now()
        try:
            result = self._repo.settle_payment(
                payer_email=payer_email,
                cart_id=details.cart_id,
                course_id=details.course_id,
                amount=details.price,
                transaction_id=details.transaction_id,
                paid_at=paid_at.isoformat(),
            )
        except StoreError as exc:
            logger.warning("settlement rejected cart=%s course=%s code=%s", details.cart_id, details.course_id, exc.code)
            raise
        payment = result["payment"]
        logger.info(
            "settlement completed payment=%s cart=%s course=%s", payment["id"], details.cart_id, details.course_id
        )
        return {
            "insertResult": {"acknowledged": True, "insertedId": payment["id"]},
            "changeEnrollStatus": {"acknowledged": True, "matchedCount": 1, "modifiedCount": 1},
            "updateSeats": {
                "acknowledged": True,
                "matchedCount": 1,
                "modifiedCount": 1,
                "available_seats": result["course"]["available_seats"],
                "enrolled": result["course"]["enrolled"],
            },
        }

    def history(self, email: str) -> List[Dict[str, Any]]:
        return self._repo.list_payments(email=email)

    def create_charge_intent(self, price: Any) -> Dict[str, str]:
        amount = to_minor_units(_parse_price(price))
        if amount <= 0:
            raise ValueError("invalid_price")
        secret = self._charges.create_intent(amount=amount, currency=self.currency)
        return {"clientSecret": secret}


def to_minor_units(price: float) -> int:
    """Return `price` in cents, rounded to the nearest minor unit."""
    return int(round(price * 100))


def _parse_price(value: Any) -> float:
    return parse_amount(value, "invalid_price", upper=MAX_PRICE)


def _parse_date(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError("invalid_date")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("invalid_date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["PaymentDetails", "PaymentSettlement", "to_minor_units"]
