"""
Charge gateway: creates card payment intents at the payment processor.

Why:
    The settlement flow needs a client secret the browser uses to confirm a
    card payment. This is the only outbound call to the processor; it keeps
    no state of its own.

Security:
    - The secret key is passed per call and never logged.
    - Processor errors propagate as `ChargeGatewayError` with a stable code.
"""
from __future__ import annotations

import logging
from typing import Protocol

import stripe

logger = logging.getLogger("summer_school.enrollment.charges")


class ChargeGatewayError(Exception):
    """Raised when the payment processor rejects or fails an intent request."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class ChargeGatewayProtocol(Protocol):
    def create_intent(self, *, amount: int, currency: str) -> str:
        """Create a card payment intent for `amount` minor units; return its client secret."""
        ...


class StripeChargeGateway:
    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("payment key must not be empty")
        self._api_key = api_key

    def create_intent(self, *, amount: int, currency: str) -> str:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                payment_method_types=["card"],
                api_key=self._api_key,
            )
        except stripe.StripeError as exc:
            logger.warning("payment intent failed error=%s", type(exc).__name__)
            raise ChargeGatewayError("payment_provider_error") from exc
        return str(intent["client_secret"])


__all__ = ["ChargeGatewayError", "ChargeGatewayProtocol", "StripeChargeGateway"]
