"""Webhook handler for processing Stripe events.

Keeps event application separate from HTTP routing so it can be unit
tested and reused by any transport. Every event passes through the
idempotency guard before it touches the payment ledger.
"""

import logging
from collections.abc import Callable
from typing import Any

from ..models.enums import PaymentStatus
from ..models.errors import PaymentNotFoundError, WebhookSignatureError
from ..utils.logging import log_webhook_event
from .repositories import PaymentRepository
from .stripe_service import StripeService, StripeServiceError
from .webhook_guard import WebhookIdempotencyGuard

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"


class StripeWebhookHandler:
    """Applies verified Stripe events to the payment ledger.

    Supported events:
    - checkout.session.completed: payment CAPTURED, PaymentIntent recorded
    - checkout.session.expired: payment FAILED
    - payment_intent.payment_failed: payment FAILED with Stripe's error message
    Anything else is logged as unhandled and marked processed.
    """

    def __init__(
        self,
        stripe_service: StripeService,
        guard: WebhookIdempotencyGuard,
        payments: PaymentRepository,
    ) -> None:
        self._stripe = stripe_service
        self._guard = guard
        self._payments = payments
        self._handlers: dict[str, Callable[[dict[str, Any]], str | None]] = {
            CHECKOUT_COMPLETED: self._handle_checkout_completed,
            CHECKOUT_EXPIRED: self._handle_checkout_expired,
            PAYMENT_INTENT_FAILED: self._handle_payment_failed,
        }

    def handle_webhook_event(self, payload: bytes, signature: str) -> str:
        """Verify, deduplicate and apply one webhook delivery.

        Args:
            payload: Raw request body bytes
            signature: Stripe-Signature header value

        Returns:
            Processing result: "processed", "duplicate" or "unhandled"

        Raises:
            WebhookSignatureError: If the signature is invalid
            Exception: Whatever the event application raised; the event is
                marked FAILED first so a redelivery can retry it
        """
        try:
            event = self._stripe.verify_webhook_signature(payload, signature)
        except StripeServiceError as e:
            raise WebhookSignatureError() from e

        event_id: str = event["id"]
        event_type: str = event["type"]

        if self._guard.is_event_already_processed(event_id):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return "duplicate"

        if not self._guard.begin(event_id, event_type, payload.decode("utf-8")):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return "duplicate"

        handler = self._handlers.get(event_type)
        try:
            if handler is None:
                log_webhook_event(logger, event_type, event_id, result="unhandled")
                result = "unhandled"
                payment_id = None
            else:
                payment_id = handler(event)
                result = "processed"
            self._guard.mark_processed(event_id)
        except Exception as e:
            self._guard.mark_failed(event_id, str(e))
            log_webhook_event(logger, event_type, event_id, result="error", error=str(e))
            raise

        if result == "processed":
            log_webhook_event(logger, event_type, event_id, payment_id=payment_id, result="success")
        return result

    @staticmethod
    def _event_object(event: dict[str, Any]) -> dict[str, Any]:
        return event.get("data", {}).get("object", {})

    def _handle_checkout_completed(self, event: dict[str, Any]) -> str:
        session = self._event_object(event)
        session_id = session.get("id")
        payment_intent_id = session.get("payment_intent")

        payment = self._payments.get_by_checkout_session(session_id) if session_id else None
        if payment is None:
            raise PaymentNotFoundError(f"Payment not found for checkout session: {session_id}")

        self._payments.update_status(
            payment.payment_id,
            PaymentStatus.CAPTURED,
            transaction_id=payment_intent_id,
            payment_intent_id=payment_intent_id,
        )
        logger.info("Payment %s captured via checkout session %s", payment.payment_id, session_id)
        return payment.payment_id

    def _handle_checkout_expired(self, event: dict[str, Any]) -> str:
        session = self._event_object(event)
        session_id = session.get("id")

        payment = self._payments.get_by_checkout_session(session_id) if session_id else None
        if payment is None:
            raise PaymentNotFoundError(f"Payment not found for checkout session: {session_id}")

        self._payments.update_status(
            payment.payment_id,
            PaymentStatus.FAILED,
            failure_reason="Checkout session expired",
        )
        logger.info(
            "Payment %s failed: checkout session %s expired", payment.payment_id, session_id
        )
        return payment.payment_id

    def _handle_payment_failed(self, event: dict[str, Any]) -> str:
        intent = self._event_object(event)
        payment_intent_id = intent.get("id")
        last_error = intent.get("last_payment_error") or {}
        reason = last_error.get("message") or "Payment failed"

        payment = (
            self._payments.get_by_payment_intent(payment_intent_id) if payment_intent_id else None
        )
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment not found for payment intent: {payment_intent_id}"
            )

        self._payments.update_status(
            payment.payment_id, PaymentStatus.FAILED, failure_reason=reason
        )
        logger.info("Payment %s failed: %s", payment.payment_id, reason)
        return payment.payment_id
