"""Stripe gateway service for charge listing, webhooks and refunds.

Provides integration with Stripe using the v8+ StripeClient pattern.
Retrieves API keys from SSM Parameter Store.
"""

import logging
import os
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from ..models.payment import GatewayCharge
from .ssm_service import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    SSMServiceError,
    get_ssm_service,
)

logger = logging.getLogger(__name__)

CHARGE_PAGE_LIMIT = 100


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        """Initialize with message and optional Stripe error code.

        Args:
            message: Human-readable error message.
            stripe_error_code: Stripe-specific error code if available.
        """
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


def minor_units_to_amount(minor_units: int) -> Decimal:
    """Convert a Stripe minor-unit amount to a 2-decimal major-unit Decimal."""
    return (Decimal(minor_units) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def amount_to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to Stripe minor units."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeService:
    """Service for Stripe gateway operations.

    Handles:
    - Listing charges for a reconciliation window
    - Webhook signature validation
    - Refund processing

    Usage:
        stripe_svc = get_stripe_service()
        charges = stripe_svc.list_charges(window_start, window_end)
    """

    def __init__(self, environment: str | None = None) -> None:
        """Initialize Stripe service with credentials from SSM.

        Args:
            environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._ssm = get_ssm_service()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            StripeServiceError: If credentials cannot be retrieved.
        """
        if self._client is None:
            try:
                secret_key = self._ssm.get_secret(self._environment, STRIPE_SECRET_KEY)
                self._client = StripeClient(secret_key)
                logger.info("Stripe client initialized for environment: %s", self._environment)
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to initialize Stripe client: {e}") from e
        return self._client

    def _get_webhook_secret(self) -> str:
        """Get the webhook signing secret.

        Raises:
            StripeServiceError: If secret cannot be retrieved.
        """
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_secret(
                    self._environment, STRIPE_WEBHOOK_SECRET
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    def list_charges(self, start: datetime, end: datetime) -> list[GatewayCharge]:
        """List every charge created in ``[start, end)``.

        Follows the list cursor until the gateway reports no more pages.

        Args:
            start: Inclusive window start (timezone-aware).
            end: Exclusive window end (timezone-aware).

        Returns:
            Charges with amounts in major units and upper-cased currency codes.

        Raises:
            StripeServiceError: If any page request fails.
        """
        client = self._get_client()
        params: dict[str, Any] = {
            "created": {"gte": int(start.timestamp()), "lt": int(end.timestamp())},
            "limit": CHARGE_PAGE_LIMIT,
        }

        try:
            page = client.charges.list(params=params)
            charges = [self._to_gateway_charge(charge) for charge in page.auto_paging_iter()]
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe charge listing failed: %s (code: %s)", str(e), error_code)
            raise StripeServiceError(
                f"Failed to list charges: {e}", stripe_error_code=error_code
            ) from e

        logger.info("Fetched %d Stripe charges between %s and %s", len(charges), start, end)
        return charges

    @staticmethod
    def _to_gateway_charge(charge: Any) -> GatewayCharge:
        payment_intent = charge.payment_intent
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return GatewayCharge(
            charge_id=charge.id,
            payment_intent_id=payment_intent,
            amount=minor_units_to_amount(charge.amount),
            currency=str(charge.currency).upper(),
            status=charge.status,
        )

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            StripeServiceError: If signature is invalid.
        """
        webhook_secret = self._get_webhook_secret()

        try:
            event = stripe.Webhook.construct_event(payload, signature, webhook_secret)
            logger.info("Webhook signature verified for event: %s", event["id"])
            return dict(event)

        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise StripeServiceError("Invalid webhook signature") from e

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_cents: int | None = None,
        reason: str | None = None,
    ) -> dict:
        """Create a refund for a payment.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx).
            amount_cents: Refund amount in minor units. If None, full refund.
            reason: Reason for refund (for records).

        Returns:
            Dict with refund_id, amount (minor units) and status.

        Raises:
            StripeServiceError: If refund creation fails.
        """
        client = self._get_client()

        params: dict = {"payment_intent": payment_intent_id}
        if amount_cents is not None:
            params["amount"] = amount_cents
        if reason:
            params["metadata"] = {"reason": reason}

        try:
            logger.info(
                "Creating refund for PaymentIntent %s, amount %s cents",
                payment_intent_id,
                amount_cents or "full",
            )
            refund = client.refunds.create(params=params)
            logger.info("Refund created: %s for PaymentIntent %s", refund.id, payment_intent_id)

            return {
                "refund_id": refund.id,
                "amount": refund.amount,
                "status": refund.status,
            }

        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe refund creation failed: %s (code: %s)", str(e), error_code)
            raise StripeServiceError(
                f"Failed to create refund: {e}",
                stripe_error_code=error_code,
            ) from e


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern)."""
    return StripeService()
