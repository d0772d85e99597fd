"""Admin waivers of late-return penalties.

A waiver reduces a rental's outstanding penalty and is kept as an audit
record. When the penalty was already paid, the waived amount is refunded
through Stripe.
"""

import datetime as dt
import logging
import uuid
from decimal import Decimal

from ..models.errors import PenaltyWaiverError, RentalNotFoundError
from ..models.rental import PenaltyWaiver
from ..utils.logging import log_penalty_operation
from .repositories import PaymentRepository, PenaltyWaiverRepository, RentalRepository
from .stripe_service import StripeService, StripeServiceError, amount_to_minor_units

logger = logging.getLogger(__name__)


class PenaltyWaiverService:
    """Service for waiving penalties and refunding waived amounts."""

    def __init__(
        self,
        rentals: RentalRepository,
        waivers: PenaltyWaiverRepository,
        payments: PaymentRepository,
        stripe_service: StripeService,
    ) -> None:
        self._rentals = rentals
        self._waivers = waivers
        self._payments = payments
        self._stripe = stripe_service

    @staticmethod
    def _validate_request(
        rental_id: str | None, amount: Decimal | None, reason: str | None, admin_id: str | None
    ) -> None:
        if not rental_id:
            raise PenaltyWaiverError("Rental ID cannot be null")
        if amount is None or amount <= 0:
            raise PenaltyWaiverError("Waiver amount must be positive")
        if reason is None or not reason.strip():
            raise PenaltyWaiverError("Waiver reason is mandatory")
        if not admin_id:
            raise PenaltyWaiverError("Admin ID cannot be null")

    def waive_penalty(
        self, rental_id: str, amount: Decimal, reason: str, admin_id: str
    ) -> PenaltyWaiver:
        """Waive part or all of a rental's penalty.

        Args:
            rental_id: Rental whose penalty is reduced
            amount: Amount to waive, at most the current penalty
            reason: Mandatory justification
            admin_id: Admin issuing the waiver

        Returns:
            The stored waiver (with refund details if a refund was issued)

        Raises:
            PenaltyWaiverError: If the request is invalid or the refund fails
            RentalNotFoundError: If the rental does not exist
        """
        self._validate_request(rental_id, amount, reason, admin_id)

        rental = self._rentals.get_rental(rental_id)
        if rental is None:
            raise RentalNotFoundError(rental_id)

        penalty = rental.penalty_amount
        if penalty is None or penalty <= 0:
            raise PenaltyWaiverError("Rental has no penalty to waive")
        if amount > penalty:
            raise PenaltyWaiverError(
                f"Waiver amount ({amount:.2f}) cannot exceed penalty amount ({penalty:.2f})"
            )

        remaining = penalty - amount
        waiver = PenaltyWaiver(
            waiver_id=str(uuid.uuid4()),
            rental_id=rental_id,
            original_penalty=penalty,
            waived_amount=amount,
            remaining_penalty=remaining,
            reason=reason,
            admin_id=admin_id,
            waived_at=dt.datetime.now(dt.UTC),
        )
        # Refund before any write so a rejected refund leaves the rental untouched
        if rental.penalty_paid:
            waiver = self._issue_refund(waiver)

        self._waivers.save(waiver)
        self._rentals.update_penalty(rental_id, remaining)

        log_penalty_operation(
            logger,
            "waive_penalty",
            rental_id=rental_id,
            penalty_amount=remaining,
            waived_amount=str(amount),
            admin_id=admin_id,
        )
        return waiver

    def waive_full_penalty(self, rental_id: str, reason: str, admin_id: str) -> PenaltyWaiver:
        """Waive a rental's entire outstanding penalty."""
        rental = self._rentals.get_rental(rental_id)
        if rental is None:
            raise RentalNotFoundError(rental_id)
        if rental.penalty_amount is None or rental.penalty_amount <= 0:
            raise PenaltyWaiverError("Rental has no penalty to waive")
        return self.waive_penalty(rental_id, rental.penalty_amount, reason, admin_id)

    def get_penalty_history(self, rental_id: str) -> list[PenaltyWaiver]:
        if self._rentals.get_rental(rental_id) is None:
            raise RentalNotFoundError(rental_id)
        return self._waivers.find_by_rental(rental_id)

    def process_refund_for_waiver(self, waiver: PenaltyWaiver) -> PenaltyWaiver:
        """Refund a waived amount against the rental's captured payment.

        Skipped (with a warning) when a refund was already issued or no
        refundable Stripe payment exists.

        Raises:
            PenaltyWaiverError: If Stripe rejects the refund
        """
        if waiver.refund_initiated:
            logger.warning("Refund already initiated for waiver: %s", waiver.waiver_id)
            return waiver

        refunded = self._issue_refund(waiver)
        if refunded.refund_initiated:
            self._waivers.save(refunded)
        return refunded

    def _issue_refund(self, waiver: PenaltyWaiver) -> PenaltyWaiver:
        """Refund through Stripe and return the waiver with refund details.

        Nothing is persisted here. The waiver comes back unchanged when no
        refundable payment exists.
        """
        payment = self._payments.get_for_rental(waiver.rental_id)
        if payment is None:
            logger.warning(
                "No payment found for rental: %s, cannot process refund", waiver.rental_id
            )
            return waiver
        if not payment.can_refund:
            logger.warning(
                "Payment %s cannot be refunded, status: %s",
                payment.payment_id,
                payment.status.value,
            )
            return waiver
        if not payment.stripe_payment_intent_id:
            logger.warning(
                "Payment %s has no PaymentIntent, cannot process refund", payment.payment_id
            )
            return waiver

        try:
            refund = self._stripe.create_refund(
                payment_intent_id=payment.stripe_payment_intent_id,
                amount_cents=amount_to_minor_units(waiver.waived_amount),
                reason=f"Penalty waiver {waiver.waiver_id}",
            )
        except StripeServiceError as e:
            logger.error("Refund failed for waiver: %s, reason: %s", waiver.waiver_id, e)
            raise PenaltyWaiverError(f"Refund failed: {e}") from e

        refunded = waiver.model_copy(
            update={"refund_initiated": True, "refund_transaction_id": refund["refund_id"]}
        )
        logger.info(
            "Processed refund for waiver: %s, amount: %s, transaction: %s",
            waiver.waiver_id,
            waiver.waived_amount,
            refund["refund_id"],
        )
        return refunded
