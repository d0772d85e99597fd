"""Daily reconciliation of the local payment ledger against Stripe.

Both sides are indexed by PaymentIntent id. Local payments without one
never touched Stripe and are left out of the comparison. Amounts are
compared exactly; statuses are compared after mapping Stripe's vocabulary
onto the ledger's.
"""

import datetime as dt
import logging

from ..models.enums import DiscrepancyType
from ..models.errors import ReconciliationError
from ..models.payment import Discrepancy, GatewayCharge, Payment, ReconciliationReport
from ..utils.logging import log_payment_operation
from .repositories import PaymentRepository
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

_STATUS_ALIASES = {
    "SUCCEEDED": "CAPTURED",
    "CAPTURED": "CAPTURED",
    "PENDING": "PENDING",
    "PROCESSING": "PENDING",
    "FAILED": "FAILED",
    "CANCELED": "FAILED",
    "REFUNDED": "REFUNDED",
}


def normalize_status(status: str | None) -> str:
    """Map a ledger or Stripe status onto the ledger vocabulary."""
    if status is None:
        return "UNKNOWN"
    upper = status.upper()
    return _STATUS_ALIASES.get(upper, upper)


def day_window(reconciliation_date: dt.date) -> tuple[dt.datetime, dt.datetime]:
    """UTC ``[date 00:00, date+1 00:00)``."""
    start = dt.datetime.combine(reconciliation_date, dt.time.min, tzinfo=dt.UTC)
    return start, start + dt.timedelta(days=1)


class PaymentReconciler:
    """Compares one day of local payments with Stripe charges.

    Usage:
        reconciler = PaymentReconciler(PaymentRepository(), get_stripe_service())
        report = reconciler.run_daily_reconciliation(dt.date(2025, 6, 10))
    """

    def __init__(self, payments: PaymentRepository, stripe_service: StripeService) -> None:
        self._payments = payments
        self._stripe = stripe_service

    def run_daily_reconciliation(self, reconciliation_date: dt.date) -> ReconciliationReport:
        """Reconcile every payment created on ``reconciliation_date`` (UTC).

        Raises:
            ReconciliationError: If either side cannot be fetched; no partial
                report is produced.
        """
        logger.info("Starting daily reconciliation for date: %s", reconciliation_date)

        try:
            local = self.fetch_database_payments(reconciliation_date)
            remote = self.fetch_gateway_payments(reconciliation_date)
            discrepancies = self.compare_payments(local, remote)
        except ReconciliationError:
            raise
        except Exception as e:
            logger.error(
                "Reconciliation failed for date %s: %s", reconciliation_date, e, exc_info=True
            )
            raise ReconciliationError(reconciliation_date, str(e)) from e

        report = ReconciliationReport(
            report_date=reconciliation_date,
            total_database_payments=len(local),
            total_stripe_payments=len(remote),
            discrepancies=discrepancies,
            has_discrepancies=bool(discrepancies),
            generated_at=dt.datetime.now(dt.UTC),
        )

        log_payment_operation(
            logger,
            "daily_reconciliation",
            date=reconciliation_date.isoformat(),
            database_payments=report.total_database_payments,
            stripe_payments=report.total_stripe_payments,
            discrepancies=len(discrepancies),
        )
        return report

    def fetch_database_payments(self, reconciliation_date: dt.date) -> list[Payment]:
        start, end = day_window(reconciliation_date)
        payments = self._payments.find_created_between(start, end)
        logger.debug("Found %d database payments for %s", len(payments), reconciliation_date)
        return payments

    def fetch_gateway_payments(self, reconciliation_date: dt.date) -> list[GatewayCharge]:
        start, end = day_window(reconciliation_date)
        return self._stripe.list_charges(start, end)

    def compare_payments(
        self, local: list[Payment], remote: list[GatewayCharge]
    ) -> list[Discrepancy]:
        """Classify every mismatch between the two ledgers."""
        local_by_intent = {
            payment.stripe_payment_intent_id: payment
            for payment in local
            if payment.stripe_payment_intent_id
        }
        remote_by_intent = {
            charge.payment_intent_id: charge for charge in remote if charge.payment_intent_id
        }

        discrepancies: list[Discrepancy] = []

        for intent_id, payment in local_by_intent.items():
            charge = remote_by_intent.get(intent_id)
            if charge is None:
                discrepancies.append(
                    Discrepancy(
                        type=DiscrepancyType.MISSING_IN_STRIPE,
                        payment_id=payment.payment_id,
                        stripe_payment_intent_id=intent_id,
                        database_amount=payment.amount,
                        database_status=payment.status.value,
                        description="Payment exists in database but not found in Stripe",
                    )
                )
                continue

            if payment.amount != charge.amount:
                discrepancies.append(
                    Discrepancy(
                        type=DiscrepancyType.AMOUNT_MISMATCH,
                        payment_id=payment.payment_id,
                        stripe_payment_intent_id=intent_id,
                        database_amount=payment.amount,
                        stripe_amount=charge.amount,
                        database_status=payment.status.value,
                        stripe_status=charge.status,
                        description=(
                            f"Amount mismatch: DB={payment.amount}, Stripe={charge.amount}"
                        ),
                    )
                )

            local_status = normalize_status(payment.status.value)
            remote_status = normalize_status(charge.status)
            if local_status != remote_status:
                discrepancies.append(
                    Discrepancy(
                        type=DiscrepancyType.STATUS_MISMATCH,
                        payment_id=payment.payment_id,
                        stripe_payment_intent_id=intent_id,
                        database_amount=payment.amount,
                        stripe_amount=charge.amount,
                        database_status=payment.status.value,
                        stripe_status=charge.status,
                        description=(
                            f"Status mismatch: DB={local_status}, Stripe={remote_status}"
                        ),
                    )
                )

        for intent_id, charge in remote_by_intent.items():
            if intent_id not in local_by_intent:
                discrepancies.append(
                    Discrepancy(
                        type=DiscrepancyType.MISSING_IN_DATABASE,
                        stripe_payment_intent_id=intent_id,
                        stripe_amount=charge.amount,
                        stripe_status=charge.status,
                        description="Payment exists in Stripe but not found in database",
                    )
                )

        logger.info("Found %d discrepancies", len(discrepancies))
        return discrepancies
