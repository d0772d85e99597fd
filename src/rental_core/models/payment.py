"""Payment ledger and reconciliation models.

Local amounts are stored as 2-decimal ``Decimal`` values in the payment
currency; gateway amounts arrive in minor units and are converted on fetch.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import DiscrepancyType, PaymentStatus


class Payment(BaseModel):
    """A payment in the local ledger."""

    model_config = ConfigDict(strict=True)

    payment_id: str = Field(..., description="Unique payment ID")
    rental_id: str = Field(..., description="Reference to Rental")
    amount: Decimal = Field(..., ge=0, description="Amount in payment currency")
    currency: str = Field(default="TRY", description="ISO currency code")
    status: PaymentStatus = Field(..., description="Ledger status")
    created_at: datetime = Field(..., description="Creation timestamp")
    transaction_id: str | None = Field(default=None, description="Gateway transaction reference")
    stripe_session_id: str | None = Field(
        default=None,
        description="Stripe Checkout Session ID (cs_xxx)",
        examples=["cs_test_abc123def456"],
    )
    stripe_payment_intent_id: str | None = Field(
        default=None,
        description="Stripe PaymentIntent ID (pi_xxx); absent for payments that never touch Stripe",
        examples=["pi_3ABC123DEF456"],
    )
    failure_reason: str | None = None
    refunded_amount: Decimal | None = Field(default=None, ge=0)
    is_deleted: bool = False

    @property
    def can_refund(self) -> bool:
        return self.status is PaymentStatus.CAPTURED


class GatewayCharge(BaseModel):
    """A charge as listed by the payment gateway."""

    model_config = ConfigDict(strict=True, frozen=True)

    charge_id: str = Field(..., examples=["ch_3ABC123DEF456"])
    payment_intent_id: str | None = Field(default=None, examples=["pi_3ABC123DEF456"])
    amount: Decimal = Field(..., description="Amount in major units, 2 decimals")
    currency: str = Field(..., description="Upper-cased ISO currency code")
    status: str = Field(..., description="Gateway status vocabulary, e.g. succeeded")


class Discrepancy(BaseModel):
    """A mismatch between the local ledger and the gateway."""

    model_config = ConfigDict(strict=True, frozen=True)

    type: DiscrepancyType
    payment_id: str | None = None
    stripe_payment_intent_id: str | None = None
    database_amount: Decimal | None = None
    stripe_amount: Decimal | None = None
    database_status: str | None = None
    stripe_status: str | None = None
    description: str


class ReconciliationReport(BaseModel):
    """Outcome of one daily reconciliation run."""

    model_config = ConfigDict(strict=True, frozen=True)

    report_date: date
    total_database_payments: int
    total_stripe_payments: int
    discrepancies: list[Discrepancy] = Field(default_factory=list)
    has_discrepancies: bool
    generated_at: datetime

    def count_by_type(self) -> dict[DiscrepancyType, int]:
        counts = {kind: 0 for kind in DiscrepancyType}
        for discrepancy in self.discrepancies:
            counts[discrepancy.type] += 1
        return counts
