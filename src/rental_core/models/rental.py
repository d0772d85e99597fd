"""Rental, late-return and penalty models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import CurrencyType, LateReturnStatus, NotificationKind, RentalStatus


class RentalWindow(BaseModel):
    """The part of a rental the penalty calculator needs.

    The scheduled end is a date; lateness is measured from its end of day.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    rental_id: str = Field(..., description="Rental identifier")
    end_date: date = Field(..., description="Scheduled return date")
    daily_rate: Decimal = Field(..., ge=0, description="Daily price of the rental")
    currency: CurrencyType = Field(default=CurrencyType.TRY, description="Rental currency")


class Rental(BaseModel):
    """A persisted rental record as seen by the late-return detector."""

    model_config = ConfigDict(strict=True)

    rental_id: str = Field(..., description="Unique rental ID")
    car_id: str = Field(..., description="Reference to Car")
    customer_email: str | None = Field(default=None, description="Renter email for notifications")
    start_date: date = Field(..., description="First rental day")
    end_date: date = Field(..., description="Scheduled return date")
    daily_price: Decimal = Field(..., ge=0, description="Daily price in rental currency")
    currency: CurrencyType = Field(default=CurrencyType.TRY)
    status: RentalStatus = Field(..., description="Rental lifecycle status")
    late_return_status: LateReturnStatus = Field(default=LateReturnStatus.ON_TIME)
    late_detected_at: datetime | None = Field(
        default=None, description="First time the rental was seen past its end"
    )
    late_hours: int = Field(default=0, ge=0)
    penalty_amount: Decimal | None = Field(default=None, ge=0)
    penalty_paid: bool = Field(default=False)
    actual_return_time: datetime | None = Field(default=None)
    is_deleted: bool = Field(default=False)

    def to_window(self) -> RentalWindow:
        """Project this record onto the value the penalty calculator consumes."""
        return RentalWindow(
            rental_id=self.rental_id,
            end_date=self.end_date,
            daily_rate=self.daily_price,
            currency=self.currency,
        )


class PenaltyResult(BaseModel):
    """Outcome of a late-return penalty calculation."""

    model_config = ConfigDict(strict=True, frozen=True)

    penalty_amount: Decimal = Field(..., ge=0)
    daily_rate: Decimal = Field(..., ge=0)
    late_hours: int = Field(..., ge=0)
    late_days: int = Field(..., ge=0)
    status: LateReturnStatus
    breakdown: str = Field(..., description="Human-readable calculation breakdown")
    capped_at_max: bool = Field(default=False, description="True if the penalty cap applied")


class LateReturnNotification(BaseModel):
    """Notification emitted when the detector moves a rental to a new status."""

    model_config = ConfigDict(strict=True, frozen=True)

    kind: NotificationKind
    rental_id: str
    customer_email: str | None = None
    occurred_at: datetime
    scheduled_return_time: datetime
    late_hours: int = 0
    late_days: int = 0
    remaining_grace_minutes: int | None = None
    penalty_amount: Decimal | None = None
    currency: CurrencyType | None = None
    escalation_warning: str | None = None


class PenaltyWaiver(BaseModel):
    """An admin-issued reduction of a rental's penalty."""

    model_config = ConfigDict(strict=True)

    waiver_id: str
    rental_id: str
    original_penalty: Decimal = Field(..., ge=0)
    waived_amount: Decimal = Field(..., gt=0)
    remaining_penalty: Decimal = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    admin_id: str
    waived_at: datetime
    refund_initiated: bool = False
    refund_transaction_id: str | None = None


class LateReturnStatistics(BaseModel):
    """Aggregate late-return figures over a date range."""

    model_config = ConfigDict(strict=True, frozen=True)

    total_late_returns: int
    severely_late_count: int
    total_penalty_amount: Decimal
    collected_penalty_amount: Decimal
    pending_penalty_amount: Decimal
    average_late_hours: float
    late_return_percentage: float
