"""Car and dynamic-pricing models."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .currency import ConversionResult
from .enums import CurrencyType


class Car(BaseModel):
    """The pricing-relevant part of a car record."""

    model_config = ConfigDict(strict=True)

    car_id: str
    brand: str | None = None
    model: str | None = None
    license_plate: str | None = None
    price: Decimal = Field(..., ge=0, description="Base daily price")
    currency: CurrencyType = Field(default=CurrencyType.TRY)
    body_type: str | None = None
    is_deleted: bool = False


class PricingContext(BaseModel):
    """Inputs every pricing strategy sees for one request."""

    model_config = ConfigDict(strict=True, frozen=True)

    car_id: str
    base_price: Decimal = Field(..., ge=0)
    start_date: date
    end_date: date
    booking_date: date
    rental_days: int = Field(..., ge=1)
    lead_time_days: int
    car_category: str = "UNKNOWN"


class PriceModifier(BaseModel):
    """A multiplicative adjustment produced by one pricing strategy."""

    model_config = ConfigDict(strict=True, frozen=True)

    strategy_name: str
    multiplier: Decimal = Field(..., gt=0)
    description: str
    is_discount: bool = False

    @classmethod
    def neutral(cls, strategy_name: str, description: str) -> "PriceModifier":
        return cls(
            strategy_name=strategy_name,
            multiplier=Decimal(1),
            description=description,
            is_discount=False,
        )

    @property
    def percentage_change(self) -> Decimal:
        """Signed change in percent, e.g. ``-10.00`` for a 0.90 multiplier."""
        return ((self.multiplier - 1) * 100).quantize(Decimal("0.01"))


class PricingResult(BaseModel):
    """Final price for a car and date range with the applied modifiers."""

    model_config = ConfigDict(strict=True, frozen=True)

    car_id: str
    base_price: Decimal
    rental_days: int
    currency: CurrencyType
    applied_modifiers: list[PriceModifier] = Field(default_factory=list)
    combined_multiplier: Decimal
    final_price: Decimal
    capped: bool = Field(default=False, description="True if a daily floor or ceiling applied")
    converted: ConversionResult | None = Field(
        default=None, description="Final price in the requested display currency"
    )

    @property
    def base_total(self) -> Decimal:
        return self.base_price * self.rental_days
