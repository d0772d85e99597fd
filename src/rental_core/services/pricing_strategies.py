"""Pricing strategies for the dynamic pricing engine.

Each strategy turns a ``PricingContext`` into a multiplicative
``PriceModifier``. Strategies that look at individual days (season,
weekend) return the day-weighted average of their per-day multipliers.

Strategies (default order):
1. Season Pricing: peak Jun 1-Aug 31 x1.25, off-peak Nov 1-Feb 28 x0.90
2. Early Booking: 30+ / 14-29 / 7-13 days ahead x0.85 / x0.90 / x0.95
3. Duration Discount: 30+ / 14-29 / 7-13 day rentals x0.80 / x0.85 / x0.90
4. Weekend Pricing: Friday to Sunday x1.15
5. Demand Pricing: fleet occupancy above 80% x1.20, from 50% x1.10
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal

from ..config import (
    DemandConfig,
    DurationConfig,
    EarlyBookingConfig,
    PricingConfig,
    SeasonConfig,
    SeasonPeriod,
    StrategyToggle,
    WeekendConfig,
)
from ..models.pricing import PriceModifier, PricingContext
from .repositories import RentalRepository

MULTIPLIER_PLACES = Decimal("0.0001")


def _iter_days(start: dt.date, end: dt.date):
    day = start
    while day <= end:
        yield day
        day += dt.timedelta(days=1)


def _weighted_multiplier(weighted_sum: Decimal, total_days: int) -> Decimal:
    return (weighted_sum / total_days).quantize(MULTIPLIER_PLACES, rounding=ROUND_HALF_UP)


def _modifier(name: str, multiplier: Decimal, description: str) -> PriceModifier:
    return PriceModifier(
        strategy_name=name,
        multiplier=multiplier,
        description=description,
        is_discount=multiplier < 1,
    )


class PricingStrategy:
    """Base class: a named, orderable, switchable price modifier."""

    name: str = ""

    def __init__(self, config: StrategyToggle) -> None:
        self._toggle = config

    @property
    def enabled(self) -> bool:
        return self._toggle.enabled

    @property
    def order(self) -> int:
        return self._toggle.order

    def calculate(self, context: PricingContext) -> PriceModifier:
        raise NotImplementedError


class SeasonPricingStrategy(PricingStrategy):
    """Peak-season surcharge and off-peak discount, weighted by days in each season."""

    name = "Season Pricing"

    def __init__(self, config: SeasonConfig) -> None:
        super().__init__(config)
        self.config = config

    @staticmethod
    def in_period(day: dt.date, period: SeasonPeriod) -> bool:
        """Whether ``day`` falls in a recurring period; periods may wrap past Dec 31."""
        key = (day.month, day.day)
        start = (period.start_month, period.start_day)
        end = (period.end_month, period.end_day)
        if start <= end:
            return start <= key <= end
        return key >= start or key <= end

    def calculate(self, context: PricingContext) -> PriceModifier:
        peak_days = 0
        offpeak_days = 0
        total_days = 0
        for day in _iter_days(context.start_date, context.end_date):
            total_days += 1
            if self.in_period(day, self.config.peak):
                peak_days += 1
            elif self.in_period(day, self.config.offpeak):
                offpeak_days += 1

        if peak_days == 0 and offpeak_days == 0:
            return PriceModifier.neutral(self.name, "Regular season")

        regular_days = total_days - peak_days - offpeak_days
        weighted = (
            self.config.peak.multiplier * peak_days
            + self.config.offpeak.multiplier * offpeak_days
            + Decimal(regular_days)
        )
        multiplier = _weighted_multiplier(weighted, total_days)

        if offpeak_days == 0:
            description = f"Peak season ({peak_days}/{total_days} days)"
        elif peak_days == 0:
            description = f"Off-peak season ({offpeak_days}/{total_days} days)"
        else:
            description = (
                f"Mixed season ({peak_days} peak days, {offpeak_days} off-peak days, "
                f"{regular_days} regular days)"
            )
        return _modifier(self.name, multiplier, description)


class EarlyBookingStrategy(PricingStrategy):
    """Discount for booking well ahead of the start date."""

    name = "Early Booking"

    def __init__(self, config: EarlyBookingConfig) -> None:
        super().__init__(config)
        self.config = config

    def calculate(self, context: PricingContext) -> PriceModifier:
        for tier in sorted(self.config.tiers, key=lambda t: t.min_days, reverse=True):
            if context.lead_time_days >= tier.min_days:
                return _modifier(
                    self.name, tier.multiplier, f"Early booking discount ({tier.label})"
                )
        return PriceModifier.neutral(self.name, "No early booking discount")


class DurationDiscountStrategy(PricingStrategy):
    """Discount for long rentals."""

    name = "Duration Discount"

    def __init__(self, config: DurationConfig) -> None:
        super().__init__(config)
        self.config = config

    def calculate(self, context: PricingContext) -> PriceModifier:
        for tier in sorted(self.config.tiers, key=lambda t: t.min_days, reverse=True):
            if context.rental_days >= tier.min_days:
                return _modifier(
                    self.name,
                    tier.multiplier,
                    f"Long rental discount ({tier.min_days}+ days)",
                )
        return PriceModifier.neutral(self.name, "No duration discount")


class WeekendPricingStrategy(PricingStrategy):
    """Surcharge for weekend days, weighted by their share of the rental."""

    name = "Weekend Pricing"

    def __init__(self, config: WeekendConfig) -> None:
        super().__init__(config)
        self.config = config

    def calculate(self, context: PricingContext) -> PriceModifier:
        weekend_days = 0
        total_days = 0
        for day in _iter_days(context.start_date, context.end_date):
            total_days += 1
            if day.isoweekday() in self.config.days:
                weekend_days += 1

        if weekend_days == 0:
            return PriceModifier.neutral(self.name, "No weekend days")

        weighted = self.config.multiplier * weekend_days + Decimal(total_days - weekend_days)
        multiplier = _weighted_multiplier(weighted, total_days)
        return _modifier(
            self.name, multiplier, f"Weekend surcharge ({weekend_days}/{total_days} days)"
        )


class DemandPricingStrategy(PricingStrategy):
    """Surcharge when the car is heavily booked over the requested dates."""

    name = "Demand Pricing"

    def __init__(self, config: DemandConfig, rentals: RentalRepository) -> None:
        super().__init__(config)
        self.config = config
        self._rentals = rentals

    def occupancy_percent(self, context: PricingContext) -> int:
        overlapping = self._rentals.count_overlapping_rentals(
            context.car_id, context.start_date, context.end_date
        )
        return overlapping * 100 // self.config.fleet_capacity

    def calculate(self, context: PricingContext) -> PriceModifier:
        occupancy = self.occupancy_percent(context)

        if occupancy > self.config.high.threshold:
            return _modifier(
                self.name, self.config.high.multiplier, f"High demand ({occupancy}% occupancy)"
            )
        if occupancy >= self.config.moderate.threshold:
            return _modifier(
                self.name,
                self.config.moderate.multiplier,
                f"Moderate demand ({occupancy}% occupancy)",
            )
        return PriceModifier.neutral(self.name, f"Normal demand ({occupancy}% occupancy)")


def build_default_strategies(
    config: PricingConfig, rentals: RentalRepository
) -> list[PricingStrategy]:
    """The registered strategy set, enabled or not."""
    return [
        SeasonPricingStrategy(config.season),
        EarlyBookingStrategy(config.early_booking),
        DurationDiscountStrategy(config.duration),
        WeekendPricingStrategy(config.weekend),
        DemandPricingStrategy(config.demand, rentals),
    ]
