"""Unit tests for the individual pricing strategies."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from rental_core.config import (
    DemandConfig,
    DurationConfig,
    EarlyBookingConfig,
    PricingConfig,
    SeasonConfig,
    WeekendConfig,
)
from rental_core.models.pricing import PricingContext
from rental_core.services.pricing_strategies import (
    DemandPricingStrategy,
    DurationDiscountStrategy,
    EarlyBookingStrategy,
    SeasonPricingStrategy,
    WeekendPricingStrategy,
    build_default_strategies,
)


def context(
    start: date,
    end: date,
    booking: date | None = None,
    car_id: str = "CAR-001",
) -> PricingContext:
    booking = booking or start
    return PricingContext(
        car_id=car_id,
        base_price=Decimal("500.00"),
        start_date=start,
        end_date=end,
        booking_date=booking,
        rental_days=(end - start).days + 1,
        lead_time_days=(start - booking).days,
    )


class TestSeasonPricing:
    @pytest.fixture
    def strategy(self) -> SeasonPricingStrategy:
        return SeasonPricingStrategy(SeasonConfig())

    def test_peak_season(self, strategy):
        modifier = strategy.calculate(context(date(2025, 6, 1), date(2025, 6, 6)))

        assert modifier.multiplier == Decimal("1.25")
        assert modifier.description == "Peak season (6/6 days)"
        assert modifier.is_discount is False

    def test_partial_peak_is_weighted(self, strategy):
        # May 30-31 regular, June 1-2 peak
        modifier = strategy.calculate(context(date(2025, 5, 30), date(2025, 6, 2)))

        assert modifier.multiplier == Decimal("1.1250")
        assert modifier.description == "Peak season (2/4 days)"

    def test_off_peak_wraps_year_end(self, strategy):
        modifier = strategy.calculate(context(date(2025, 12, 30), date(2026, 1, 2)))

        assert modifier.multiplier == Decimal("0.90")
        assert modifier.description == "Off-peak season (4/4 days)"
        assert modifier.is_discount is True

    def test_mixed_season(self, strategy):
        modifier = strategy.calculate(context(date(2025, 8, 31), date(2025, 11, 1)))

        assert modifier.multiplier == Decimal("1.0024")
        assert modifier.description == (
            "Mixed season (1 peak days, 1 off-peak days, 61 regular days)"
        )

    def test_regular_season(self, strategy):
        modifier = strategy.calculate(context(date(2025, 4, 1), date(2025, 4, 5)))

        assert modifier.multiplier == Decimal("1")
        assert modifier.description == "Regular season"

    def test_in_period_handles_wrap(self):
        offpeak = SeasonConfig().offpeak

        assert SeasonPricingStrategy.in_period(date(2025, 1, 15), offpeak)
        assert SeasonPricingStrategy.in_period(date(2025, 11, 1), offpeak)
        assert not SeasonPricingStrategy.in_period(date(2025, 3, 1), offpeak)


class TestEarlyBooking:
    @pytest.fixture
    def strategy(self) -> EarlyBookingStrategy:
        return EarlyBookingStrategy(EarlyBookingConfig())

    @pytest.mark.parametrize(
        ("lead_days", "multiplier", "description"),
        [
            (45, Decimal("0.85"), "Early booking discount (30+ days)"),
            (30, Decimal("0.85"), "Early booking discount (30+ days)"),
            (14, Decimal("0.90"), "Early booking discount (14-29 days)"),
            (7, Decimal("0.95"), "Early booking discount (7-13 days)"),
            (6, Decimal("1"), "No early booking discount"),
            (0, Decimal("1"), "No early booking discount"),
        ],
    )
    def test_tiers(self, strategy, lead_days, multiplier, description):
        start = date(2025, 4, 1)
        booking = date.fromordinal(start.toordinal() - lead_days)

        modifier = strategy.calculate(context(start, date(2025, 4, 3), booking))

        assert modifier.multiplier == multiplier
        assert modifier.description == description


class TestDurationDiscount:
    @pytest.fixture
    def strategy(self) -> DurationDiscountStrategy:
        return DurationDiscountStrategy(DurationConfig())

    @pytest.mark.parametrize(
        ("end", "multiplier", "description"),
        [
            (date(2025, 4, 30), Decimal("0.80"), "Long rental discount (30+ days)"),
            (date(2025, 4, 14), Decimal("0.85"), "Long rental discount (14+ days)"),
            (date(2025, 4, 7), Decimal("0.90"), "Long rental discount (7+ days)"),
            (date(2025, 4, 6), Decimal("1"), "No duration discount"),
        ],
    )
    def test_tiers(self, strategy, end, multiplier, description):
        modifier = strategy.calculate(context(date(2025, 4, 1), end))

        assert modifier.multiplier == multiplier
        assert modifier.description == description


class TestWeekendPricing:
    @pytest.fixture
    def strategy(self) -> WeekendPricingStrategy:
        return WeekendPricingStrategy(WeekendConfig())

    def test_full_week(self, strategy):
        # Monday 2 June to Sunday 8 June 2025
        modifier = strategy.calculate(context(date(2025, 6, 2), date(2025, 6, 8)))

        assert modifier.multiplier == Decimal("1.0643")
        assert modifier.description == "Weekend surcharge (3/7 days)"

    def test_weekend_only(self, strategy):
        modifier = strategy.calculate(context(date(2025, 6, 6), date(2025, 6, 8)))

        assert modifier.multiplier == Decimal("1.15")

    def test_weekdays_only(self, strategy):
        modifier = strategy.calculate(context(date(2025, 6, 2), date(2025, 6, 5)))

        assert modifier.multiplier == Decimal("1")
        assert modifier.description == "No weekend days"


class TestDemandPricing:
    @pytest.mark.parametrize(
        ("overlapping", "multiplier", "description"),
        [
            (9, Decimal("1.20"), "High demand (90% occupancy)"),
            (8, Decimal("1.10"), "Moderate demand (80% occupancy)"),
            (5, Decimal("1.10"), "Moderate demand (50% occupancy)"),
            (3, Decimal("1"), "Normal demand (30% occupancy)"),
        ],
    )
    def test_occupancy_tiers(self, overlapping, multiplier, description):
        rentals = MagicMock()
        rentals.count_overlapping_rentals.return_value = overlapping
        strategy = DemandPricingStrategy(DemandConfig(), rentals)

        modifier = strategy.calculate(context(date(2025, 4, 1), date(2025, 4, 3)))

        assert modifier.multiplier == multiplier
        assert modifier.description == description
        rentals.count_overlapping_rentals.assert_called_once_with(
            "CAR-001", date(2025, 4, 1), date(2025, 4, 3)
        )


class TestDefaultStrategies:
    def test_registered_in_configured_order(self):
        strategies = build_default_strategies(PricingConfig(), MagicMock())

        assert [s.name for s in sorted(strategies, key=lambda s: s.order)] == [
            "Season Pricing",
            "Early Booking",
            "Duration Discount",
            "Weekend Pricing",
            "Demand Pricing",
        ]
        assert all(strategy.enabled for strategy in strategies)
