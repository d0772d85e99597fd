"""Dynamic pricing engine for car rentals.

The final price is ``base daily price x rental days x combined multiplier``
where the combined multiplier is the product of every enabled strategy's
modifier. The result is then held inside the configured daily floor and
ceiling, which are applied to the derived daily price.
"""

import datetime as dt
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from ..config import PricingConfig
from ..models.enums import CurrencyType
from ..models.errors import CarNotFoundError, InvalidInputError
from ..models.pricing import Car, PriceModifier, PricingContext, PricingResult
from .pricing_strategies import PricingStrategy, build_default_strategies
from .repositories import CarRepository, RentalRepository

if TYPE_CHECKING:
    from .currency import CurrencyConverter

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class PricingEngine:
    """Service for dynamic rental price calculation.

    Usage:
        engine = PricingEngine(CarRepository(), strategies, PricingConfig())
        result = engine.calculate_price("car-1", start, end, booking_date)
    """

    def __init__(
        self,
        cars: CarRepository,
        strategies: list[PricingStrategy],
        config: PricingConfig | None = None,
        converter: "CurrencyConverter | None" = None,
    ) -> None:
        """Initialize the engine.

        Args:
            cars: Source of car records
            strategies: Registered strategies, enabled or not
            config: Daily price floor and ceiling
            converter: Optional converter for display-currency prices
        """
        self._cars = cars
        self._strategies = list(strategies)
        self._config = config or PricingConfig()
        self._converter = converter

    @classmethod
    def with_default_strategies(
        cls,
        cars: CarRepository,
        rentals: RentalRepository,
        config: PricingConfig | None = None,
        converter: "CurrencyConverter | None" = None,
    ) -> "PricingEngine":
        config = config or PricingConfig()
        return cls(cars, build_default_strategies(config, rentals), config, converter)

    def get_enabled_strategies(self) -> list[PricingStrategy]:
        """Enabled strategies in ascending order."""
        return sorted(
            (strategy for strategy in self._strategies if strategy.enabled),
            key=lambda strategy: strategy.order,
        )

    def calculate_price(
        self,
        car_id: str,
        start_date: dt.date,
        end_date: dt.date,
        booking_date: dt.date,
        display_currency: CurrencyType | None = None,
    ) -> PricingResult:
        """Calculate the total price for renting a car over an inclusive date range.

        Args:
            car_id: Car to price
            start_date: First rental day
            end_date: Last rental day
            booking_date: Day the booking is made (drives lead time)
            display_currency: Also convert the final price into this currency

        Returns:
            PricingResult with the applied modifiers and final price

        Raises:
            CarNotFoundError: If the car does not exist or is deleted
            InvalidInputError: If the end date is before the start date
        """
        logger.debug(
            "Calculating price for car: %s, dates: %s to %s, booking: %s",
            car_id,
            start_date,
            end_date,
            booking_date,
        )

        if start_date is None or end_date is None or booking_date is None:
            raise InvalidInputError("Start, end and booking dates are required")
        if end_date < start_date:
            raise InvalidInputError(
                f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}",
                {"car_id": car_id},
            )

        car = self._cars.get_active_car(car_id)
        if car is None:
            raise CarNotFoundError(car_id)

        context = self.build_context(car, start_date, end_date, booking_date)
        result = self._calculate_with_context(context, car.currency)

        if display_currency is not None and display_currency is not car.currency:
            if self._converter is None:
                raise InvalidInputError("Display currency requested but no converter configured")
            converted = self._converter.convert(result.final_price, car.currency, display_currency)
            result = result.model_copy(update={"converted": converted})

        return result

    def preview_price(
        self,
        car_id: str,
        start_date: dt.date,
        end_date: dt.date,
        display_currency: CurrencyType | None = None,
    ) -> PricingResult:
        """Price a rental as if booked today."""
        return self.calculate_price(
            car_id, start_date, end_date, dt.date.today(), display_currency=display_currency
        )

    @staticmethod
    def build_context(
        car: Car, start_date: dt.date, end_date: dt.date, booking_date: dt.date
    ) -> PricingContext:
        return PricingContext(
            car_id=car.car_id,
            base_price=car.price,
            start_date=start_date,
            end_date=end_date,
            booking_date=booking_date,
            rental_days=(end_date - start_date).days + 1,
            lead_time_days=(start_date - booking_date).days,
            car_category=car.body_type or "UNKNOWN",
        )

    def _calculate_with_context(
        self, context: PricingContext, currency: CurrencyType
    ) -> PricingResult:
        enabled = self.get_enabled_strategies()
        logger.debug("Applying %d enabled strategies", len(enabled))

        applied: list[PriceModifier] = []
        combined = Decimal(1)
        for strategy in enabled:
            modifier = strategy.calculate(context)
            applied.append(modifier)
            combined *= modifier.multiplier
            logger.debug(
                "Applied %s: %s (%s)", strategy.name, modifier.multiplier, modifier.description
            )

        base_total = context.base_price * context.rental_days
        calculated = (base_total * combined).quantize(CENTS, rounding=ROUND_HALF_UP)
        final_price = self.apply_price_caps(calculated, context.rental_days)

        logger.info(
            "Price calculation complete: base=%s, calculated=%s, final=%s",
            base_total,
            calculated,
            final_price,
        )

        return PricingResult(
            car_id=context.car_id,
            base_price=context.base_price,
            rental_days=context.rental_days,
            currency=currency,
            applied_modifiers=applied,
            combined_multiplier=combined,
            final_price=final_price,
            capped=final_price != calculated,
        )

    def apply_price_caps(self, calculated_price: Decimal, rental_days: int) -> Decimal:
        """Hold the derived daily price inside the configured floor and ceiling."""
        daily_price = (calculated_price / rental_days).quantize(CENTS, rounding=ROUND_HALF_UP)

        if daily_price < self._config.min_daily_price:
            logger.warning(
                "Daily price %s below minimum %s, applying cap",
                daily_price,
                self._config.min_daily_price,
            )
            return (self._config.min_daily_price * rental_days).quantize(
                CENTS, rounding=ROUND_HALF_UP
            )

        if daily_price > self._config.max_daily_price:
            logger.warning(
                "Daily price %s above maximum %s, applying cap",
                daily_price,
                self._config.max_daily_price,
            )
            return (self._config.max_daily_price * rental_days).quantize(
                CENTS, rounding=ROUND_HALF_UP
            )

        return calculated_price
