"""Currency conversion over the shared exchange-rate cache."""

import datetime as dt
import logging
from decimal import ROUND_HALF_UP, Decimal

from ..models.currency import ConversionResult, ExchangeRate, RateTable
from ..models.enums import CurrencyType, RateSource
from ..models.errors import CurrencyConversionError, InvalidInputError
from .rate_cache import RATE_PLACES, ExchangeRateCache

logger = logging.getLogger(__name__)


class CurrencyConverter:
    """Converts amounts between fleet currencies.

    Direct rates come from the ``from`` currency's table; when that table
    lacks the target, a cross rate is derived from the USD table.

    Usage:
        converter = CurrencyConverter(ExchangeRateCache(ExchangeRateClient()))
        result = converter.convert(Decimal("100"), CurrencyType.USD, CurrencyType.TRY)
    """

    CROSS_BASE = CurrencyType.USD

    def __init__(self, cache: ExchangeRateCache) -> None:
        self._cache = cache

    def convert(
        self, amount: Decimal, source: CurrencyType, target: CurrencyType
    ) -> ConversionResult:
        """Convert ``amount`` from ``source`` into ``target``.

        The result is rounded to the target currency's minor units.

        Raises:
            InvalidInputError: If the amount is missing
            CurrencyConversionError: If no direct or cross rate exists
        """
        if amount is None:
            raise InvalidInputError("Amount is required for currency conversion")

        rate = self.get_rate(source, target)
        if source is target:
            converted = amount
        else:
            converted = target.quantize(amount * rate.rate)

        logger.debug(
            "Converted %s %s to %s %s (rate %s, %s)",
            amount,
            source.value,
            converted,
            target.value,
            rate.rate,
            rate.source.value,
        )

        return ConversionResult(
            original_amount=amount,
            original_currency=source,
            converted_amount=converted,
            target_currency=target,
            exchange_rate=rate.rate,
            rate_timestamp=rate.timestamp,
            source=rate.source,
        )

    def get_rate(self, source: CurrencyType, target: CurrencyType) -> ExchangeRate:
        """Rate from ``source`` to ``target``; same-currency pairs never touch the cache."""
        if source is target:
            return ExchangeRate(
                source_currency=source,
                target_currency=target,
                rate=Decimal(1),
                timestamp=dt.datetime.now(dt.UTC),
                source=RateSource.LIVE,
            )

        table = self._cache.get_rates(source)
        direct = table.get_rate(target)
        if direct is not None:
            return ExchangeRate(
                source_currency=source,
                target_currency=target,
                rate=direct,
                timestamp=table.timestamp,
                source=table.source,
            )

        return self._cross_rate(source, target)

    def _cross_rate(self, source: CurrencyType, target: CurrencyType) -> ExchangeRate:
        usd_table = self._cache.get_rates(self.CROSS_BASE)
        source_per_usd = usd_table.get_rate(source)
        target_per_usd = usd_table.get_rate(target)

        if not source_per_usd or target_per_usd is None:
            raise CurrencyConversionError(
                f"No exchange rate available for {source.value} -> {target.value}",
                {"from": source.value, "to": target.value},
            )

        rate = (target_per_usd / source_per_usd).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
        logger.debug("Derived cross rate %s -> %s: %s", source.value, target.value, rate)

        return ExchangeRate(
            source_currency=source,
            target_currency=target,
            rate=rate,
            timestamp=dt.datetime.now(dt.UTC),
            source=usd_table.source,
        )

    def get_all_rates(self) -> RateTable:
        """The USD-based rate table."""
        return self._cache.get_rates(self.CROSS_BASE)

    def refresh_rates(self) -> None:
        """Evict every cached table and re-fetch the USD table."""
        logger.info("Refreshing exchange rates")
        self._cache.evict_all()
        self._cache.get_rates(self.CROSS_BASE)
