"""In-process cache of exchange-rate tables with static fallback.

Tables are cached per base currency with a TTL. On a miss the live client
is called; if it raises ``ExchangeRateApiError`` the configured USD-based
fallback table is rebased onto the requested currency and returned with
``FALLBACK`` provenance, so rate lookups degrade instead of failing.
"""

import datetime as dt
import logging
import threading
import time
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal

from ..config import CurrencyConfig
from ..models.currency import RateTable
from ..models.enums import CurrencyType, RateSource
from ..models.errors import ExchangeRateApiError
from .exchange_rate_client import ExchangeRateClient

logger = logging.getLogger(__name__)

RATE_PLACES = Decimal("0.000001")


class ExchangeRateCache:
    """Shared rate-table cache; refreshed wholesale with ``evict_all``."""

    def __init__(
        self,
        client: ExchangeRateClient,
        config: CurrencyConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._config = config or CurrencyConfig()
        self._clock = clock
        self._entries: dict[CurrencyType, tuple[float, RateTable]] = {}
        self._lock = threading.Lock()

    def get_rates(self, base: CurrencyType) -> RateTable:
        """Rate table for ``base``, from cache, the live API, or the fallback table."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(base)
            if entry is not None and entry[0] > now:
                logger.debug("Exchange rate cache hit for %s", base.value)
                return entry[1]

        try:
            table = self._client.fetch_rates(base)
            ttl = self._config.cache_ttl_seconds
        except ExchangeRateApiError as e:
            logger.warning(
                "Exchange rate API unavailable for %s, using fallback rates: %s", base.value, e
            )
            table = self.fallback_table(base)
            ttl = self._config.fallback_cache_ttl_seconds

        with self._lock:
            self._entries[base] = (now + ttl, table)
        return table

    def fallback_table(self, base: CurrencyType) -> RateTable:
        """Configured fallback rates rebased onto ``base``.

        Raises:
            ExchangeRateApiError: If ``base`` itself has no fallback rate.
        """
        usd_rates = self._config.fallback_rates
        base_rate = usd_rates.get(base)
        if base_rate is None or base_rate == 0:
            raise ExchangeRateApiError(f"No fallback rate configured for {base.value}")

        rates = {
            currency: (rate / base_rate).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
            for currency, rate in usd_rates.items()
        }
        rates[base] = Decimal(1)

        return RateTable(
            base_currency=base,
            timestamp=dt.datetime.now(dt.UTC),
            rates=rates,
            source=RateSource.FALLBACK,
        )

    def evict_all(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Exchange rate cache cleared")
