"""HTTP client for the upstream exchange-rate API.

Talks to an exchangerate-api style endpoint:
    GET {base_url}/{api_key}/latest/{BASE}
    -> {"base_code": "USD", "time_last_update_unix": 1718000000, "conversion_rates": {...}}

The older response shape ({"base", "time_last_updated", "rates"}) is also
accepted. Only currencies the fleet supports are kept.
"""

import datetime as dt
import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from ..config import CurrencyConfig
from ..models.currency import RateTable
from ..models.enums import CurrencyType, RateSource
from ..models.errors import ExchangeRateApiError
from .ssm_service import SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)


class ExchangeRateClient:
    """Fetches live rate tables.

    Usage:
        client = ExchangeRateClient(CurrencyConfig())
        table = client.fetch_rates(CurrencyType.USD)
    """

    def __init__(
        self,
        config: CurrencyConfig | None = None,
        *,
        api_key: str | None = None,
        environment: str | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Endpoint, timeouts and SSM parameter name
            api_key: API key; read from SSM on first use when omitted
            environment: Environment used in the SSM parameter path
            http_client: Pre-built httpx client (tests pass one with a MockTransport)
        """
        self._config = config or CurrencyConfig()
        self._api_key = api_key
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._http = http_client or httpx.Client(
            timeout=httpx.Timeout(
                self._config.read_timeout_seconds,
                connect=self._config.connect_timeout_seconds,
            )
        )

    def _get_api_key(self) -> str:
        if self._api_key is None:
            try:
                self._api_key = get_ssm_service().get_secret(
                    self._environment, self._config.api_key_parameter
                )
            except SSMServiceError as e:
                raise ExchangeRateApiError(f"Exchange rate API key unavailable: {e}") from e
        return self._api_key

    def fetch_rates(self, base: CurrencyType) -> RateTable:
        """Fetch the live rate table for ``base``.

        Raises:
            ExchangeRateApiError: On transport errors, non-2xx responses or
                a response without usable rates.
        """
        url = f"{self._config.api_base_url.rstrip('/')}/{self._get_api_key()}/latest/{base.value}"
        logger.info("Fetching exchange rates for base currency %s", base.value)

        try:
            response = self._http.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise ExchangeRateApiError("Exchange rate API timeout") from e
        except httpx.HTTPStatusError as e:
            raise ExchangeRateApiError(
                f"Exchange rate API error: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ExchangeRateApiError(f"Exchange rate API unreachable: {e}") from e
        except ValueError as e:
            raise ExchangeRateApiError(f"Invalid exchange rate response: {e}") from e

        return self._parse_table(base, data)

    @staticmethod
    def _parse_table(base: CurrencyType, data: Any) -> RateTable:
        if not isinstance(data, dict):
            raise ExchangeRateApiError("Invalid exchange rate response: not an object")

        raw_rates = data.get("conversion_rates") or data.get("rates")
        if not raw_rates:
            raise ExchangeRateApiError("Invalid response from exchange rate API: no rates")

        rates: dict[CurrencyType, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                currency = CurrencyType(code)
            except ValueError:
                continue
            try:
                rates[currency] = Decimal(str(value))
            except InvalidOperation as e:
                raise ExchangeRateApiError(f"Invalid rate for {code}: {value}") from e

        if not rates:
            raise ExchangeRateApiError("Exchange rate API returned no supported currencies")

        updated = data.get("time_last_update_unix") or data.get("time_last_updated")
        timestamp = (
            dt.datetime.fromtimestamp(int(updated), tz=dt.UTC)
            if updated
            else dt.datetime.now(dt.UTC)
        )

        logger.info("Fetched %d exchange rates for %s", len(rates), base.value)
        return RateTable(
            base_currency=base,
            timestamp=timestamp,
            rates=rates,
            source=RateSource.LIVE,
        )

    def close(self) -> None:
        self._http.close()
