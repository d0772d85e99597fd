"""Unit tests for the exchange-rate client and rate cache.

The upstream API is replaced by ``httpx.MockTransport``; no network calls
are made.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import httpx
import pytest

from rental_core.config import CurrencyConfig
from rental_core.models.currency import RateTable
from rental_core.models.enums import CurrencyType, RateSource
from rental_core.models.errors import ExchangeRateApiError
from rental_core.services.exchange_rate_client import ExchangeRateClient
from rental_core.services.rate_cache import ExchangeRateCache

API_KEY = "test-api-key"

USD_RESPONSE = {
    "result": "success",
    "base_code": "USD",
    "time_last_update_unix": 1749513600,  # 2025-06-10 00:00:00 UTC
    "conversion_rates": {
        "USD": 1,
        "TRY": 39.25,
        "EUR": 0.8765,
        "GBP": 0.7391,
        "JPY": 144.5,
        "CHF": 0.82,
    },
}


def make_client(handler, config: CurrencyConfig | None = None) -> ExchangeRateClient:
    return ExchangeRateClient(
        config or CurrencyConfig(),
        api_key=API_KEY,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestExchangeRateClient:
    def test_fetch_rates_parses_supported_currencies(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=USD_RESPONSE)

        table = make_client(handler).fetch_rates(CurrencyType.USD)

        assert str(requests[0].url) == f"https://v6.exchangerate-api.com/v6/{API_KEY}/latest/USD"
        assert table.base_currency is CurrencyType.USD
        assert table.source is RateSource.LIVE
        assert table.rates[CurrencyType.TRY] == Decimal("39.25")
        assert table.rates[CurrencyType.EUR] == Decimal("0.8765")
        assert set(table.rates) == set(CurrencyType)
        assert table.timestamp == datetime(2025, 6, 10, tzinfo=timezone.utc)

    def test_legacy_response_shape(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"base": "EUR", "time_last_updated": 1749513600, "rates": {"USD": 1.14}},
            )

        table = make_client(handler).fetch_rates(CurrencyType.EUR)

        assert table.rates == {CurrencyType.USD: Decimal("1.14")}
        assert table.timestamp == datetime(2025, 6, 10, tzinfo=timezone.utc)

    def test_http_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"result": "error"})

        with pytest.raises(ExchangeRateApiError) as exc_info:
            make_client(handler).fetch_rates(CurrencyType.USD)

        assert exc_info.value.status_code == 503

    def test_timeout_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ExchangeRateApiError, match="timeout"):
            make_client(handler).fetch_rates(CurrencyType.USD)

    def test_connection_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExchangeRateApiError, match="unreachable"):
            make_client(handler).fetch_rates(CurrencyType.USD)

    @pytest.mark.parametrize(
        "body",
        [
            {"result": "success"},
            {"conversion_rates": {}},
            {"conversion_rates": {"CHF": 0.82}},
        ],
    )
    def test_response_without_usable_rates_raises(self, body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        with pytest.raises(ExchangeRateApiError):
            make_client(handler).fetch_rates(CurrencyType.USD)

    def test_invalid_json_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>maintenance</html>")

        with pytest.raises(ExchangeRateApiError):
            make_client(handler).fetch_rates(CurrencyType.USD)

    def test_api_key_read_from_ssm(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=USD_RESPONSE)

        with patch("rental_core.services.exchange_rate_client.get_ssm_service") as mock_get_ssm:
            mock_get_ssm.return_value.get_secret.return_value = "ssm-key"
            client = ExchangeRateClient(
                CurrencyConfig(),
                environment="prod",
                http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            )
            client.fetch_rates(CurrencyType.USD)

        mock_get_ssm.return_value.get_secret.assert_called_once_with(
            "prod", "exchange-rate/api_key"
        )


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def live_table(base: CurrencyType = CurrencyType.USD) -> RateTable:
    return RateTable(
        base_currency=base,
        timestamp=datetime(2025, 6, 10, tzinfo=timezone.utc),
        rates={CurrencyType.USD: Decimal("1"), CurrencyType.TRY: Decimal("39.25")},
        source=RateSource.LIVE,
    )


class TestExchangeRateCache:
    def test_cache_hit_within_ttl(self):
        client = MagicMock()
        client.fetch_rates.return_value = live_table()
        clock = FakeClock()
        cache = ExchangeRateCache(client, CurrencyConfig(cache_ttl_seconds=3600), clock)

        first = cache.get_rates(CurrencyType.USD)
        clock.now += 3599
        second = cache.get_rates(CurrencyType.USD)

        assert first is second
        client.fetch_rates.assert_called_once_with(CurrencyType.USD)

    def test_expired_entry_refetched(self):
        client = MagicMock()
        client.fetch_rates.return_value = live_table()
        clock = FakeClock()
        cache = ExchangeRateCache(client, CurrencyConfig(cache_ttl_seconds=60), clock)

        cache.get_rates(CurrencyType.USD)
        clock.now += 61
        cache.get_rates(CurrencyType.USD)

        assert client.fetch_rates.call_count == 2

    def test_fallback_on_api_error(self):
        client = MagicMock()
        client.fetch_rates.side_effect = ExchangeRateApiError("down")
        cache = ExchangeRateCache(client, CurrencyConfig(), FakeClock())

        table = cache.get_rates(CurrencyType.USD)

        assert table.source is RateSource.FALLBACK
        assert table.rates[CurrencyType.TRY] == Decimal("42.49")

    def test_fallback_cached_for_short_ttl(self):
        client = MagicMock()
        client.fetch_rates.side_effect = [ExchangeRateApiError("down"), live_table()]
        clock = FakeClock()
        cache = ExchangeRateCache(client, CurrencyConfig(fallback_cache_ttl_seconds=300), clock)

        assert cache.get_rates(CurrencyType.USD).source is RateSource.FALLBACK
        clock.now += 100
        assert cache.get_rates(CurrencyType.USD).source is RateSource.FALLBACK
        clock.now += 201
        assert cache.get_rates(CurrencyType.USD).source is RateSource.LIVE

    def test_fallback_rebased_onto_requested_currency(self):
        cache = ExchangeRateCache(MagicMock(), CurrencyConfig(), FakeClock())

        table = cache.fallback_table(CurrencyType.EUR)

        assert table.base_currency is CurrencyType.EUR
        assert table.rates[CurrencyType.EUR] == Decimal("1")
        # 1 / 0.87 and 42.49 / 0.87, six decimals half-up
        assert table.rates[CurrencyType.USD] == Decimal("1.149425")
        assert table.rates[CurrencyType.TRY] == Decimal("48.839080")

    def test_fallback_without_base_rate_raises(self):
        config = CurrencyConfig(fallback_rates={CurrencyType.USD: Decimal("1")})
        cache = ExchangeRateCache(MagicMock(), config, FakeClock())

        with pytest.raises(ExchangeRateApiError):
            cache.fallback_table(CurrencyType.GBP)

    def test_evict_all(self):
        client = MagicMock()
        client.fetch_rates.return_value = live_table()
        cache = ExchangeRateCache(client, CurrencyConfig(), FakeClock())

        cache.get_rates(CurrencyType.USD)
        cache.evict_all()
        cache.get_rates(CurrencyType.USD)

        assert client.fetch_rates.call_count == 2
