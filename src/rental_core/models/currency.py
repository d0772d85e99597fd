"""Exchange rate and conversion models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import CurrencyType, RateSource


class ExchangeRate(BaseModel):
    """A single directional rate between two currencies."""

    model_config = ConfigDict(strict=True, frozen=True)

    source_currency: CurrencyType
    target_currency: CurrencyType
    rate: Decimal = Field(..., gt=0)
    timestamp: datetime
    source: RateSource

    @property
    def is_fallback(self) -> bool:
        return self.source is RateSource.FALLBACK


class RateTable(BaseModel):
    """All known rates for one base currency, as returned by the rate source."""

    model_config = ConfigDict(strict=True, frozen=True)

    base_currency: CurrencyType
    timestamp: datetime
    rates: dict[CurrencyType, Decimal] = Field(default_factory=dict)
    source: RateSource = RateSource.LIVE

    def get_rate(self, currency: CurrencyType) -> Decimal | None:
        return self.rates.get(currency)


class ConversionResult(BaseModel):
    """Result of converting an amount between currencies."""

    model_config = ConfigDict(strict=True, frozen=True)

    original_amount: Decimal
    original_currency: CurrencyType
    converted_amount: Decimal
    target_currency: CurrencyType
    exchange_rate: Decimal
    rate_timestamp: datetime
    source: RateSource

    @property
    def is_converted(self) -> bool:
        return self.original_currency is not self.target_currency

    @property
    def formatted_original(self) -> str:
        return self.original_currency.format_amount(self.original_amount)

    @property
    def formatted_converted(self) -> str:
        return self.target_currency.format_amount(self.converted_amount)
