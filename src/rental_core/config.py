"""Configuration for the rental core.

Values default to the production settings and can be overridden through
environment variables. Each section is a pydantic-settings class with its
own prefix: ``PENALTY_``, ``PRICING_``, ``EXCHANGE_RATE_`` and
``DETECTION_``; the variable name is the prefix plus the field name, e.g.
``PENALTY_GRACE_PERIOD_MINUTES``. Secrets are never read from the
environment; the exchange-rate API key and Stripe keys come from SSM
Parameter Store.

Usage:
    settings = load_settings()
    calculator = PenaltyCalculator(settings.penalty)
"""

import logging
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.enums import CurrencyType

logger = logging.getLogger(__name__)


def _reset_if_outside(name: str, value: Any, low: Any, high: Any, default: Any) -> Any:
    """Return ``default`` (with a warning) when ``value`` falls outside [low, high]."""
    if value < low or value > high:
        logger.warning(
            "Invalid %s: %s. Must be between %s and %s. Using default: %s",
            name,
            value,
            low,
            high,
            default,
        )
        return default
    return value


# =========================================================================
# Penalty
# =========================================================================


class PenaltyConfig(BaseSettings):
    """Late-return penalty settings.

    Penalty tiers (``late_hours`` counted after the grace period):
    - 1 to ``hourly_tier_max_hours``: hourly rate x daily price x hours
    - up to ``single_day_tier_max_hours``: one day at the daily penalty rate
    - beyond: late days at the daily penalty rate
    The result is capped at ``penalty_cap_multiplier`` x daily price.
    """

    model_config = SettingsConfigDict(env_prefix="PENALTY_", extra="ignore")

    grace_period_minutes: int = 60
    hourly_penalty_rate: Decimal = Decimal("0.10")
    daily_penalty_rate: Decimal = Decimal("1.50")
    penalty_cap_multiplier: Decimal = Decimal("5.0")
    severely_late_threshold_hours: int = Field(default=24, ge=1)
    hourly_tier_max_hours: int = Field(default=6, ge=1)
    single_day_tier_max_hours: int = Field(default=24, ge=1)

    @field_validator("grace_period_minutes")
    @classmethod
    def _validate_grace_period(cls, value: int) -> int:
        return _reset_if_outside("grace period minutes", value, 0, 120, 60)

    @field_validator("hourly_penalty_rate")
    @classmethod
    def _validate_hourly_rate(cls, value: Decimal) -> Decimal:
        return _reset_if_outside(
            "hourly penalty rate", value, Decimal("0.05"), Decimal("0.25"), Decimal("0.10")
        )

    @field_validator("daily_penalty_rate")
    @classmethod
    def _validate_daily_rate(cls, value: Decimal) -> Decimal:
        return _reset_if_outside(
            "daily penalty rate", value, Decimal("1.00"), Decimal("2.00"), Decimal("1.50")
        )

    @field_validator("penalty_cap_multiplier")
    @classmethod
    def _validate_cap(cls, value: Decimal) -> Decimal:
        return _reset_if_outside(
            "penalty cap multiplier", value, Decimal("3.0"), Decimal("10.0"), Decimal("5.0")
        )


# =========================================================================
# Pricing
# =========================================================================


class StrategyToggle(BaseModel):
    """Common switch and ordering for a pricing strategy."""

    enabled: bool = True
    order: int = 0


class SeasonPeriod(BaseModel):
    """A recurring month/day range, which may wrap past December 31."""

    start_month: int = Field(..., ge=1, le=12)
    start_day: int = Field(..., ge=1, le=31)
    end_month: int = Field(..., ge=1, le=12)
    end_day: int = Field(..., ge=1, le=31)
    multiplier: Decimal = Field(..., gt=0)


class SeasonConfig(StrategyToggle):
    order: int = 1
    peak: SeasonPeriod = SeasonPeriod(
        start_month=6, start_day=1, end_month=8, end_day=31, multiplier=Decimal("1.25")
    )
    offpeak: SeasonPeriod = SeasonPeriod(
        start_month=11, start_day=1, end_month=2, end_day=28, multiplier=Decimal("0.90")
    )


class LeadTimeTier(BaseModel):
    """Discount applied when booking at least ``min_days`` ahead."""

    min_days: int = Field(..., ge=0)
    multiplier: Decimal = Field(..., gt=0)
    label: str


class EarlyBookingConfig(StrategyToggle):
    order: int = 2
    tiers: list[LeadTimeTier] = [
        LeadTimeTier(min_days=30, multiplier=Decimal("0.85"), label="30+ days"),
        LeadTimeTier(min_days=14, multiplier=Decimal("0.90"), label="14-29 days"),
        LeadTimeTier(min_days=7, multiplier=Decimal("0.95"), label="7-13 days"),
    ]


class DurationTier(BaseModel):
    """Discount applied to rentals of at least ``min_days`` days."""

    min_days: int = Field(..., ge=1)
    multiplier: Decimal = Field(..., gt=0)


class DurationConfig(StrategyToggle):
    order: int = 3
    tiers: list[DurationTier] = [
        DurationTier(min_days=30, multiplier=Decimal("0.80")),
        DurationTier(min_days=14, multiplier=Decimal("0.85")),
        DurationTier(min_days=7, multiplier=Decimal("0.90")),
    ]


class WeekendConfig(StrategyToggle):
    order: int = 4
    multiplier: Decimal = Field(default=Decimal("1.15"), gt=0)
    # ISO weekday numbers (Monday=1 ... Sunday=7)
    days: list[int] = [5, 6, 7]


class DemandTier(BaseModel):
    threshold: int = Field(..., ge=0, le=100)
    multiplier: Decimal = Field(..., gt=0)


class DemandConfig(StrategyToggle):
    order: int = 5
    fleet_capacity: int = Field(default=10, ge=1)
    high: DemandTier = DemandTier(threshold=80, multiplier=Decimal("1.20"))
    moderate: DemandTier = DemandTier(threshold=50, multiplier=Decimal("1.10"))


class PricingConfig(BaseSettings):
    """Dynamic pricing settings: daily caps and per-strategy sections.

    Strategy fields are reached with a double underscore, e.g.
    ``PRICING_WEEKEND__ENABLED=false``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PRICING_", env_nested_delimiter="__", extra="ignore"
    )

    min_daily_price: Decimal = Field(default=Decimal("100"), ge=0)
    max_daily_price: Decimal = Field(default=Decimal("10000"), gt=0)
    season: SeasonConfig = SeasonConfig()
    early_booking: EarlyBookingConfig = EarlyBookingConfig()
    duration: DurationConfig = DurationConfig()
    weekend: WeekendConfig = WeekendConfig()
    demand: DemandConfig = DemandConfig()


# =========================================================================
# Currency
# =========================================================================


DEFAULT_FALLBACK_RATES: dict[CurrencyType, Decimal] = {
    CurrencyType.USD: Decimal("1"),
    CurrencyType.TRY: Decimal("42.49"),
    CurrencyType.EUR: Decimal("0.87"),
    CurrencyType.GBP: Decimal("0.76"),
    CurrencyType.JPY: Decimal("156.00"),
}


class CurrencyConfig(BaseSettings):
    """Exchange-rate source, cache and fallback settings."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_RATE_", extra="ignore")

    api_base_url: str = "https://v6.exchangerate-api.com/v6"
    # SSM key under /rental/{environment}/
    api_key_parameter: str = "exchange-rate/api_key"
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 10.0
    cache_ttl_seconds: int = Field(default=3600, ge=0)
    # Fallback tables are kept briefly so an outage does not hit the API on every call
    fallback_cache_ttl_seconds: int = Field(default=300, ge=0)
    # USD-based table used when the API is unreachable
    fallback_rates: dict[CurrencyType, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_RATES)
    )


class DetectionConfig(BaseSettings):
    """Late-return detection settings. Env prefix ``DETECTION_``."""

    model_config = SettingsConfigDict(env_prefix="DETECTION_", extra="ignore")

    page_size: int = Field(default=50, ge=1)


class Settings(BaseSettings):
    """All rental core settings for one environment.

    Each section reads its own prefixed variables when it is built.
    """

    model_config = SettingsConfigDict(extra="ignore")

    environment: str = "dev"
    penalty: PenaltyConfig = Field(default_factory=PenaltyConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    currency: CurrencyConfig = Field(default_factory=CurrencyConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)


def load_settings(environment: str | None = None) -> Settings:
    """Build settings from defaults plus environment overrides.

    Args:
        environment: Environment name. Defaults to ENVIRONMENT env var.

    Returns:
        Validated Settings instance
    """
    if environment:
        return Settings(environment=environment)
    return Settings()
