"""Pydantic models for rental core data entities."""

from .currency import ConversionResult, ExchangeRate, RateTable
from .enums import (
    CurrencyType,
    DiscrepancyType,
    LateReturnStatus,
    NotificationKind,
    PaymentStatus,
    RateSource,
    RentalStatus,
    WebhookEventStatus,
)
from .errors import (
    ERROR_MESSAGES,
    CarNotFoundError,
    CurrencyConversionError,
    ErrorCode,
    ExchangeRateApiError,
    InvalidInputError,
    PaymentNotFoundError,
    PenaltyWaiverError,
    ReconciliationError,
    RentalCoreError,
    RentalNotFoundError,
    WebhookSignatureError,
)
from .payment import Discrepancy, GatewayCharge, Payment, ReconciliationReport
from .pricing import Car, PriceModifier, PricingContext, PricingResult
from .rental import (
    LateReturnNotification,
    LateReturnStatistics,
    PenaltyResult,
    PenaltyWaiver,
    Rental,
    RentalWindow,
)
from .webhook import WebhookEvent

__all__ = [
    # Enums
    "CurrencyType",
    "DiscrepancyType",
    "LateReturnStatus",
    "NotificationKind",
    "PaymentStatus",
    "RateSource",
    "RentalStatus",
    "WebhookEventStatus",
    # Rental
    "LateReturnNotification",
    "LateReturnStatistics",
    "PenaltyResult",
    "PenaltyWaiver",
    "Rental",
    "RentalWindow",
    # Pricing
    "Car",
    "PriceModifier",
    "PricingContext",
    "PricingResult",
    # Currency
    "ConversionResult",
    "ExchangeRate",
    "RateTable",
    # Payment
    "Discrepancy",
    "GatewayCharge",
    "Payment",
    "ReconciliationReport",
    # Webhook
    "WebhookEvent",
    # Errors
    "CarNotFoundError",
    "CurrencyConversionError",
    "ERROR_MESSAGES",
    "ErrorCode",
    "ExchangeRateApiError",
    "InvalidInputError",
    "PaymentNotFoundError",
    "PenaltyWaiverError",
    "ReconciliationError",
    "RentalCoreError",
    "RentalNotFoundError",
    "WebhookSignatureError",
]
