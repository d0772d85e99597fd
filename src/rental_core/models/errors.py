"""Standard error codes and exceptions for the rental core.

Every failure the core surfaces to a caller is a ``RentalCoreError`` carrying
one of these codes, so API layers and job runners can map them uniformly.
"""

import datetime as dt
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Not found (ERR_NF_*)
    CAR_NOT_FOUND = "ERR_NF_001"
    RENTAL_NOT_FOUND = "ERR_NF_002"
    PAYMENT_NOT_FOUND = "ERR_NF_003"

    # Invalid input (ERR_INPUT_*)
    INVALID_INPUT = "ERR_INPUT_001"
    INVALID_PENALTY_CONFIG = "ERR_INPUT_002"
    PENALTY_WAIVER_INVALID = "ERR_INPUT_003"

    # Upstream (ERR_UPSTREAM_*)
    EXCHANGE_RATE_API_ERROR = "ERR_UPSTREAM_001"
    CURRENCY_CONVERSION_FAILED = "ERR_UPSTREAM_002"
    RECONCILIATION_FAILED = "ERR_UPSTREAM_003"

    # Stripe (ERR_STRIPE_*)
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.CAR_NOT_FOUND: "Car not found",
    ErrorCode.RENTAL_NOT_FOUND: "Rental not found",
    ErrorCode.PAYMENT_NOT_FOUND: "Payment not found",
    ErrorCode.INVALID_INPUT: "Invalid input",
    ErrorCode.INVALID_PENALTY_CONFIG: "Invalid penalty configuration",
    ErrorCode.PENALTY_WAIVER_INVALID: "Penalty waiver request is invalid",
    ErrorCode.EXCHANGE_RATE_API_ERROR: "Exchange rate service unavailable",
    ErrorCode.CURRENCY_CONVERSION_FAILED: "Currency conversion failed",
    ErrorCode.RECONCILIATION_FAILED: "Payment reconciliation failed",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Stripe API error occurred",
}


class RentalCoreError(Exception):
    """Base exception for rental core operations.

    Attributes:
        code: Standard error code
        message: Human-readable message (defaults to the code's message)
        details: Optional identifiers involved in the failure
    """

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, str]] = None,
    ):
        self.message = message or ERROR_MESSAGES[self.code]
        self.details = details
        super().__init__(self.message)


class CarNotFoundError(RentalCoreError):
    """Raised when a car is absent or soft-deleted."""

    code = ErrorCode.CAR_NOT_FOUND

    def __init__(self, car_id: str):
        self.car_id = car_id
        super().__init__(f"Car not found with id: {car_id}", {"car_id": car_id})


class RentalNotFoundError(RentalCoreError):
    """Raised when a rental is absent or soft-deleted."""

    code = ErrorCode.RENTAL_NOT_FOUND

    def __init__(self, rental_id: str):
        self.rental_id = rental_id
        super().__init__(f"Rental not found with id: {rental_id}", {"rental_id": rental_id})


class PaymentNotFoundError(RentalCoreError):
    """Raised when no local payment matches a gateway reference."""

    code = ErrorCode.PAYMENT_NOT_FOUND


class InvalidInputError(RentalCoreError):
    """Raised when a caller violates an input contract."""

    code = ErrorCode.INVALID_INPUT


class PenaltyWaiverError(RentalCoreError):
    """Raised when a penalty waiver cannot be applied."""

    code = ErrorCode.PENALTY_WAIVER_INVALID


class ExchangeRateApiError(RentalCoreError):
    """Raised by the rate-source client when the upstream API fails."""

    code = ErrorCode.EXCHANGE_RATE_API_ERROR

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class CurrencyConversionError(RentalCoreError):
    """Raised when no direct or cross rate exists for a currency pair."""

    code = ErrorCode.CURRENCY_CONVERSION_FAILED


class ReconciliationError(RentalCoreError):
    """Raised when a daily reconciliation run cannot complete."""

    code = ErrorCode.RECONCILIATION_FAILED

    def __init__(self, reconciliation_date: dt.date, reason: str):
        self.reconciliation_date = reconciliation_date
        super().__init__(
            f"Reconciliation failed for date {reconciliation_date.isoformat()}: {reason}",
            {"date": reconciliation_date.isoformat()},
        )


class WebhookSignatureError(RentalCoreError):
    """Raised when a webhook payload fails signature verification."""

    code = ErrorCode.INVALID_WEBHOOK_SIGNATURE

    def __init__(self, event_id: str = "unknown"):
        self.event_id = event_id
        super().__init__(f"Invalid webhook signature for event: {event_id}")
