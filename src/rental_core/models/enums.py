"""Enumeration types for rental core data models."""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class RentalStatus(str, Enum):
    """Lifecycle status of a rental."""

    REQUESTED = "REQUESTED"
    CONFIRMED = "CONFIRMED"
    IN_USE = "IN_USE"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class LateReturnStatus(str, Enum):
    """Lateness of a rental relative to its scheduled end.

    Ordered by severity; compare with ``severity`` rather than by value.
    """

    ON_TIME = "ON_TIME"
    GRACE_PERIOD = "GRACE_PERIOD"
    LATE = "LATE"
    SEVERELY_LATE = "SEVERELY_LATE"

    @property
    def severity(self) -> int:
        return _LATE_STATUS_SEVERITY[self]

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


_LATE_STATUS_SEVERITY = {
    LateReturnStatus.ON_TIME: 0,
    LateReturnStatus.GRACE_PERIOD: 1,
    LateReturnStatus.LATE: 2,
    LateReturnStatus.SEVERELY_LATE: 3,
}


class RateSource(str, Enum):
    """Provenance of an exchange rate."""

    LIVE = "LIVE"  # Fetched from the upstream API
    FALLBACK = "FALLBACK"  # Static table from configuration


class CurrencyType(str, Enum):
    """Currencies the fleet can be priced and paid in."""

    TRY = "TRY"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"

    @property
    def decimal_places(self) -> int:
        """Minor-unit digits used when rounding amounts in this currency."""
        return _CURRENCY_META[self][2]

    @property
    def symbol(self) -> str:
        return _CURRENCY_META[self][1]

    @property
    def full_name(self) -> str:
        return _CURRENCY_META[self][0]

    def quantize(self, amount: Decimal) -> Decimal:
        """Round an amount to this currency's minor units (half-up)."""
        return amount.quantize(Decimal(1).scaleb(-self.decimal_places), rounding=ROUND_HALF_UP)

    def format_amount(self, amount: Decimal | None) -> str:
        """Format an amount with the currency symbol, e.g. ``€12.50`` or ``¥1200``."""
        if amount is None:
            amount = Decimal(0)
        return f"{self.symbol}{self.quantize(amount)}"

    @classmethod
    def from_string(cls, value: str) -> "CurrencyType":
        """Resolve a currency from its code or full name (case-insensitive).

        Raises:
            ValueError: If the value is empty or unknown.
        """
        if not value or not value.strip():
            raise ValueError("Currency code cannot be null or empty")

        cleaned = value.strip().upper()
        for currency in cls:
            if currency.value == cleaned or currency.full_name.upper() == cleaned:
                return currency
        raise ValueError(f"Unknown currency type: {value}")


# name, symbol, decimal places
_CURRENCY_META: dict[CurrencyType, tuple[str, str, int]] = {
    CurrencyType.TRY: ("Turkish Lira", "₺", 2),
    CurrencyType.USD: ("US Dollar", "$", 2),
    CurrencyType.EUR: ("Euro", "€", 2),
    CurrencyType.GBP: ("British Pound", "£", 2),
    CurrencyType.JPY: ("Japanese Yen", "¥", 0),
}


class PaymentStatus(str, Enum):
    """Status of a payment in the local ledger."""

    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class WebhookEventStatus(str, Enum):
    """Processing state of a tracked gateway webhook event."""

    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
    DUPLICATE = "DUPLICATE"  # A redelivery of an already processed event was seen


class DiscrepancyType(str, Enum):
    """Classification of a ledger mismatch found during reconciliation."""

    MISSING_IN_STRIPE = "MISSING_IN_STRIPE"
    MISSING_IN_DATABASE = "MISSING_IN_DATABASE"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    STATUS_MISMATCH = "STATUS_MISMATCH"


class NotificationKind(str, Enum):
    """Customer notification emitted on a late-return status change."""

    GRACE_PERIOD_WARNING = "GRACE_PERIOD_WARNING"
    LATE_RETURN = "LATE_RETURN"
    SEVERELY_LATE = "SEVERELY_LATE"
