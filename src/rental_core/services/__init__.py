"""Services for the rental core."""

from .currency import CurrencyConverter
from .dynamodb import DynamoDBService, get_dynamodb_service
from .exchange_rate_client import ExchangeRateClient
from .late_return_detection import LateReturnDetector
from .late_return_report import LateReturnReportService
from .penalty import PenaltyCalculator
from .penalty_waiver import PenaltyWaiverService
from .pricing import PricingEngine
from .rate_cache import ExchangeRateCache
from .reconciliation import PaymentReconciler
from .repositories import (
    CarRepository,
    PaymentRepository,
    PenaltyWaiverRepository,
    RentalRepository,
    WebhookEventRepository,
)
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, StripeServiceError, get_stripe_service
from .webhook_guard import WebhookIdempotencyGuard
from .webhook_handler import StripeWebhookHandler

__all__ = [
    "DynamoDBService",
    "get_dynamodb_service",
    "CarRepository",
    "PaymentRepository",
    "PenaltyWaiverRepository",
    "RentalRepository",
    "WebhookEventRepository",
    "PenaltyCalculator",
    "LateReturnDetector",
    "LateReturnReportService",
    "PenaltyWaiverService",
    "PricingEngine",
    "CurrencyConverter",
    "ExchangeRateCache",
    "ExchangeRateClient",
    "PaymentReconciler",
    "WebhookIdempotencyGuard",
    "StripeWebhookHandler",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "get_stripe_service",
]
