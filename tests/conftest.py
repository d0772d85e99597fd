"""Pytest configuration and fixtures for rental core tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto
- Repository fixtures bound to the mocked tables
- Sample rentals, cars and payments
"""

import os
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-rental")
os.environ.setdefault("ENVIRONMENT", "test")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from rental_core.models import (  # noqa: E402
    Car,
    CurrencyType,
    LateReturnStatus,
    Payment,
    PaymentStatus,
    Rental,
    RentalStatus,
)

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached service singletons before and after each test.

    Tests using mock_aws then get fresh boto3 clients inside the mock
    context rather than reusing one from a previous test.
    """
    from rental_core.services.dynamodb import reset_dynamodb_service
    from rental_core.services.ssm_service import SSMService, get_ssm_service
    from rental_core.services.stripe_service import get_stripe_service

    def _reset() -> None:
        reset_dynamodb_service()
        get_ssm_service.cache_clear()
        get_stripe_service.cache_clear()
        SSMService._instance = None
        SSMService._cache.clear()

    _reset()
    yield
    _reset()


# === DynamoDB Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def dynamodb_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked DynamoDB client."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        yield client


def _gsi(attribute: str) -> dict[str, Any]:
    return {
        "IndexName": f"{attribute}-index",
        "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
        "Projection": {"ProjectionType": "ALL"},
    }


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all rental core DynamoDB tables for testing."""
    tables = [
        ("rentals", "rental_id", ["car_id"]),
        ("cars", "car_id", []),
        ("payments", "payment_id", ["stripe_session_id", "stripe_payment_intent_id", "rental_id"]),
        ("webhook-events", "event_id", []),
        ("penalty-waivers", "waiver_id", ["rental_id"]),
    ]

    for name, hash_key, indexed in tables:
        definition: dict[str, Any] = {
            "TableName": f"{TABLE_PREFIX}-{name}",
            "KeySchema": [{"AttributeName": hash_key, "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": attribute, "AttributeType": "S"}
                for attribute in [hash_key, *indexed]
            ],
            "BillingMode": "PAY_PER_REQUEST",
        }
        if indexed:
            definition["GlobalSecondaryIndexes"] = [_gsi(attribute) for attribute in indexed]
        dynamodb_client.create_table(**definition)


@pytest.fixture
def rental_repository(create_tables: None):
    from rental_core.services.repositories import RentalRepository

    return RentalRepository()


@pytest.fixture
def car_repository(create_tables: None):
    from rental_core.services.repositories import CarRepository

    return CarRepository()


@pytest.fixture
def payment_repository(create_tables: None):
    from rental_core.services.repositories import PaymentRepository

    return PaymentRepository()


@pytest.fixture
def webhook_event_repository(create_tables: None):
    from rental_core.services.repositories import WebhookEventRepository

    return WebhookEventRepository()


@pytest.fixture
def penalty_waiver_repository(create_tables: None):
    from rental_core.services.repositories import PenaltyWaiverRepository

    return PenaltyWaiverRepository()


# === Sample Data Fixtures ===


def make_rental(
    rental_id: str = "RENT-001",
    *,
    car_id: str = "CAR-001",
    start_date: date = date(2025, 6, 5),
    end_date: date = date(2025, 6, 10),
    daily_price: Decimal = Decimal("500.00"),
    status: RentalStatus = RentalStatus.IN_USE,
    late_return_status: LateReturnStatus = LateReturnStatus.ON_TIME,
    late_hours: int = 0,
    penalty_amount: Decimal | None = None,
    penalty_paid: bool = False,
    is_deleted: bool = False,
) -> Rental:
    """Build a rental with sensible defaults."""
    return Rental(
        rental_id=rental_id,
        car_id=car_id,
        customer_email="renter@example.com",
        start_date=start_date,
        end_date=end_date,
        daily_price=daily_price,
        currency=CurrencyType.TRY,
        status=status,
        late_return_status=late_return_status,
        late_hours=late_hours,
        penalty_amount=penalty_amount,
        penalty_paid=penalty_paid,
        is_deleted=is_deleted,
    )


def make_payment(
    payment_id: str = "PAY-001",
    *,
    rental_id: str = "RENT-001",
    amount: Decimal = Decimal("3000.00"),
    status: PaymentStatus = PaymentStatus.CAPTURED,
    created_at: datetime = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc),
    stripe_session_id: str | None = "cs_test_001",
    stripe_payment_intent_id: str | None = "pi_test_001",
) -> Payment:
    """Build a payment with sensible defaults."""
    return Payment(
        payment_id=payment_id,
        rental_id=rental_id,
        amount=amount,
        currency="TRY",
        status=status,
        created_at=created_at,
        stripe_session_id=stripe_session_id,
        stripe_payment_intent_id=stripe_payment_intent_id,
    )


@pytest.fixture
def sample_rental() -> Rental:
    return make_rental()


@pytest.fixture
def sample_car() -> Car:
    return Car(
        car_id="CAR-001",
        brand="Toyota",
        model="Corolla",
        license_plate="34 ABC 123",
        price=Decimal("500.00"),
        currency=CurrencyType.TRY,
        body_type="SEDAN",
    )


@pytest.fixture
def rental_factory():
    """Factory for rentals: ``rental_factory("RENT-002", end_date=...)``."""
    return make_rental


@pytest.fixture
def payment_factory():
    """Factory for payments: ``payment_factory("PAY-002", amount=...)``."""
    return make_payment
