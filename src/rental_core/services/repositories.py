"""DynamoDB-backed repositories for rentals, cars, payments, webhook events and waivers.

Each repository converts between DynamoDB items and the strict pydantic
models: dates and datetimes are stored as ISO-8601 strings, enums by value,
money as ``Decimal`` (DynamoDB's native number type). Attributes that are
``None`` are omitted so sparse GSIs stay valid.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Generic, TypeVar

from boto3.dynamodb.conditions import Attr

from ..models.enums import (
    CurrencyType,
    LateReturnStatus,
    PaymentStatus,
    RentalStatus,
    WebhookEventStatus,
)
from ..models.payment import Payment
from ..models.pricing import Car
from ..models.rental import PenaltyWaiver, Rental
from ..models.webhook import WebhookEvent
from .dynamodb import DynamoDBService, get_dynamodb_service

T = TypeVar("T")

RENTALS_TABLE = "rentals"
CARS_TABLE = "cars"
PAYMENTS_TABLE = "payments"
WEBHOOK_EVENTS_TABLE = "webhook-events"
PENALTY_WAIVERS_TABLE = "penalty-waivers"

# Rentals that hold a car for their date range
ACTIVE_RENTAL_STATUSES = (RentalStatus.CONFIRMED, RentalStatus.IN_USE)


@dataclass
class Page(Generic[T]):
    """One page of a paged scan plus the key to continue from."""

    items: list[T] = field(default_factory=list)
    next_key: dict[str, Any] | None = None

    @property
    def has_next(self) -> bool:
        return self.next_key is not None


def _parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO datetime attribute, accepting a trailing ``Z``."""
    if value is None:
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_datetime(value: Any) -> datetime:
    parsed = _parse_datetime(value)
    if parsed is None:
        raise ValueError("Missing required datetime attribute")
    return parsed


def _parse_date(value: Any) -> date:
    return date.fromisoformat(str(value))


def _decimal_or_none(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def _compact(item: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in item.items() if value is not None}


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# =========================================================================
# Rentals
# =========================================================================


def rental_to_item(rental: Rental) -> dict[str, Any]:
    """Serialize a rental for DynamoDB."""
    return _compact(
        {
            "rental_id": rental.rental_id,
            "car_id": rental.car_id,
            "customer_email": rental.customer_email,
            "start_date": rental.start_date.isoformat(),
            "end_date": rental.end_date.isoformat(),
            "daily_price": rental.daily_price,
            "currency": rental.currency.value,
            "status": rental.status.value,
            "late_return_status": rental.late_return_status.value,
            "late_detected_at": _iso(rental.late_detected_at),
            "late_hours": rental.late_hours,
            "penalty_amount": rental.penalty_amount,
            "penalty_paid": rental.penalty_paid,
            "actual_return_time": _iso(rental.actual_return_time),
            "is_deleted": rental.is_deleted,
        }
    )


def item_to_rental(item: dict[str, Any]) -> Rental:
    """Deserialize a DynamoDB item into a rental."""
    return Rental(
        rental_id=item["rental_id"],
        car_id=item["car_id"],
        customer_email=item.get("customer_email"),
        start_date=_parse_date(item["start_date"]),
        end_date=_parse_date(item["end_date"]),
        daily_price=Decimal(str(item["daily_price"])),
        currency=CurrencyType(item.get("currency", CurrencyType.TRY.value)),
        status=RentalStatus(item["status"]),
        late_return_status=LateReturnStatus(
            item.get("late_return_status", LateReturnStatus.ON_TIME.value)
        ),
        late_detected_at=_parse_datetime(item.get("late_detected_at")),
        late_hours=int(item.get("late_hours", 0)),
        penalty_amount=_decimal_or_none(item.get("penalty_amount")),
        penalty_paid=bool(item.get("penalty_paid", False)),
        actual_return_time=_parse_datetime(item.get("actual_return_time")),
        is_deleted=bool(item.get("is_deleted", False)),
    )


class RentalRepository:
    """Rental records used by late-return detection, pricing and reporting."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def save(self, rental: Rental) -> None:
        self._db.put_item(RENTALS_TABLE, rental_to_item(rental))

    def get_rental(self, rental_id: str) -> Rental | None:
        """Get a non-deleted rental by id."""
        item = self._db.get_item(RENTALS_TABLE, {"rental_id": rental_id})
        if not item or item.get("is_deleted"):
            return None
        return item_to_rental(item)

    def find_overdue_rentals(
        self,
        current_date: date,
        page_size: int,
        start_key: dict[str, Any] | None = None,
    ) -> Page[Rental]:
        """Page through in-use, non-deleted rentals whose end date is before ``current_date``."""
        filter_expression = (
            Attr("status").eq(RentalStatus.IN_USE.value)
            & Attr("end_date").lt(current_date.isoformat())
            & Attr("is_deleted").eq(False)
        )
        items, next_key = self._db.scan_page(
            RENTALS_TABLE,
            page_size,
            filter_expression=filter_expression,
            exclusive_start_key=start_key,
        )
        return Page(items=[item_to_rental(item) for item in items], next_key=next_key)

    def update_late_status(self, rental: Rental) -> None:
        """Persist the late-return fields of a rental."""
        update_parts = ["late_return_status = :status", "late_hours = :hours"]
        values: dict[str, Any] = {
            ":status": rental.late_return_status.value,
            ":hours": rental.late_hours,
        }
        if rental.late_detected_at is not None:
            update_parts.append("late_detected_at = :detected")
            values[":detected"] = rental.late_detected_at.isoformat()
        if rental.penalty_amount is not None:
            update_parts.append("penalty_amount = :penalty")
            values[":penalty"] = rental.penalty_amount

        self._db.update_item(
            RENTALS_TABLE,
            key={"rental_id": rental.rental_id},
            update_expression="SET " + ", ".join(update_parts),
            expression_attribute_values=values,
        )

    def update_penalty(self, rental_id: str, penalty_amount: Decimal) -> None:
        self._db.update_item(
            RENTALS_TABLE,
            key={"rental_id": rental_id},
            update_expression="SET penalty_amount = :penalty",
            expression_attribute_values={":penalty": penalty_amount},
        )

    def count_overlapping_rentals(self, car_id: str, start_date: date, end_date: date) -> int:
        """Count confirmed or in-use rentals of a car that overlap the inclusive date range."""
        items = self._db.query_by_gsi(
            table=RENTALS_TABLE,
            index_name="car_id-index",
            partition_key_name="car_id",
            partition_key_value=car_id,
        )
        active = {status.value for status in ACTIVE_RENTAL_STATUSES}
        start_iso = start_date.isoformat()
        end_iso = end_date.isoformat()
        return sum(
            1
            for item in items
            if item.get("status") in active
            and not item.get("is_deleted")
            and item["start_date"] <= end_iso
            and item["end_date"] >= start_iso
        )

    def find_late_returns(
        self,
        statuses: list[LateReturnStatus],
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Rental]:
        """Rentals in one of ``statuses`` whose end date falls in the optional range."""
        filter_expression = Attr("late_return_status").is_in(
            [status.value for status in statuses]
        ) & Attr("is_deleted").eq(False)
        if start_date is not None:
            filter_expression = filter_expression & Attr("end_date").gte(start_date.isoformat())
        if end_date is not None:
            filter_expression = filter_expression & Attr("end_date").lte(end_date.isoformat())

        items = self._db.scan_all(RENTALS_TABLE, filter_expression=filter_expression)
        return [item_to_rental(item) for item in items]

    def count_returned(self, start_date: date | None = None, end_date: date | None = None) -> int:
        """Count returned rentals whose end date falls in the optional range."""
        filter_expression = Attr("status").eq(RentalStatus.RETURNED.value) & Attr(
            "is_deleted"
        ).eq(False)
        if start_date is not None:
            filter_expression = filter_expression & Attr("end_date").gte(start_date.isoformat())
        if end_date is not None:
            filter_expression = filter_expression & Attr("end_date").lte(end_date.isoformat())

        return len(self._db.scan_all(RENTALS_TABLE, filter_expression=filter_expression))


# =========================================================================
# Cars
# =========================================================================


class CarRepository:
    """Car records consumed by the pricing engine."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def save(self, car: Car) -> None:
        self._db.put_item(
            CARS_TABLE,
            _compact(
                {
                    "car_id": car.car_id,
                    "brand": car.brand,
                    "model": car.model,
                    "license_plate": car.license_plate,
                    "price": car.price,
                    "currency": car.currency.value,
                    "body_type": car.body_type,
                    "is_deleted": car.is_deleted,
                }
            ),
        )

    def get_active_car(self, car_id: str) -> Car | None:
        """Get a car by id; soft-deleted cars are treated as absent."""
        item = self._db.get_item(CARS_TABLE, {"car_id": car_id})
        if not item or item.get("is_deleted"):
            return None
        return Car(
            car_id=item["car_id"],
            brand=item.get("brand"),
            model=item.get("model"),
            license_plate=item.get("license_plate"),
            price=Decimal(str(item["price"])),
            currency=CurrencyType(item.get("currency", CurrencyType.TRY.value)),
            body_type=item.get("body_type"),
            is_deleted=False,
        )


# =========================================================================
# Payments
# =========================================================================


def payment_to_item(payment: Payment) -> dict[str, Any]:
    return _compact(
        {
            "payment_id": payment.payment_id,
            "rental_id": payment.rental_id,
            "amount": payment.amount,
            "currency": payment.currency,
            "status": payment.status.value,
            "created_at": payment.created_at.isoformat(),
            "transaction_id": payment.transaction_id,
            "stripe_session_id": payment.stripe_session_id,
            "stripe_payment_intent_id": payment.stripe_payment_intent_id,
            "failure_reason": payment.failure_reason,
            "refunded_amount": payment.refunded_amount,
            "is_deleted": payment.is_deleted,
        }
    )


def item_to_payment(item: dict[str, Any]) -> Payment:
    created_at = _require_datetime(item["created_at"])
    return Payment(
        payment_id=item["payment_id"],
        rental_id=item["rental_id"],
        amount=Decimal(str(item["amount"])),
        currency=item.get("currency", "TRY"),
        status=PaymentStatus(item["status"]),
        created_at=created_at,
        transaction_id=item.get("transaction_id"),
        stripe_session_id=item.get("stripe_session_id"),
        stripe_payment_intent_id=item.get("stripe_payment_intent_id"),
        failure_reason=item.get("failure_reason"),
        refunded_amount=_decimal_or_none(item.get("refunded_amount")),
        is_deleted=bool(item.get("is_deleted", False)),
    )


class PaymentRepository:
    """Local payment ledger."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def save(self, payment: Payment) -> None:
        self._db.put_item(PAYMENTS_TABLE, payment_to_item(payment))

    def find_created_between(self, start: datetime, end: datetime) -> list[Payment]:
        """Non-deleted payments created in ``[start, end)``; both bounds in UTC."""
        filter_expression = (
            Attr("created_at").gte(start.isoformat())
            & Attr("created_at").lt(end.isoformat())
            & Attr("is_deleted").eq(False)
        )
        items = self._db.scan_all(PAYMENTS_TABLE, filter_expression=filter_expression)
        return [item_to_payment(item) for item in items]

    def _get_by_index(self, index_name: str, key_name: str, value: str) -> Payment | None:
        items = self._db.query_by_gsi(
            table=PAYMENTS_TABLE,
            index_name=index_name,
            partition_key_name=key_name,
            partition_key_value=value,
        )
        for item in items:
            if not item.get("is_deleted"):
                return item_to_payment(item)
        return None

    def get_by_checkout_session(self, session_id: str) -> Payment | None:
        return self._get_by_index("stripe_session_id-index", "stripe_session_id", session_id)

    def get_by_payment_intent(self, payment_intent_id: str) -> Payment | None:
        return self._get_by_index(
            "stripe_payment_intent_id-index", "stripe_payment_intent_id", payment_intent_id
        )

    def get_for_rental(self, rental_id: str) -> Payment | None:
        return self._get_by_index("rental_id-index", "rental_id", rental_id)

    def update_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        *,
        transaction_id: str | None = None,
        payment_intent_id: str | None = None,
        failure_reason: str | None = None,
    ) -> dict[str, Any] | None:
        """Set a payment's status and any gateway references supplied."""
        update_parts = ["#status = :status", "updated_at = :now"]
        values: dict[str, Any] = {
            ":status": status.value,
            ":now": datetime.now(timezone.utc).isoformat(),
        }
        if transaction_id is not None:
            update_parts.append("transaction_id = :txn")
            values[":txn"] = transaction_id
        if payment_intent_id is not None:
            update_parts.append("stripe_payment_intent_id = :pi")
            values[":pi"] = payment_intent_id
        if failure_reason is not None:
            update_parts.append("failure_reason = :reason")
            values[":reason"] = failure_reason

        return self._db.update_item(
            PAYMENTS_TABLE,
            key={"payment_id": payment_id},
            update_expression="SET " + ", ".join(update_parts),
            expression_attribute_values=values,
            expression_attribute_names={"#status": "status"},
        )


# =========================================================================
# Webhook events
# =========================================================================


def item_to_webhook_event(item: dict[str, Any]) -> WebhookEvent:
    created_at = _require_datetime(item["created_at"])
    return WebhookEvent(
        event_id=item["event_id"],
        event_type=item["event_type"],
        payload=item.get("payload"),
        status=WebhookEventStatus(item["status"]),
        created_at=created_at,
        updated_at=_parse_datetime(item.get("updated_at")),
        processed_at=_parse_datetime(item.get("processed_at")),
        error_message=item.get("error_message"),
    )


class WebhookEventRepository:
    """Tracking records for received gateway webhook events."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def get(self, event_id: str) -> WebhookEvent | None:
        item = self._db.get_item(WEBHOOK_EVENTS_TABLE, {"event_id": event_id})
        return item_to_webhook_event(item) if item else None

    def create_processing(self, event: WebhookEvent) -> bool:
        """Insert the tracking record only if the event id is unseen.

        Returns:
            True if this caller created the record, False if it already existed
        """
        item = _compact(
            {
                "event_id": event.event_id,
                "event_type": event.event_type,
                "payload": event.payload,
                "status": WebhookEventStatus.PROCESSING.value,
                "created_at": event.created_at.isoformat(),
                "updated_at": event.created_at.isoformat(),
            }
        )
        return self._db.put_item(
            WEBHOOK_EVENTS_TABLE,
            item,
            condition_expression="attribute_not_exists(event_id)",
        )

    def reclaim_failed(self, event_id: str, now: datetime) -> bool:
        """Move a FAILED record back to PROCESSING for a retry.

        Returns:
            True if this caller won the transition
        """
        result = self._db.update_item(
            WEBHOOK_EVENTS_TABLE,
            key={"event_id": event_id},
            update_expression="SET #status = :processing, updated_at = :now REMOVE error_message",
            expression_attribute_values={
                ":processing": WebhookEventStatus.PROCESSING.value,
                ":failed": WebhookEventStatus.FAILED.value,
                ":now": now.isoformat(),
            },
            expression_attribute_names={"#status": "status"},
            condition_expression="#status = :failed",
        )
        return result is not None

    def update_status(
        self,
        event_id: str,
        status: WebhookEventStatus,
        now: datetime,
        *,
        processed_at: datetime | None = None,
        error_message: str | None = None,
        expected_status: WebhookEventStatus | None = None,
    ) -> bool:
        """Set an event's status, optionally only when it currently has ``expected_status``.

        Returns:
            True if the record was updated
        """
        update_parts = ["#status = :status", "updated_at = :now"]
        values: dict[str, Any] = {":status": status.value, ":now": now.isoformat()}
        if processed_at is not None:
            update_parts.append("processed_at = :processed")
            values[":processed"] = processed_at.isoformat()
        if error_message is not None:
            update_parts.append("error_message = :error")
            values[":error"] = error_message

        condition = "attribute_exists(event_id)"
        if expected_status is not None:
            condition += " AND #status = :expected"
            values[":expected"] = expected_status.value

        result = self._db.update_item(
            WEBHOOK_EVENTS_TABLE,
            key={"event_id": event_id},
            update_expression="SET " + ", ".join(update_parts),
            expression_attribute_values=values,
            expression_attribute_names={"#status": "status"},
            condition_expression=condition,
        )
        return result is not None


# =========================================================================
# Penalty waivers
# =========================================================================


class PenaltyWaiverRepository:
    """Audit trail of penalty waivers."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def save(self, waiver: PenaltyWaiver) -> None:
        self._db.put_item(
            PENALTY_WAIVERS_TABLE,
            _compact(
                {
                    "waiver_id": waiver.waiver_id,
                    "rental_id": waiver.rental_id,
                    "original_penalty": waiver.original_penalty,
                    "waived_amount": waiver.waived_amount,
                    "remaining_penalty": waiver.remaining_penalty,
                    "reason": waiver.reason,
                    "admin_id": waiver.admin_id,
                    "waived_at": waiver.waived_at.isoformat(),
                    "refund_initiated": waiver.refund_initiated,
                    "refund_transaction_id": waiver.refund_transaction_id,
                }
            ),
        )

    def find_by_rental(self, rental_id: str) -> list[PenaltyWaiver]:
        """Waivers for a rental, oldest first."""
        items = self._db.query_by_gsi(
            table=PENALTY_WAIVERS_TABLE,
            index_name="rental_id-index",
            partition_key_name="rental_id",
            partition_key_value=rental_id,
        )
        waivers = []
        for item in items:
            waived_at = _require_datetime(item["waived_at"])
            waivers.append(
                PenaltyWaiver(
                    waiver_id=item["waiver_id"],
                    rental_id=item["rental_id"],
                    original_penalty=Decimal(str(item["original_penalty"])),
                    waived_amount=Decimal(str(item["waived_amount"])),
                    remaining_penalty=Decimal(str(item["remaining_penalty"])),
                    reason=item["reason"],
                    admin_id=item["admin_id"],
                    waived_at=waived_at,
                    refund_initiated=bool(item.get("refund_initiated", False)),
                    refund_transaction_id=item.get("refund_transaction_id"),
                )
            )
        return sorted(waivers, key=lambda waiver: waiver.waived_at)
