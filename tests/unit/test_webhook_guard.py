"""Unit tests for webhook idempotency tracking against moto DynamoDB."""

from datetime import datetime, timezone

import pytest

from rental_core.models.enums import WebhookEventStatus
from rental_core.services.webhook_guard import WebhookIdempotencyGuard

NOW = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)
EVENT_ID = "evt_test_001"
EVENT_TYPE = "checkout.session.completed"


@pytest.fixture
def guard(webhook_event_repository) -> WebhookIdempotencyGuard:
    return WebhookIdempotencyGuard(webhook_event_repository, clock=lambda: NOW)


class TestBegin:
    def test_first_delivery_claims_event(self, guard, webhook_event_repository):
        assert guard.begin(EVENT_ID, EVENT_TYPE, '{"id": "evt_test_001"}') is True

        stored = webhook_event_repository.get(EVENT_ID)
        assert stored.status is WebhookEventStatus.PROCESSING
        assert stored.event_type == EVENT_TYPE
        assert stored.payload == '{"id": "evt_test_001"}'
        assert stored.created_at == NOW

    def test_concurrent_second_claim_loses(self, guard):
        assert guard.begin(EVENT_ID, EVENT_TYPE) is True
        assert guard.begin(EVENT_ID, EVENT_TYPE) is False

    def test_processed_event_cannot_be_claimed(self, guard):
        guard.begin(EVENT_ID, EVENT_TYPE)
        guard.mark_processed(EVENT_ID)

        assert guard.begin(EVENT_ID, EVENT_TYPE) is False

    def test_failed_event_is_reclaimed(self, guard, webhook_event_repository):
        guard.begin(EVENT_ID, EVENT_TYPE)
        guard.mark_failed(EVENT_ID, "payment not found")

        assert guard.begin(EVENT_ID, EVENT_TYPE) is True

        stored = webhook_event_repository.get(EVENT_ID)
        assert stored.status is WebhookEventStatus.PROCESSING
        assert stored.error_message is None


class TestIsEventAlreadyProcessed:
    def test_unknown_event(self, guard):
        assert guard.is_event_already_processed(EVENT_ID) is False

    def test_processed_event_flips_to_duplicate(self, guard, webhook_event_repository):
        guard.begin(EVENT_ID, EVENT_TYPE)
        guard.mark_processed(EVENT_ID)

        assert guard.is_event_already_processed(EVENT_ID) is True
        assert webhook_event_repository.get(EVENT_ID).status is WebhookEventStatus.DUPLICATE

        # Later redeliveries stay duplicates
        assert guard.is_event_already_processed(EVENT_ID) is True
        assert webhook_event_repository.get(EVENT_ID).status is WebhookEventStatus.DUPLICATE

    def test_in_flight_event_is_duplicate(self, guard, webhook_event_repository):
        guard.begin(EVENT_ID, EVENT_TYPE)

        assert guard.is_event_already_processed(EVENT_ID) is True
        assert webhook_event_repository.get(EVENT_ID).status is WebhookEventStatus.PROCESSING

    def test_failed_event_allows_retry(self, guard):
        guard.begin(EVENT_ID, EVENT_TYPE)
        guard.mark_failed(EVENT_ID, "boom")

        assert guard.is_event_already_processed(EVENT_ID) is False


class TestMarking:
    def test_mark_processed_records_time(self, guard, webhook_event_repository):
        guard.begin(EVENT_ID, EVENT_TYPE)
        guard.mark_processed(EVENT_ID)

        stored = webhook_event_repository.get(EVENT_ID)
        assert stored.status is WebhookEventStatus.PROCESSED
        assert stored.processed_at == NOW

    def test_mark_failed_records_error(self, guard, webhook_event_repository):
        guard.begin(EVENT_ID, EVENT_TYPE)
        guard.mark_failed(EVENT_ID, "Payment not found for checkout session: cs_x")

        stored = webhook_event_repository.get(EVENT_ID)
        assert stored.status is WebhookEventStatus.FAILED
        assert stored.error_message == "Payment not found for checkout session: cs_x"

    def test_marking_unknown_event_is_noop(self, guard, webhook_event_repository):
        guard.mark_processed("evt_unknown")

        assert webhook_event_repository.get("evt_unknown") is None
