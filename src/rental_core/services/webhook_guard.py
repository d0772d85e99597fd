"""Idempotency guard for gateway webhook deliveries.

Stripe delivers events at least once. Each event id gets one tracking
record; side effects run only for the delivery that creates it (or that
reclaims it after a failure), which makes processing effectively
exactly-once.

Record lifecycle:
    (none) -> PROCESSING -> PROCESSED -> DUPLICATE (redelivery seen)
    PROCESSING -> FAILED -> PROCESSING (retry)
"""

import datetime as dt
import logging
from collections.abc import Callable

from ..models.enums import WebhookEventStatus
from ..models.webhook import WebhookEvent
from .repositories import WebhookEventRepository

logger = logging.getLogger(__name__)

_DUPLICATE_STATUSES = (
    WebhookEventStatus.PROCESSED,
    WebhookEventStatus.PROCESSING,
    WebhookEventStatus.DUPLICATE,
)


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class WebhookIdempotencyGuard:
    """Tracks webhook events by id so redeliveries are not reapplied.

    Usage:
        guard = WebhookIdempotencyGuard(WebhookEventRepository())
        if guard.begin(event_id, event_type, payload):
            try:
                apply(event)
                guard.mark_processed(event_id)
            except Exception as e:
                guard.mark_failed(event_id, str(e))
                raise
    """

    def __init__(
        self,
        events: WebhookEventRepository,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self._events = events
        self._clock = clock

    def is_event_already_processed(self, event_id: str) -> bool:
        """Whether a delivery of ``event_id`` must be dropped.

        A PROCESSED record is flipped to DUPLICATE to record the redelivery.
        FAILED records are not duplicates; the event may be retried.
        """
        event = self._events.get(event_id)
        if event is None:
            return False

        if event.status in _DUPLICATE_STATUSES:
            if event.status is WebhookEventStatus.PROCESSED:
                self._events.update_status(
                    event_id,
                    WebhookEventStatus.DUPLICATE,
                    self._clock(),
                    expected_status=WebhookEventStatus.PROCESSED,
                )
            logger.info(
                "Duplicate webhook event detected: %s (status: %s)", event_id, event.status.value
            )
            return True

        logger.info("Webhook event %s previously failed, allowing retry", event_id)
        return False

    def begin(self, event_id: str, event_type: str, payload: str | None = None) -> bool:
        """Atomically claim an event for processing.

        Creates the PROCESSING record if the id is unseen, or moves a FAILED
        record back to PROCESSING. Exactly one concurrent caller wins.

        Returns:
            True if this caller should apply the event
        """
        now = self._clock()
        created = self._events.create_processing(
            WebhookEvent(
                event_id=event_id,
                event_type=event_type,
                payload=payload,
                status=WebhookEventStatus.PROCESSING,
                created_at=now,
            )
        )
        if created:
            return True

        if self._events.reclaim_failed(event_id, now):
            logger.info("Reclaimed failed webhook event %s for retry", event_id)
            return True

        logger.info("Webhook event %s already claimed by another delivery", event_id)
        return False

    def mark_processed(self, event_id: str) -> None:
        now = self._clock()
        self._events.update_status(
            event_id, WebhookEventStatus.PROCESSED, now, processed_at=now
        )
        logger.info("Webhook event %s marked as processed", event_id)

    def mark_failed(self, event_id: str, error_message: str) -> None:
        self._events.update_status(
            event_id,
            WebhookEventStatus.FAILED,
            self._clock(),
            error_message=error_message,
        )
        logger.warning("Webhook event %s marked as failed: %s", event_id, error_message)
