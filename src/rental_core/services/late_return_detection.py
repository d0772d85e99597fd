"""Scheduled detection of overdue rentals.

Scans in-use rentals whose end date has passed, page by page, and moves
each one to its current late-return status. Each rental is handled on its
own: a failure is logged and the scan continues. Rentals whose status has
not changed are not written, so a repeated run with no elapsed time is a
no-op.
"""

import datetime as dt
import logging
from collections.abc import Callable
from typing import Any, TypedDict

from ..config import DetectionConfig
from ..models.enums import LateReturnStatus, NotificationKind
from ..models.rental import LateReturnNotification, PenaltyResult, Rental
from ..utils.logging import log_penalty_operation
from .penalty import PenaltyCalculator
from .repositories import RentalRepository

logger = logging.getLogger(__name__)

SEVERELY_LATE_ESCALATION = (
    "Your rental is severely overdue. Please return the vehicle immediately "
    "to avoid further penalties and potential legal action."
)

Notifier = Callable[[LateReturnNotification], None]


class DetectionRunResult(TypedDict):
    """Counters for one detection run."""

    processed: int
    updated: int
    failed: int


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class LateReturnDetector:
    """Updates the late-return status of overdue rentals.

    Usage:
        detector = LateReturnDetector(RentalRepository(), PenaltyCalculator(config))
        detector.detect_late_returns()
    """

    def __init__(
        self,
        rentals: RentalRepository,
        calculator: PenaltyCalculator,
        config: DetectionConfig | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self._rentals = rentals
        self._calculator = calculator
        self._config = config or DetectionConfig()
        self._notifier = notifier
        self._clock = clock

    def detect_late_returns(self) -> DetectionRunResult:
        """Scan all overdue rentals and persist status changes.

        Returns:
            Counts of rentals processed, updated and failed

        Raises:
            Exception: Re-raised if the scan itself (not a single rental) fails.
        """
        logger.info("Starting late return detection process")

        now = self._clock()
        current_date = now.date()
        result = DetectionRunResult(processed=0, updated=0, failed=0)
        start_key: dict[str, Any] | None = None

        try:
            while True:
                page = self._rentals.find_overdue_rentals(
                    current_date, self._config.page_size, start_key
                )

                for rental in page.items:
                    result["processed"] += 1
                    try:
                        if self.process_rental(rental, now):
                            result["updated"] += 1
                    except Exception as e:
                        result["failed"] += 1
                        logger.error(
                            "Error processing rental %s: %s", rental.rental_id, e, exc_info=True
                        )

                if not page.has_next:
                    break
                start_key = page.next_key

        except Exception as e:
            logger.error("Error during late return detection: %s", e, exc_info=True)
            raise

        logger.info(
            "Late return detection completed. Processed: %d, Updated: %d, Failed: %d",
            result["processed"],
            result["updated"],
            result["failed"],
        )
        return result

    def process_rental(self, rental: Rental, now: dt.datetime) -> bool:
        """Recompute one rental's status and save it if it changed.

        Returns:
            True if the rental was updated
        """
        window = rental.to_window()
        old_status = rental.late_return_status
        new_status = self._calculator.calculate_late_status(window, now)

        if new_status is old_status:
            return False

        penalty: PenaltyResult | None = None
        if new_status in (LateReturnStatus.LATE, LateReturnStatus.SEVERELY_LATE):
            penalty = self._calculator.calculate_penalty(window, now)

        updates: dict[str, Any] = {
            "late_return_status": new_status,
            "late_hours": self._calculator.calculate_late_hours(window, now),
        }
        if rental.late_detected_at is None and new_status is not LateReturnStatus.ON_TIME:
            updates["late_detected_at"] = now
        if penalty is not None:
            updates["penalty_amount"] = penalty.penalty_amount

        updated = rental.model_copy(update=updates)
        self._rentals.update_late_status(updated)

        log_penalty_operation(
            logger,
            "status_transition",
            rental_id=rental.rental_id,
            status=new_status.value,
            late_hours=updated.late_hours,
            penalty_amount=updated.penalty_amount,
            previous_status=old_status.value,
        )

        self._notify(updated, new_status, now, penalty)
        return True

    def _notify(
        self,
        rental: Rental,
        status: LateReturnStatus,
        now: dt.datetime,
        penalty: PenaltyResult | None,
    ) -> None:
        if self._notifier is None or status is LateReturnStatus.ON_TIME:
            return

        try:
            notification = self.build_notification(rental, status, now, penalty)
            self._notifier(notification)
            logger.info(
                "Published %s notification for rental: %s",
                notification.kind.value,
                rental.rental_id,
            )
        except Exception as e:
            logger.error(
                "Error publishing notification for rental %s: %s",
                rental.rental_id,
                e,
                exc_info=True,
            )

    def build_notification(
        self,
        rental: Rental,
        status: LateReturnStatus,
        now: dt.datetime,
        penalty: PenaltyResult | None = None,
    ) -> LateReturnNotification:
        """Build the customer notification for a status change."""
        window = rental.to_window()
        scheduled = self._calculator.scheduled_return_time(window, now)
        common: dict[str, Any] = {
            "rental_id": rental.rental_id,
            "customer_email": rental.customer_email,
            "occurred_at": now,
            "scheduled_return_time": scheduled,
        }

        if status is LateReturnStatus.GRACE_PERIOD:
            return LateReturnNotification(
                kind=NotificationKind.GRACE_PERIOD_WARNING,
                remaining_grace_minutes=self._calculator.remaining_grace_minutes(window, now),
                **common,
            )

        if penalty is None:
            penalty = self._calculator.calculate_penalty(window, now)

        if status is LateReturnStatus.SEVERELY_LATE:
            return LateReturnNotification(
                kind=NotificationKind.SEVERELY_LATE,
                late_hours=rental.late_hours,
                late_days=self._calculator.calculate_late_days(window, now),
                penalty_amount=penalty.penalty_amount,
                currency=rental.currency,
                escalation_warning=SEVERELY_LATE_ESCALATION,
                **common,
            )

        return LateReturnNotification(
            kind=NotificationKind.LATE_RETURN,
            late_hours=rental.late_hours,
            penalty_amount=penalty.penalty_amount,
            currency=rental.currency,
            **common,
        )
