"""Late-return reporting for the admin dashboard."""

import datetime as dt
import logging
from decimal import ROUND_HALF_UP, Decimal

from ..models.enums import LateReturnStatus
from ..models.rental import LateReturnStatistics
from .repositories import RentalRepository

logger = logging.getLogger(__name__)

LATE_STATUSES = [LateReturnStatus.LATE, LateReturnStatus.SEVERELY_LATE]


def percentage(part: int, total: int) -> float:
    """``part / total`` in percent, 2 decimals half-up; 0 when ``total`` is 0."""
    if total == 0:
        return 0.0
    value = (Decimal(part) * 100 / Decimal(total)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(value)


class LateReturnReportService:
    """Aggregates late-return figures over rentals ending in a date range."""

    def __init__(self, rentals: RentalRepository) -> None:
        self._rentals = rentals

    def get_late_returns(
        self,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
        status: LateReturnStatus | None = None,
    ) -> list:
        """Late rentals ending in the range, latest end date first."""
        statuses = [status] if status is not None else LATE_STATUSES
        rentals = self._rentals.find_late_returns(statuses, start_date, end_date)
        return sorted(rentals, key=lambda rental: rental.end_date, reverse=True)

    def get_statistics(
        self, start_date: dt.date | None = None, end_date: dt.date | None = None
    ) -> LateReturnStatistics:
        logger.debug("Calculating late return statistics from %s to %s", start_date, end_date)

        late = self._rentals.find_late_returns(LATE_STATUSES, start_date, end_date)
        severely_late = sum(
            1 for rental in late if rental.late_return_status is LateReturnStatus.SEVERELY_LATE
        )
        total_penalty = sum((rental.penalty_amount or Decimal(0) for rental in late), Decimal(0))
        collected = sum(
            (rental.penalty_amount or Decimal(0) for rental in late if rental.penalty_paid),
            Decimal(0),
        )
        average_hours = sum(rental.late_hours for rental in late) / len(late) if late else 0.0
        total_returns = self._rentals.count_returned(start_date, end_date)

        logger.info(
            "Statistics: %d late returns, %d severely late, total penalty: %s",
            len(late),
            severely_late,
            total_penalty,
        )

        return LateReturnStatistics(
            total_late_returns=len(late),
            severely_late_count=severely_late,
            total_penalty_amount=total_penalty,
            collected_penalty_amount=collected,
            pending_penalty_amount=total_penalty - collected,
            average_late_hours=float(average_hours),
            late_return_percentage=percentage(len(late), total_returns),
        )
