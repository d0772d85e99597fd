"""Late-return penalty calculation.

Lateness is measured from the end of the scheduled return day
(23:59:59.999999 in the reference instant's timezone). Minutes inside the
grace period never count as late hours; the boundary is inclusive in the
customer's favour.

Penalty tiers (late hours counted after grace):
- up to ``hourly_tier_max_hours``: daily rate x hourly rate x hours
- up to ``single_day_tier_max_hours``: daily rate x daily penalty rate (one day)
- beyond: daily rate x daily penalty rate x late days

The raw penalty is capped at ``penalty_cap_multiplier`` x daily rate.
All amounts are rounded to 2 decimals, half-up.
"""

import datetime as dt
import logging
import math
from decimal import ROUND_HALF_UP, Decimal

from ..config import PenaltyConfig
from ..models.enums import LateReturnStatus
from ..models.errors import InvalidInputError
from ..models.rental import PenaltyResult, RentalWindow

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def end_of_day(end_date: dt.date, tzinfo: dt.tzinfo | None = None) -> dt.datetime:
    """Last representable instant of ``end_date``."""
    return dt.datetime.combine(end_date, dt.time.max, tzinfo=tzinfo)


class PenaltyCalculator:
    """Computes late-return status, late hours/days and penalty amounts.

    Stateless apart from its configuration; safe to share.
    """

    def __init__(self, config: PenaltyConfig | None = None) -> None:
        self.config = config or PenaltyConfig()

    # =========================================================================
    # Time arithmetic
    # =========================================================================

    @staticmethod
    def _require_window(window: RentalWindow) -> None:
        if window is None or getattr(window, "end_date", None) is None:
            raise InvalidInputError("Rental end date is required for late-return calculation")

    def scheduled_return_time(self, window: RentalWindow, now: dt.datetime) -> dt.datetime:
        """End of the scheduled return day, in ``now``'s timezone."""
        self._require_window(window)
        return end_of_day(window.end_date, now.tzinfo)

    def minutes_late(self, window: RentalWindow, now: dt.datetime) -> int:
        """Whole minutes elapsed since the scheduled end; 0 when not late."""
        scheduled_end = self.scheduled_return_time(window, now)
        if now <= scheduled_end:
            return 0
        return int((now - scheduled_end).total_seconds() // 60)

    def calculate_late_hours(self, window: RentalWindow, now: dt.datetime) -> int:
        """Billable late hours: minutes beyond the grace period, rounded up to hours."""
        minutes_after_grace = self.minutes_late(window, now) - self.config.grace_period_minutes
        if minutes_after_grace <= 0:
            return 0
        return math.ceil(minutes_after_grace / 60)

    def calculate_late_days(self, window: RentalWindow, now: dt.datetime) -> int:
        return math.ceil(self.calculate_late_hours(window, now) / 24)

    def calculate_late_status(self, window: RentalWindow, now: dt.datetime) -> LateReturnStatus:
        """Classify lateness of a rental at ``now``."""
        scheduled_end = self.scheduled_return_time(window, now)
        if now <= scheduled_end:
            return LateReturnStatus.ON_TIME

        if self.minutes_late(window, now) <= self.config.grace_period_minutes:
            return LateReturnStatus.GRACE_PERIOD

        if self.calculate_late_hours(window, now) >= self.config.severely_late_threshold_hours:
            return LateReturnStatus.SEVERELY_LATE
        return LateReturnStatus.LATE

    def remaining_grace_minutes(self, window: RentalWindow, now: dt.datetime) -> int:
        return max(self.config.grace_period_minutes - self.minutes_late(window, now), 0)

    # =========================================================================
    # Penalty formulas
    # =========================================================================

    def calculate_hourly_penalty(self, daily_rate: Decimal, late_hours: int) -> Decimal:
        """Hourly-tier penalty: daily rate x hourly rate x hours.

        Raises:
            InvalidInputError: If ``late_hours`` is outside the hourly tier.
        """
        if late_hours <= 0 or late_hours > self.config.hourly_tier_max_hours:
            raise InvalidInputError(
                f"Hourly penalty applies only for 1-{self.config.hourly_tier_max_hours} hours late"
            )
        penalty = daily_rate * self.config.hourly_penalty_rate * late_hours
        return penalty.quantize(CENTS, rounding=ROUND_HALF_UP)

    def calculate_daily_penalty(self, daily_rate: Decimal, late_days: int) -> Decimal:
        """Daily-tier penalty: daily rate x daily penalty rate x days.

        Raises:
            InvalidInputError: If ``late_days`` is not positive.
        """
        if late_days <= 0:
            raise InvalidInputError("Daily penalty applies only for 1+ days late")
        penalty = daily_rate * self.config.daily_penalty_rate * late_days
        return penalty.quantize(CENTS, rounding=ROUND_HALF_UP)

    def apply_penalty_cap(self, penalty: Decimal, daily_rate: Decimal) -> Decimal:
        """Limit a penalty to ``penalty_cap_multiplier`` x daily rate."""
        max_penalty = (daily_rate * self.config.penalty_cap_multiplier).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )
        if penalty > max_penalty:
            logger.debug("Penalty %s exceeds cap %s. Applying cap.", penalty, max_penalty)
            return max_penalty
        return penalty

    def calculate_penalty(self, window: RentalWindow, now: dt.datetime) -> PenaltyResult:
        """Compute the penalty owed for a rental returned (or still out) at ``now``."""
        status = self.calculate_late_status(window, now)
        daily_rate = window.daily_rate

        if status is LateReturnStatus.ON_TIME:
            return PenaltyResult(
                penalty_amount=Decimal("0.00"),
                daily_rate=daily_rate,
                late_hours=0,
                late_days=0,
                status=status,
                breakdown="Not late - no penalty",
                capped_at_max=False,
            )

        if status is LateReturnStatus.GRACE_PERIOD:
            logger.debug("Rental %s is within grace period. No penalty applied.", window.rental_id)
            return PenaltyResult(
                penalty_amount=Decimal("0.00"),
                daily_rate=daily_rate,
                late_hours=0,
                late_days=0,
                status=status,
                breakdown="Within grace period - no penalty",
                capped_at_max=False,
            )

        late_hours = self.calculate_late_hours(window, now)
        late_days = self.calculate_late_days(window, now)

        if late_hours <= self.config.hourly_tier_max_hours:
            penalty = self.calculate_hourly_penalty(daily_rate, late_hours)
            breakdown = (
                f"Hourly penalty: {late_hours} hours × "
                f"{self.config.hourly_penalty_rate * 100:.0f}% × {daily_rate} = {penalty}"
            )
        elif late_hours <= self.config.single_day_tier_max_hours:
            penalty = self.calculate_daily_penalty(daily_rate, 1)
            breakdown = (
                f"Daily penalty: 1 day × "
                f"{self.config.daily_penalty_rate * 100:.0f}% × {daily_rate} = {penalty}"
            )
        else:
            penalty = self.calculate_daily_penalty(daily_rate, late_days)
            breakdown = (
                f"Daily penalty: {late_days} days × "
                f"{self.config.daily_penalty_rate * 100:.0f}% × {daily_rate} = {penalty}"
            )

        capped = self.apply_penalty_cap(penalty, daily_rate)
        capped_at_max = capped < penalty
        if capped_at_max:
            breakdown += (
                f" (capped at {self.config.penalty_cap_multiplier:.0f}x daily rate: {capped})"
            )

        logger.info(
            "Penalty calculated for rental %s: %s (status: %s, late hours: %d, capped: %s)",
            window.rental_id,
            capped,
            status.value,
            late_hours,
            capped_at_max,
        )

        return PenaltyResult(
            penalty_amount=capped,
            daily_rate=daily_rate,
            late_hours=late_hours,
            late_days=late_days,
            status=status,
            breakdown=breakdown,
            capped_at_max=capped_at_max,
        )
