"""Scheduled job entry points.

Each job builds its collaborators from settings, runs under a fresh
correlation id, and logs (never raises) failures so the scheduler keeps
its cadence.

Usage:
    rental-core-jobs detect-late-returns
    rental-core-jobs reconcile --date 2025-06-10
    rental-core-jobs refresh-rates
"""

import argparse
import datetime as dt
import logging
import sys

from .config import Settings, load_settings
from .models.payment import ReconciliationReport
from .services.currency import CurrencyConverter
from .services.exchange_rate_client import ExchangeRateClient
from .services.late_return_detection import DetectionRunResult, LateReturnDetector
from .services.penalty import PenaltyCalculator
from .services.rate_cache import ExchangeRateCache
from .services.reconciliation import PaymentReconciler
from .services.repositories import PaymentRepository, RentalRepository
from .services.stripe_service import get_stripe_service
from .utils.logging import clear_correlation_id, configure_logging, set_correlation_id

logger = logging.getLogger(__name__)


def run_late_return_detection(settings: Settings | None = None) -> DetectionRunResult | None:
    """Scan overdue rentals once. Returns the run counters, or None if the run failed."""
    settings = settings or load_settings()
    set_correlation_id()
    try:
        detector = LateReturnDetector(
            RentalRepository(),
            PenaltyCalculator(settings.penalty),
            settings.detection,
        )
        return detector.detect_late_returns()
    except Exception as e:
        logger.error("Late return detection job failed: %s", e, exc_info=True)
        return None
    finally:
        clear_correlation_id()


def run_daily_reconciliation(
    reconciliation_date: dt.date | None = None,
) -> ReconciliationReport | None:
    """Reconcile one day of payments (yesterday, UTC, by default)."""
    if reconciliation_date is None:
        reconciliation_date = dt.datetime.now(dt.UTC).date() - dt.timedelta(days=1)

    set_correlation_id()
    try:
        reconciler = PaymentReconciler(PaymentRepository(), get_stripe_service())
        report = reconciler.run_daily_reconciliation(reconciliation_date)
        _log_discrepancies(report)
        return report
    except Exception as e:
        logger.error(
            "Daily reconciliation job failed for %s: %s", reconciliation_date, e, exc_info=True
        )
        return None
    finally:
        clear_correlation_id()


def _log_discrepancies(report: ReconciliationReport) -> None:
    if not report.has_discrepancies:
        logger.info("Reconciliation for %s completed with no discrepancies", report.report_date)
        return

    logger.warning(
        "Reconciliation for %s found %d discrepancies",
        report.report_date,
        len(report.discrepancies),
    )
    for discrepancy in report.discrepancies:
        logger.warning(
            "Discrepancy %s: payment=%s intent=%s - %s",
            discrepancy.type.value,
            discrepancy.payment_id,
            discrepancy.stripe_payment_intent_id,
            discrepancy.description,
        )


def run_exchange_rate_refresh(
    settings: Settings | None = None, converter: CurrencyConverter | None = None
) -> bool:
    """Evict cached rate tables and warm the USD table. Returns True on success."""
    set_correlation_id()
    try:
        if converter is None:
            settings = settings or load_settings()
            client = ExchangeRateClient(settings.currency, environment=settings.environment)
            converter = CurrencyConverter(ExchangeRateCache(client, settings.currency))
        converter.refresh_rates()
        logger.info("Exchange rates refreshed")
        return True
    except Exception as e:
        logger.error("Exchange rate refresh failed: %s", e, exc_info=True)
        return False
    finally:
        clear_correlation_id()


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date: {value} (expected YYYY-MM-DD)") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rental-core-jobs",
        description="Run rental core scheduled jobs once.",
    )
    parser.add_argument(
        "--log-level", default="INFO", help="Logging level (default: INFO)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "detect-late-returns", help="Update late-return status of overdue rentals"
    )

    reconcile = subparsers.add_parser("reconcile", help="Reconcile payments against Stripe")
    reconcile.add_argument(
        "--date",
        type=_parse_date,
        default=None,
        help="Day to reconcile (YYYY-MM-DD, default: yesterday UTC)",
    )

    subparsers.add_parser("refresh-rates", help="Refresh cached exchange rates")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())

    if args.command == "detect-late-returns":
        ok = run_late_return_detection() is not None
    elif args.command == "reconcile":
        ok = run_daily_reconciliation(args.date) is not None
    else:
        ok = run_exchange_rate_refresh()

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
