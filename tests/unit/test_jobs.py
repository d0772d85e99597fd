"""Unit tests for the scheduled job entry points."""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from rental_core import jobs
from rental_core.models.enums import DiscrepancyType
from rental_core.models.payment import Discrepancy, ReconciliationReport
from rental_core.services.late_return_detection import DetectionRunResult
from rental_core.utils.logging import get_correlation_id


def make_report(discrepancies: list[Discrepancy] | None = None) -> ReconciliationReport:
    discrepancies = discrepancies or []
    return ReconciliationReport(
        report_date=date(2025, 6, 10),
        total_database_payments=2,
        total_stripe_payments=2,
        discrepancies=discrepancies,
        has_discrepancies=bool(discrepancies),
        generated_at=datetime(2025, 6, 11, 1, 0, tzinfo=timezone.utc),
    )


class TestLateReturnDetectionJob:
    def test_returns_run_counters(self):
        counters = DetectionRunResult(processed=4, updated=2, failed=0)
        with (
            patch("rental_core.jobs.RentalRepository"),
            patch("rental_core.jobs.LateReturnDetector") as detector_class,
        ):
            detector_class.return_value.detect_late_returns.return_value = counters

            assert jobs.run_late_return_detection() == counters

    def test_failure_is_logged_not_raised(self, caplog):
        with (
            patch("rental_core.jobs.RentalRepository"),
            patch("rental_core.jobs.LateReturnDetector") as detector_class,
        ):
            detector_class.return_value.detect_late_returns.side_effect = RuntimeError("scan")

            with caplog.at_level(logging.ERROR, logger="rental_core.jobs"):
                assert jobs.run_late_return_detection() is None

        assert "Late return detection job failed" in caplog.text
        assert get_correlation_id() is None


class TestReconciliationJob:
    @pytest.fixture
    def reconciler(self):
        with (
            patch("rental_core.jobs.PaymentRepository"),
            patch("rental_core.jobs.get_stripe_service"),
            patch("rental_core.jobs.PaymentReconciler") as reconciler_class,
        ):
            yield reconciler_class.return_value

    def test_defaults_to_yesterday(self, reconciler):
        reconciler.run_daily_reconciliation.return_value = make_report()

        jobs.run_daily_reconciliation()

        expected = datetime.now(timezone.utc).date().toordinal() - 1
        called_with = reconciler.run_daily_reconciliation.call_args.args[0]
        assert called_with.toordinal() == expected

    def test_discrepancies_logged_as_warnings(self, reconciler, caplog):
        reconciler.run_daily_reconciliation.return_value = make_report(
            [
                Discrepancy(
                    type=DiscrepancyType.AMOUNT_MISMATCH,
                    payment_id="PAY-1",
                    stripe_payment_intent_id="pi_1",
                    database_amount=Decimal("100.00"),
                    stripe_amount=Decimal("90.00"),
                    description="Amount mismatch: DB=100.00, Stripe=90.00",
                )
            ]
        )

        with caplog.at_level(logging.INFO, logger="rental_core.jobs"):
            report = jobs.run_daily_reconciliation(date(2025, 6, 10))

        assert report.has_discrepancies is True
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings == [
            "Reconciliation for 2025-06-10 found 1 discrepancies",
            "Discrepancy AMOUNT_MISMATCH: payment=PAY-1 intent=pi_1 - "
            "Amount mismatch: DB=100.00, Stripe=90.00",
        ]

    def test_clean_run_logged_as_info(self, reconciler, caplog):
        reconciler.run_daily_reconciliation.return_value = make_report()

        with caplog.at_level(logging.INFO, logger="rental_core.jobs"):
            jobs.run_daily_reconciliation(date(2025, 6, 10))

        assert "completed with no discrepancies" in caplog.text

    def test_failure_returns_none(self, reconciler):
        reconciler.run_daily_reconciliation.side_effect = RuntimeError("stripe down")

        assert jobs.run_daily_reconciliation(date(2025, 6, 10)) is None


class TestExchangeRateRefreshJob:
    def test_refresh_success(self):
        converter = MagicMock()

        assert jobs.run_exchange_rate_refresh(converter=converter) is True
        converter.refresh_rates.assert_called_once_with()

    def test_refresh_failure(self):
        converter = MagicMock()
        converter.refresh_rates.side_effect = RuntimeError("no fallback")

        assert jobs.run_exchange_rate_refresh(converter=converter) is False


class TestMain:
    @pytest.fixture(autouse=True)
    def no_logging_setup(self):
        with patch("rental_core.jobs.configure_logging") as configure:
            yield configure

    def test_detect_late_returns(self, no_logging_setup):
        with patch("rental_core.jobs.run_late_return_detection") as run:
            run.return_value = DetectionRunResult(processed=0, updated=0, failed=0)

            assert jobs.main(["--log-level", "debug", "detect-late-returns"]) == 0

        no_logging_setup.assert_called_once_with("DEBUG")

    def test_reconcile_with_date(self):
        with patch("rental_core.jobs.run_daily_reconciliation") as run:
            run.return_value = make_report()

            assert jobs.main(["reconcile", "--date", "2025-06-10"]) == 0

        run.assert_called_once_with(date(2025, 6, 10))

    def test_reconcile_failure_exit_code(self):
        with patch("rental_core.jobs.run_daily_reconciliation", return_value=None):
            assert jobs.main(["reconcile"]) == 1

    def test_refresh_rates(self):
        with patch("rental_core.jobs.run_exchange_rate_refresh", return_value=False):
            assert jobs.main(["refresh-rates"]) == 1

    def test_invalid_date_rejected(self):
        with pytest.raises(SystemExit):
            jobs.main(["reconcile", "--date", "10/06/2025"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            jobs.main([])
