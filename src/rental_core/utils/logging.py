"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management for tracing a job run or webhook delivery
- Structured logging formatter for consistent log output
- Helper functions for penalty, payment and webhook logging

Usage:
    from rental_core.utils.logging import get_logger, set_correlation_id

    # At the start of a job or webhook delivery:
    set_correlation_id()

    # In service code:
    logger = get_logger(__name__)
    logger.info("Penalty calculated", extra={"rental_id": "R-123"})
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

# Context variable for correlation ID - thread-safe and async-safe
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def generate_correlation_id() -> str:
    """Generate a new correlation ID.

    Returns:
        UUID-based correlation ID string
    """
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID context."""
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter for structured log output with correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "no-correlation-id"

        base = super().format(record)

        # Correlation ID prefix for easy grep/filtering
        return f"[{record.correlation_id}] {base}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    return logger


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install a stderr handler with the structured formatter on the root logger.

    Intended for process entry points (scheduled jobs, CLI). Library code
    only obtains loggers through ``get_logger``.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if isinstance(handler.formatter, StructuredFormatter):
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter(DEFAULT_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def _emit(logger: logging.Logger, message: str, context: dict[str, Any], error: str | None) -> None:
    if error:
        logger.error(message, extra=context)
    else:
        logger.info(message, extra=context)


def log_penalty_operation(
    logger: logging.Logger,
    operation: str,
    *,
    rental_id: str | None = None,
    status: str | None = None,
    late_hours: int | None = None,
    penalty_amount: Any = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a late-return or penalty operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "status_transition", "waive_penalty")
        rental_id: Rental ID if available
        status: Late-return status
        late_hours: Billable late hours
        penalty_amount: Penalty amount in rental currency
        error: Error message if operation failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation}

    if rental_id:
        context["rental_id"] = rental_id
    if status:
        context["status"] = status
    if late_hours is not None:
        context["late_hours"] = late_hours
    if penalty_amount is not None:
        context["penalty_amount"] = str(penalty_amount)
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Penalty operation: {operation}"]
    for key, value in context.items():
        if key != "operation":
            msg_parts.append(f"{key}={value}")

    _emit(logger, " | ".join(msg_parts), context, error)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    payment_id: str | None = None,
    rental_id: str | None = None,
    amount: Any = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a payment operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "reconcile", "create_refund")
        payment_id: Payment ID if available
        rental_id: Rental ID if available
        amount: Amount in major units if relevant
        status: Payment/transaction status
        error: Error message if operation failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation}

    if payment_id:
        context["payment_id"] = payment_id
    if rental_id:
        context["rental_id"] = rental_id
    if amount is not None:
        context["amount"] = str(amount)
    if status:
        context["status"] = status
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Payment operation: {operation}"]
    for key, value in context.items():
        if key != "operation":
            msg_parts.append(f"{key}={value}")

    _emit(logger, " | ".join(msg_parts), context, error)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    payment_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a webhook event with structured context.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "checkout.session.completed")
        event_id: Stripe event ID
        payment_id: Associated payment ID if available
        result: Processing result (success, duplicate, unhandled, error)
        error: Error message if processing failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {
        "event_type": event_type,
        "event_id": event_id,
    }

    if payment_id:
        context["payment_id"] = payment_id
    if result:
        context["result"] = result
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Webhook event: {event_type} ({event_id})"]
    if result:
        msg_parts.append(f"result={result}")
    if payment_id:
        msg_parts.append(f"payment={payment_id}")
    if error:
        msg_parts.append(f"error={error}")

    message = " | ".join(msg_parts)

    if result == "error":
        logger.error(message, extra=context)
    elif result in ("duplicate", "unhandled"):
        logger.warning(message, extra=context)
    else:
        logger.info(message, extra=context)
