"""Shared utilities for the rental core."""

from .logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_payment_operation,
    log_penalty_operation,
    log_webhook_event,
    set_correlation_id,
)

__all__ = [
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "log_payment_operation",
    "log_penalty_operation",
    "log_webhook_event",
    "set_correlation_id",
]
