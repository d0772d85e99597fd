"""Webhook event tracking model for idempotency and auditing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import WebhookEventStatus


class WebhookEvent(BaseModel):
    """A received gateway webhook event.

    Used for:
    - Idempotency: apply each event id at most once
    - Auditing: track every delivery and its outcome
    - Retry: a FAILED event may be claimed again by a redelivery
    """

    model_config = ConfigDict(strict=True)

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx), the idempotency key",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["checkout.session.completed", "payment_intent.payment_failed"],
    )
    payload: str | None = Field(default=None, description="Raw event payload")
    status: WebhookEventStatus = Field(default=WebhookEventStatus.PROCESSING)
    created_at: datetime = Field(..., description="First sighting of the event id")
    updated_at: datetime | None = Field(default=None)
    processed_at: datetime | None = Field(default=None, description="When processing succeeded")
    error_message: str | None = Field(
        default=None, description="Error details if processing failed"
    )
