"""Pydantic models describing queued messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from notifyq.domain.entities import Message


class RecipientPayload(BaseModel):
    """Recipient of a message as provided by producers."""

    address: str = Field(..., min_length=1, description="E.164 phone number or email")
    type: str = Field(default="customer")
    id: str | None = None
    name: str | None = None


class MessageCreate(BaseModel):
    """Payload used to enqueue a notification."""

    recipient: RecipientPayload
    notification_type: str = Field(..., min_length=1)
    channel: str = Field(default="sms")
    variables: dict[str, Any] = Field(default_factory=dict)
    scheduled_at: datetime | None = None
    max_attempts: int | None = Field(default=None, ge=1)


class MessageRead(BaseModel):
    """Representation of a queued message returned to clients."""

    id: int
    tenant_id: str
    channel: str
    recipient_address: str
    recipient_type: str
    recipient_id: str | None = None
    recipient_name: str | None = None
    notification_type: str
    subject: str | None = None
    content: str
    character_count: int
    segment_count: int
    is_transactional: bool
    status: str
    scheduled_at: datetime | None = None
    attempts: int
    max_attempts: int
    last_attempt_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    provider_message_id: str | None = None
    skip_reason: str | None = None
    error_message: str | None = None
    cancel_requested_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, message: Message) -> "MessageRead":
        return cls(
            id=message.id or 0,
            tenant_id=message.tenant_id,
            channel=message.channel,
            recipient_address=message.recipient.address,
            recipient_type=message.recipient.type,
            recipient_id=message.recipient.id,
            recipient_name=message.recipient.name,
            notification_type=message.notification_type,
            subject=message.subject,
            content=message.content,
            character_count=message.character_count,
            segment_count=message.segment_count,
            is_transactional=message.is_transactional,
            status=message.status,
            scheduled_at=message.scheduled_at,
            attempts=message.attempts,
            max_attempts=message.max_attempts,
            last_attempt_at=message.last_attempt_at,
            sent_at=message.sent_at,
            delivered_at=message.delivered_at,
            provider_message_id=message.provider_message_id,
            skip_reason=message.skip_reason,
            error_message=message.error_message,
            cancel_requested_at=message.cancel_requested_at,
            created_at=message.created_at,
            updated_at=message.updated_at,
        )


class QueueStatsRead(BaseModel):
    tenant_id: str
    counts: dict[str, int]
    total: int
    sent_last_24h: int
    failed_last_24h: int


class CancelResponse(BaseModel):
    result: str
    message: MessageRead | None = None


__all__ = [
    "CancelResponse",
    "MessageCreate",
    "MessageRead",
    "QueueStatsRead",
    "RecipientPayload",
]
