"""Domain entity representing a queued outbound message."""

from dataclasses import dataclass
from datetime import datetime

MESSAGE_STATUS_PENDING = "pending"
MESSAGE_STATUS_SCHEDULED = "scheduled"
MESSAGE_STATUS_PROCESSING = "processing"
MESSAGE_STATUS_SENT = "sent"
MESSAGE_STATUS_DELIVERED = "delivered"
MESSAGE_STATUS_FAILED = "failed"
MESSAGE_STATUS_SKIPPED = "skipped"

MESSAGE_STATUSES = (
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_SCHEDULED,
    MESSAGE_STATUS_PROCESSING,
    MESSAGE_STATUS_SENT,
    MESSAGE_STATUS_DELIVERED,
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_SKIPPED,
)
CLAIMABLE_STATUSES = (MESSAGE_STATUS_PENDING, MESSAGE_STATUS_SCHEDULED)
ACTIVE_STATUSES = (
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_SCHEDULED,
    MESSAGE_STATUS_PROCESSING,
)
TERMINAL_STATUSES = (
    MESSAGE_STATUS_DELIVERED,
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_SKIPPED,
)

CHANNEL_SMS = "sms"
CHANNEL_EMAIL = "email"
CHANNELS = (CHANNEL_SMS, CHANNEL_EMAIL)

RECIPIENT_TYPES = ("customer", "creator", "contractor", "vendor")

SKIP_REASON_OPTED_OUT = "opted_out"
SKIP_REASON_CHANNEL_DISABLED = "channel_disabled"
SKIP_REASON_CANCELLED = "cancelled"


@dataclass(frozen=True)
class Recipient:
    """Destination of a message: a phone number or an email address."""

    address: str
    type: str = "customer"
    id: str | None = None
    name: str | None = None


@dataclass
class Message:
    """A unit of outbound notification content owned by the queue."""

    id: int | None
    tenant_id: str
    channel: str
    recipient: Recipient
    notification_type: str
    subject: str | None
    content: str
    character_count: int
    segment_count: int
    is_transactional: bool
    status: str
    scheduled_at: datetime | None
    attempts: int
    max_attempts: int
    sequence_at: datetime | None = None
    claim_token: str | None = None
    claimed_at: datetime | None = None
    last_attempt_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    provider_message_id: str | None = None
    skip_reason: str | None = None
    error_message: str | None = None
    cancel_requested_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_terminal(self) -> bool:
        """Return ``True`` when no further transition is expected."""

        return self.status in TERMINAL_STATUSES

    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts


__all__ = [
    "Message",
    "Recipient",
    "MESSAGE_STATUS_PENDING",
    "MESSAGE_STATUS_SCHEDULED",
    "MESSAGE_STATUS_PROCESSING",
    "MESSAGE_STATUS_SENT",
    "MESSAGE_STATUS_DELIVERED",
    "MESSAGE_STATUS_FAILED",
    "MESSAGE_STATUS_SKIPPED",
    "MESSAGE_STATUSES",
    "CLAIMABLE_STATUSES",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "CHANNEL_SMS",
    "CHANNEL_EMAIL",
    "CHANNELS",
    "RECIPIENT_TYPES",
    "SKIP_REASON_OPTED_OUT",
    "SKIP_REASON_CHANNEL_DISABLED",
    "SKIP_REASON_CANCELLED",
]
