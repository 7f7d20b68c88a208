"""SQLAlchemy model for queued outbound messages."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from notifyq.infrastructure.database import Base
from notifyq.utils import now_naive_utc


class MessageModel(Base):
    """Database representation of a message moving through the delivery queue."""

    __tablename__ = "message_queue"
    __table_args__ = (
        Index("ix_message_queue_claim", "status", "scheduled_at"),
        Index("ix_message_queue_sequence", "recipient_address", "sequence_at"),
        Index(
            "ix_message_queue_recipient",
            "tenant_id",
            "channel",
            "recipient_address",
            "status",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    channel = Column(String(16), nullable=False, default="sms")
    recipient_address = Column(String(320), nullable=False)
    recipient_type = Column(String(20), nullable=False, default="customer")
    recipient_id = Column(String(64), nullable=True)
    recipient_name = Column(String(200), nullable=True)
    notification_type = Column(String(80), nullable=False)
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    character_count = Column(Integer, nullable=False, default=0)
    segment_count = Column(Integer, nullable=False, default=1)
    is_transactional = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default="pending")
    scheduled_at = Column(DateTime(), nullable=False, default=now_naive_utc)
    sequence_at = Column(DateTime(), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    claim_token = Column(String(120), nullable=True)
    claimed_at = Column(DateTime(), nullable=True)
    last_attempt_at = Column(DateTime(), nullable=True)
    sent_at = Column(DateTime(), nullable=True)
    delivered_at = Column(DateTime(), nullable=True)
    provider_message_id = Column(String(120), nullable=True, index=True)
    skip_reason = Column(String(60), nullable=True)
    error_message = Column(Text, nullable=True)
    cancel_requested_at = Column(DateTime(), nullable=True)

    created_at = Column(DateTime(), nullable=False, default=now_naive_utc)
    updated_at = Column(DateTime(), nullable=False, default=now_naive_utc)


__all__ = ["MessageModel"]
