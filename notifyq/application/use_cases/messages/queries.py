"""Read-side use cases for queued messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from notifyq.domain.entities import MESSAGE_STATUSES, Message
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.utils import ensure_utc, now_utc


@dataclass
class QueueStats:
    """Per-status counts of a tenant's queue."""

    tenant_id: str
    counts: dict[str, int] = field(default_factory=dict)
    sent_last_24h: int = 0
    failed_last_24h: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def get_message(session: Session, tenant_id: str, message_id: int) -> Message | None:
    return MessageRepository(session).get(message_id, tenant_id=tenant_id)


def list_messages(
    session: Session,
    tenant_id: str,
    *,
    status: str | None = None,
    notification_type: str | None = None,
    recipient_address: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Message]:
    """Return the tenant's messages, newest first."""

    if status is not None and status not in MESSAGE_STATUSES:
        raise ValidationError(f"Unknown status: {status!r}")
    return list(
        MessageRepository(session).list(
            tenant_id,
            statuses=[status] if status else None,
            notification_type=notification_type,
            recipient_address=recipient_address,
            skip=skip,
            limit=limit,
        )
    )


def get_queue_stats(
    session: Session, tenant_id: str, now: datetime | None = None
) -> QueueStats:
    current = ensure_utc(now) or now_utc()
    since = current - timedelta(hours=24)
    repository = MessageRepository(session)
    return QueueStats(
        tenant_id=tenant_id,
        counts=repository.count_by_status(tenant_id),
        sent_last_24h=repository.count_sent_since(tenant_id, since),
        failed_last_24h=repository.count_failed_since(tenant_id, since),
    )


__all__ = ["QueueStats", "get_message", "get_queue_stats", "list_messages"]
