"""Producer interface of the delivery queue."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from notifyq.config import get_settings
from notifyq.domain.entities import (
    CHANNEL_EMAIL,
    CHANNEL_SMS,
    CHANNELS,
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_SCHEDULED,
    RECIPIENT_TYPES,
    Message,
    Recipient,
)
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.utils import ensure_utc, now_utc

from ..opt_outs import normalize_recipient
from ..quiet_hours import get_quiet_hours_policy, next_send_time
from ..templates import render_template, resolve_template

logger = logging.getLogger(__name__)


def enqueue(
    session: Session,
    tenant_id: str,
    recipient: Recipient,
    notification_type: str,
    variables: Mapping[str, Any] | None = None,
    *,
    channel: str = CHANNEL_SMS,
    scheduled_at: datetime | None = None,
    max_attempts: int | None = None,
    now: datetime | None = None,
) -> Message:
    """Render and queue a notification for ``recipient``.

    The message is ``pending`` when due immediately and ``scheduled`` when it
    targets a future time or falls inside the tenant's quiet hours (in which
    case it is moved to the end of the window). Opt-outs and channel toggles
    are evaluated when the message is claimed, not here.
    """

    if not tenant_id:
        raise ValidationError("tenant_id is required")
    if not notification_type:
        raise ValidationError("notification_type is required")
    if channel not in CHANNELS:
        raise ValidationError(f"Unsupported channel: {channel!r}")
    if recipient.type not in RECIPIENT_TYPES:
        raise ValidationError(f"Unsupported recipient type: {recipient.type!r}")

    address = normalize_recipient(recipient.address, channel)
    template = resolve_template(session, tenant_id, notification_type, channel).template
    rendered = render_template(template, variables)
    if channel == CHANNEL_EMAIL and not rendered.subject:
        raise ValidationError("Email templates require a subject")

    settings = get_settings()
    attempts_allowed = settings.default_max_attempts if max_attempts is None else max_attempts
    if attempts_allowed < 1:
        raise ValidationError("max_attempts must be at least 1")

    current = ensure_utc(now) or now_utc()
    due = ensure_utc(scheduled_at) or current
    status = MESSAGE_STATUS_SCHEDULED if due > current else MESSAGE_STATUS_PENDING

    deferred_until = next_send_time(
        get_quiet_hours_policy(session, tenant_id),
        max(due, current),
        is_transactional=template.is_transactional,
    )
    if deferred_until is not None:
        due = deferred_until
        status = MESSAGE_STATUS_SCHEDULED

    message = MessageRepository(session).create(
        Message(
            id=None,
            tenant_id=tenant_id,
            channel=channel,
            recipient=Recipient(
                address=address,
                type=recipient.type,
                id=recipient.id,
                name=recipient.name,
            ),
            notification_type=notification_type,
            subject=rendered.subject if channel == CHANNEL_EMAIL else None,
            content=rendered.content,
            character_count=rendered.segments.character_count,
            segment_count=rendered.segments.segment_count if channel == CHANNEL_SMS else 0,
            is_transactional=template.is_transactional,
            status=status,
            scheduled_at=due,
            attempts=0,
            max_attempts=attempts_allowed,
            created_at=current,
            updated_at=current,
        )
    )
    logger.info(
        "Queued message id=%s tenant=%s type=%s channel=%s status=%s scheduled_at=%s",
        message.id,
        tenant_id,
        notification_type,
        channel,
        message.status,
        message.scheduled_at.isoformat(),
    )
    return message


__all__ = ["enqueue"]
