"""Cancellation of queued messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from notifyq.domain.entities import Message
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

CANCEL_RESULT_CANCELLED = "cancelled"
CANCEL_RESULT_REQUESTED = "cancel_requested"
CANCEL_RESULT_NOT_CANCELLABLE = "not_cancellable"
CANCEL_RESULT_NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CancelOutcome:
    result: str
    message: Message | None


def cancel_message(
    session: Session, tenant_id: str, message_id: int, now: datetime | None = None
) -> CancelOutcome:
    """Cancel a message that has not been sent yet.

    Queued messages are skipped immediately. A message currently being
    processed is flagged and skipped once its attempt ends without a send.
    """

    current = ensure_utc(now) or now_utc()
    repository = MessageRepository(session)

    if repository.cancel_queued(tenant_id, message_id, now=current):
        result = CANCEL_RESULT_CANCELLED
    elif repository.request_cancel(tenant_id, message_id, now=current):
        result = CANCEL_RESULT_REQUESTED
    else:
        message = repository.get(message_id, tenant_id=tenant_id)
        if message is None:
            return CancelOutcome(result=CANCEL_RESULT_NOT_FOUND, message=None)
        return CancelOutcome(result=CANCEL_RESULT_NOT_CANCELLABLE, message=message)

    logger.info("Cancel %s for message id=%s tenant=%s", result, message_id, tenant_id)
    return CancelOutcome(
        result=result, message=repository.get(message_id, tenant_id=tenant_id)
    )


__all__ = [
    "CANCEL_RESULT_CANCELLED",
    "CANCEL_RESULT_NOT_CANCELLABLE",
    "CANCEL_RESULT_NOT_FOUND",
    "CANCEL_RESULT_REQUESTED",
    "CancelOutcome",
    "cancel_message",
]
