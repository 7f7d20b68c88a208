"""Producer and status endpoints of the delivery queue."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from notifyq.application.use_cases.messages import (
    CANCEL_RESULT_NOT_CANCELLABLE,
    CANCEL_RESULT_NOT_FOUND,
    cancel_message as cancel_message_uc,
    enqueue as enqueue_uc,
    get_message as get_message_uc,
    get_queue_stats as get_queue_stats_uc,
    list_messages as list_messages_uc,
)
from notifyq.domain.entities import Recipient
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.database import get_db
from notifyq.interfaces.api.dependencies import get_tenant_id
from notifyq.interfaces.api.schemas import (
    CancelResponse,
    MessageCreate,
    MessageRead,
    QueueStatsRead,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def enqueue_message(
    payload: MessageCreate,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> MessageRead:
    """Render and queue a notification for delivery."""

    try:
        message = enqueue_uc(
            db,
            tenant_id,
            Recipient(
                address=payload.recipient.address,
                type=payload.recipient.type,
                id=payload.recipient.id,
                name=payload.recipient.name,
            ),
            payload.notification_type,
            payload.variables,
            channel=payload.channel,
            scheduled_at=payload.scheduled_at,
            max_attempts=payload.max_attempts,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return MessageRead.from_entity(message)


@router.get("", response_model=list[MessageRead])
def list_messages(
    status_filter: str | None = Query(default=None, alias="status"),
    notification_type: str | None = Query(default=None),
    recipient: str | None = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> list[MessageRead]:
    try:
        messages = list_messages_uc(
            db,
            tenant_id,
            status=status_filter,
            notification_type=notification_type,
            recipient_address=recipient,
            skip=skip,
            limit=limit,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [MessageRead.from_entity(message) for message in messages]


@router.get("/stats", response_model=QueueStatsRead)
def queue_stats(
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> QueueStatsRead:
    stats = get_queue_stats_uc(db, tenant_id)
    return QueueStatsRead(
        tenant_id=stats.tenant_id,
        counts=stats.counts,
        total=stats.total,
        sent_last_24h=stats.sent_last_24h,
        failed_last_24h=stats.failed_last_24h,
    )


@router.get("/{message_id}", response_model=MessageRead)
def get_message(
    message_id: int,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> MessageRead:
    message = get_message_uc(db, tenant_id, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return MessageRead.from_entity(message)


@router.post("/{message_id}/cancel", response_model=CancelResponse)
def cancel_message(
    message_id: int,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
) -> CancelResponse:
    """Cancel a message that has not been sent yet."""

    outcome = cancel_message_uc(db, tenant_id, message_id)
    if outcome.result == CANCEL_RESULT_NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if outcome.result == CANCEL_RESULT_NOT_CANCELLABLE:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Message is already {outcome.message.status}",
        )
    return CancelResponse(
        result=outcome.result,
        message=MessageRead.from_entity(outcome.message) if outcome.message else None,
    )
