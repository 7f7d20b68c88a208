"""Delivery-status callbacks and inbound replies from providers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Response
from sqlalchemy.orm import Session

from notifyq.application.use_cases.messages import on_delivery_status
from notifyq.application.use_cases.opt_outs import on_stop_keyword
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.database import get_db
from notifyq.interfaces.api.schemas import DeliveryStatusPayload, WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


@router.post("/delivery-status", response_model=WebhookAck)
def delivery_status(
    payload: DeliveryStatusPayload, db: Session = Depends(get_db)
) -> WebhookAck:
    """Apply a provider delivery report; replays are acknowledged as no-ops."""

    updated = on_delivery_status(
        db,
        payload.provider_message_id,
        payload.status,
        payload.timestamp,
        error_code=payload.error_code,
    )
    return WebhookAck(updated=updated)


@router.post("/twilio/status", response_model=WebhookAck)
def twilio_status(
    message_sid: str = Form(..., alias="MessageSid"),
    message_status: str = Form(..., alias="MessageStatus"),
    error_code: str | None = Form(default=None, alias="ErrorCode"),
    db: Session = Depends(get_db),
) -> WebhookAck:
    updated = on_delivery_status(db, message_sid, message_status, error_code=error_code)
    return WebhookAck(updated=updated)


@router.post("/{tenant_id}/twilio/inbound")
def twilio_inbound(
    tenant_id: str,
    sender: str = Form(..., alias="From"),
    body: str = Form(default="", alias="Body"),
    db: Session = Depends(get_db),
) -> Response:
    """Register an opt-out when the inbound reply is a stop keyword."""

    try:
        on_stop_keyword(db, tenant_id, sender, body)
    except ValidationError as exc:
        logger.warning("Ignoring inbound reply for tenant=%s: %s", tenant_id, exc)
    return Response(content=_EMPTY_TWIML, media_type="application/xml")
