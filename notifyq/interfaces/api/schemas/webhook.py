"""Pydantic models for provider callbacks."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class DeliveryStatusPayload(BaseModel):
    """Generic delivery report posted by a provider."""

    provider_message_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    timestamp: datetime | None = None
    error_code: str | None = None


class WebhookAck(BaseModel):
    updated: bool


__all__ = ["DeliveryStatusPayload", "WebhookAck"]
