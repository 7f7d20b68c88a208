from .message import (
    CancelResponse,
    MessageCreate,
    MessageRead,
    QueueStatsRead,
    RecipientPayload,
)
from .webhook import DeliveryStatusPayload, WebhookAck

__all__ = [
    "CancelResponse",
    "DeliveryStatusPayload",
    "MessageCreate",
    "MessageRead",
    "QueueStatsRead",
    "RecipientPayload",
    "WebhookAck",
]
