"""Use cases for the delivery queue."""

from .cancel import (
    CANCEL_RESULT_CANCELLED,
    CANCEL_RESULT_NOT_CANCELLABLE,
    CANCEL_RESULT_NOT_FOUND,
    CANCEL_RESULT_REQUESTED,
    CancelOutcome,
    cancel_message,
)
from .delivery_status import (
    apply_pending_delivery_report,
    on_delivery_status,
    purge_delivery_reports,
)
from .enqueue import enqueue
from .maintenance import reset_stale_claims
from .queries import QueueStats, get_message, get_queue_stats, list_messages

__all__ = [
    "CANCEL_RESULT_CANCELLED",
    "CANCEL_RESULT_NOT_CANCELLABLE",
    "CANCEL_RESULT_NOT_FOUND",
    "CANCEL_RESULT_REQUESTED",
    "CancelOutcome",
    "QueueStats",
    "apply_pending_delivery_report",
    "cancel_message",
    "enqueue",
    "get_message",
    "get_queue_stats",
    "list_messages",
    "on_delivery_status",
    "purge_delivery_reports",
    "reset_stale_claims",
]
