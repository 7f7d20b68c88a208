"""Aggregate application use cases."""

from .messages import cancel_message, enqueue, on_delivery_status
from .opt_outs import is_opted_out, on_stop_keyword, record_opt_out

__all__ = [
    "cancel_message",
    "enqueue",
    "is_opted_out",
    "on_delivery_status",
    "on_stop_keyword",
    "record_opt_out",
]
