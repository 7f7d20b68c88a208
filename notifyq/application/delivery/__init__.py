"""Delivery of claimed messages."""

from .processor import compute_backoff, handle_unexpected_error, process_message

__all__ = ["compute_backoff", "handle_unexpected_error", "process_message"]
