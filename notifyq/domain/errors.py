"""Error taxonomy shared by the queue, the gates and the providers."""

from __future__ import annotations

from datetime import datetime


class DeliveryError(Exception):
    """Base class for errors raised while queueing or delivering messages."""


class ValidationError(DeliveryError, ValueError):
    """Input rejected before a message is queued; never retried."""


class TransientProviderError(DeliveryError):
    """Provider failure that is expected to succeed on a later attempt."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class PermanentProviderError(DeliveryError):
    """Provider failure that will never succeed for this message."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class RecipientUnsubscribedError(PermanentProviderError):
    """The provider reports that the recipient withdrew consent."""


class SuppressedRecipientError(DeliveryError):
    """The message must not be sent; it is skipped rather than failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RateLimitExceeded(DeliveryError):
    """The tenant exhausted a rate-limit window; the send is deferred."""

    def __init__(self, scope: str, retry_at: datetime) -> None:
        super().__init__(f"{scope} rate limit exceeded until {retry_at.isoformat()}")
        self.scope = scope
        self.retry_at = retry_at


__all__ = [
    "DeliveryError",
    "ValidationError",
    "TransientProviderError",
    "PermanentProviderError",
    "RecipientUnsubscribedError",
    "SuppressedRecipientError",
    "RateLimitExceeded",
]
