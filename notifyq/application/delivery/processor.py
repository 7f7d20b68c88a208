"""State machine applied to one claimed message.

A message reaches :func:`process_message` in ``processing`` with the claim
token of the calling worker. Gates run in order (cancellation, opt-out,
channel toggle, quiet hours, rate limits) before the provider is called. The
claim is confirmed right before the rate limit is consumed, and every outcome
is written back conditionally on that claim token.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from notifyq.application.use_cases.channel_settings import is_channel_enabled
from notifyq.application.use_cases.messages import apply_pending_delivery_report
from notifyq.application.use_cases.opt_outs import is_opted_out, record_opt_out
from notifyq.application.use_cases.quiet_hours import next_send_time
from notifyq.application.use_cases.rate_limits import consume
from notifyq.application.use_cases.tenant_settings import get_tenant_settings
from notifyq.config import get_settings
from notifyq.domain.entities import (
    MESSAGE_STATUS_PROCESSING,
    OPT_OUT_METHOD_PROVIDER,
    SKIP_REASON_CANCELLED,
    SKIP_REASON_CHANNEL_DISABLED,
    SKIP_REASON_OPTED_OUT,
    Message,
)
from notifyq.domain.errors import (
    PermanentProviderError,
    RateLimitExceeded,
    RecipientUnsubscribedError,
    SuppressedRecipientError,
    TransientProviderError,
    ValidationError,
)
from notifyq.infrastructure.providers import DeliveryProvider
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

OUTCOME_SENT = "sent"
OUTCOME_SKIPPED = "skipped"
OUTCOME_DEFERRED = "deferred"
OUTCOME_RETRY_SCHEDULED = "retry_scheduled"
OUTCOME_FAILED = "failed"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_CLAIM_LOST = "claim_lost"


def compute_backoff(attempts: int, *, base_seconds: int, max_seconds: int) -> timedelta:
    """Delay before retry number ``attempts``: ``base * 2**(attempts - 1)``, capped."""

    exponent = max(attempts - 1, 0)
    return timedelta(seconds=min(base_seconds * (2**exponent), max_seconds))


def ensure_sendable(session: Session, message: Message) -> None:
    """Raise :class:`SuppressedRecipientError` when the message must be skipped."""

    repository = MessageRepository(session)
    if message.cancel_requested_at is not None or repository.is_cancel_requested(message.id):
        raise SuppressedRecipientError(SKIP_REASON_CANCELLED)
    if is_opted_out(session, message.tenant_id, message.recipient.address):
        raise SuppressedRecipientError(SKIP_REASON_OPTED_OUT)
    if not is_channel_enabled(
        session, message.tenant_id, message.notification_type, message.channel
    ):
        raise SuppressedRecipientError(SKIP_REASON_CHANNEL_DISABLED)


def _written(updated: bool, outcome: str, message: Message) -> str:
    if updated:
        return outcome
    logger.warning(
        "Claim %s on message id=%s was lost before recording %s",
        message.claim_token,
        message.id,
        outcome,
    )
    return OUTCOME_CLAIM_LOST


def _record_failure(
    session: Session,
    message: Message,
    error: Exception,
    *,
    retryable: bool,
    now: datetime,
) -> str:
    repository = MessageRepository(session)
    settings = get_settings()
    attempts = message.attempts + 1
    error_message = str(error) or error.__class__.__name__

    if repository.is_cancel_requested(message.id):
        logger.info("Message id=%s cancelled after failed attempt %d", message.id, attempts)
        return _written(
            repository.mark_cancelled_after_attempt(
                message.id,
                claim_token=message.claim_token,
                attempts=attempts,
                error_message=error_message,
                now=now,
            ),
            OUTCOME_CANCELLED,
            message,
        )

    if retryable and attempts < message.max_attempts:
        retry_at = now + compute_backoff(
            attempts,
            base_seconds=settings.retry_backoff_base_seconds,
            max_seconds=settings.retry_backoff_max_seconds,
        )
        logger.warning(
            "Attempt %d/%d for message id=%s failed, retrying at %s: %s",
            attempts,
            message.max_attempts,
            message.id,
            retry_at.isoformat(),
            error_message,
        )
        return _written(
            repository.schedule_retry(
                message.id,
                claim_token=message.claim_token,
                attempts=attempts,
                error_message=error_message,
                retry_at=retry_at,
                now=now,
            ),
            OUTCOME_RETRY_SCHEDULED,
            message,
        )

    logger.error(
        "Message id=%s failed after %d attempt(s): %s",
        message.id,
        attempts,
        error_message,
    )
    return _written(
        repository.mark_failed(
            message.id,
            claim_token=message.claim_token,
            attempts=attempts,
            error_message=error_message,
            now=now,
        ),
        OUTCOME_FAILED,
        message,
    )


def handle_unexpected_error(
    session: Session, message: Message, error: Exception, now: datetime | None = None
) -> str:
    """Count an unexpected processing error as a transient attempt failure."""

    current = ensure_utc(now) or now_utc()
    return _record_failure(
        session,
        message,
        RuntimeError(f"Unexpected error: {error}"),
        retryable=True,
        now=current,
    )


def process_message(
    session: Session,
    message: Message,
    *,
    providers: Mapping[str, DeliveryProvider],
    now: datetime | None = None,
) -> str:
    """Run one claimed message through the gates and the provider.

    Returns the outcome label. Provider errors are translated into message
    state and never propagate.
    """

    if message.status != MESSAGE_STATUS_PROCESSING or not message.claim_token:
        raise ValueError(f"Message {message.id} is not claimed")

    current = ensure_utc(now) or now_utc()
    repository = MessageRepository(session)

    try:
        ensure_sendable(session, message)
    except SuppressedRecipientError as exc:
        logger.info("Skipping message id=%s: %s", message.id, exc.reason)
        return _written(
            repository.mark_skipped(
                message.id, claim_token=message.claim_token, reason=exc.reason, now=current
            ),
            OUTCOME_SKIPPED,
            message,
        )

    tenant = get_tenant_settings(session, message.tenant_id)
    quiet_until = next_send_time(
        tenant.quiet_hours, current, is_transactional=message.is_transactional
    )
    if quiet_until is not None:
        logger.info("Deferring message id=%s to %s (quiet hours)", message.id, quiet_until)
        return _written(
            repository.defer(
                message.id, claim_token=message.claim_token, until=quiet_until, now=current
            ),
            OUTCOME_DEFERRED,
            message,
        )

    if not repository.refresh_claim(message.id, claim_token=message.claim_token, now=current):
        logger.warning(
            "Claim %s on message id=%s was lost before sending",
            message.claim_token,
            message.id,
        )
        return OUTCOME_CLAIM_LOST

    try:
        consume(
            session, message.tenant_id, tenant.rate_limits, current, tz_name=tenant.timezone
        )
    except RateLimitExceeded as exc:
        logger.info(
            "Deferring message id=%s to %s (%s rate limit)",
            message.id,
            exc.retry_at.isoformat(),
            exc.scope,
        )
        return _written(
            repository.defer(
                message.id, claim_token=message.claim_token, until=exc.retry_at, now=current
            ),
            OUTCOME_DEFERRED,
            message,
        )

    provider = providers.get(message.channel)
    try:
        if provider is None:
            raise PermanentProviderError(
                f"No provider configured for channel {message.channel}"
            )
        receipt = provider.send(
            message.recipient.address, message.content, subject=message.subject
        )
    except RecipientUnsubscribedError as exc:
        try:
            record_opt_out(
                session,
                message.tenant_id,
                message.recipient.address,
                method=OPT_OUT_METHOD_PROVIDER,
                raw_message=str(exc),
            )
        except ValidationError:
            logger.warning("Could not register provider opt-out for message id=%s", message.id)
        return _record_failure(session, message, exc, retryable=False, now=current)
    except PermanentProviderError as exc:
        return _record_failure(session, message, exc, retryable=False, now=current)
    except TransientProviderError as exc:
        return _record_failure(session, message, exc, retryable=True, now=current)
    except Exception as exc:
        logger.exception("Provider raised an unexpected error for message id=%s", message.id)
        return handle_unexpected_error(session, message, exc, now=current)

    updated = repository.mark_sent(
        message.id,
        claim_token=message.claim_token,
        provider_message_id=receipt.provider_message_id,
        attempts=message.attempts + 1,
        now=current,
    )
    if updated:
        logger.info(
            "Sent message id=%s via %s provider_message_id=%s",
            message.id,
            receipt.provider,
            receipt.provider_message_id,
        )
        apply_pending_delivery_report(session, receipt.provider_message_id)
        return OUTCOME_SENT
    logger.error(
        "Message id=%s was sent as %s but its claim was lost",
        message.id,
        receipt.provider_message_id,
    )
    return OUTCOME_CLAIM_LOST


__all__ = [
    "OUTCOME_CANCELLED",
    "OUTCOME_CLAIM_LOST",
    "OUTCOME_DEFERRED",
    "OUTCOME_FAILED",
    "OUTCOME_RETRY_SCHEDULED",
    "OUTCOME_SENT",
    "OUTCOME_SKIPPED",
    "compute_backoff",
    "ensure_sendable",
    "handle_unexpected_error",
    "process_message",
]
