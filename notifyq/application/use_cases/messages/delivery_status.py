"""Handling of asynchronous delivery reports from providers."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from notifyq.infrastructure.repositories import DeliveryReportRepository, MessageRepository
from notifyq.utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

DELIVERED_STATUSES = frozenset({"delivered"})
UNDELIVERED_STATUSES = frozenset({"failed", "undelivered"})


def _apply_report(
    repository: MessageRepository,
    provider_message_id: str,
    status: str,
    timestamp: datetime | None,
    error_code: str | None,
    now: datetime,
) -> bool:
    if status in DELIVERED_STATUSES:
        delivered_at = ensure_utc(timestamp) or now
        changed = repository.mark_delivered(
            provider_message_id, delivered_at=delivered_at, now=now
        )
        if changed:
            logger.info("Message %s delivered at %s", provider_message_id, delivered_at)
        return changed

    detail = f"Provider reported {status}"
    if error_code:
        detail = f"{detail} (code {error_code})"
    changed = repository.record_delivery_error(
        provider_message_id, error_message=detail, now=now
    )
    if changed:
        logger.warning("Message %s not delivered: %s", provider_message_id, detail)
    return changed


def on_delivery_status(
    session: Session,
    provider_message_id: str,
    status: str,
    timestamp: datetime | None = None,
    *,
    error_code: str | None = None,
) -> bool:
    """Apply a provider delivery report; return ``True`` when a row changed.

    Only ``sent`` messages move to ``delivered``. Replays and reports for
    messages in any other state are ignored. A report whose id is not on any
    message yet is kept until the send that produced the id is recorded.
    """

    if not provider_message_id:
        return False
    normalized = (status or "").strip().lower()
    if normalized not in DELIVERED_STATUSES | UNDELIVERED_STATUSES:
        return False

    current = now_utc()
    repository = MessageRepository(session)
    if _apply_report(
        repository, provider_message_id, normalized, timestamp, error_code, current
    ):
        return True
    if repository.has_provider_message_id(provider_message_id):
        logger.debug("Ignored delivery report for %s", provider_message_id)
        return False

    reports = DeliveryReportRepository(session)
    reports.save_if_absent(
        provider_message_id,
        status=normalized,
        error_code=error_code,
        reported_at=ensure_utc(timestamp),
        now=current,
    )
    # The send may have been recorded between the lookup and the save.
    if repository.has_provider_message_id(provider_message_id):
        return apply_pending_delivery_report(session, provider_message_id)
    logger.info("Holding %s report for unknown message %s", normalized, provider_message_id)
    return False


def apply_pending_delivery_report(session: Session, provider_message_id: str | None) -> bool:
    """Apply a report stored before ``provider_message_id`` was recorded as sent."""

    if not provider_message_id:
        return False
    report = DeliveryReportRepository(session).pop(provider_message_id)
    if report is None:
        return False
    return _apply_report(
        MessageRepository(session),
        report.provider_message_id,
        report.status,
        report.reported_at,
        report.error_code,
        now_utc(),
    )


def purge_delivery_reports(session: Session, older_than: datetime) -> int:
    """Drop held reports that never matched a message."""

    count = DeliveryReportRepository(session).purge_before(older_than)
    if count:
        logger.info("Purged %d unmatched delivery reports", count)
    return count


__all__ = ["apply_pending_delivery_report", "on_delivery_status", "purge_delivery_reports"]
