"""Periodic queue maintenance."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from notifyq.config import get_settings
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)


def reset_stale_claims(
    session: Session, now: datetime | None = None, *, stale_minutes: int | None = None
) -> int:
    """Requeue messages whose claim outlived ``claim_stale_minutes``."""

    current = ensure_utc(now) or now_utc()
    minutes = stale_minutes if stale_minutes is not None else get_settings().claim_stale_minutes
    count = MessageRepository(session).reset_stale_claims(
        older_than=current - timedelta(minutes=minutes), now=current
    )
    if count:
        logger.warning("Reset %d stale processing claims", count)
    return count


__all__ = ["reset_stale_claims"]
