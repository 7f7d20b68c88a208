"""Per-tenant send throttling backed by windowed counters."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from notifyq.domain.entities import RateLimitPolicy
from notifyq.domain.errors import RateLimitExceeded
from notifyq.infrastructure.repositories import RateLimitRepository
from notifyq.utils import ensure_utc, now_utc, resolve_timezone

logger = logging.getLogger(__name__)

WINDOW_SECOND = "second"
WINDOW_DAY = "day"
SCOPE_PER_SECOND = "per_second"
SCOPE_DAILY = "daily"

_SECOND_RETENTION = timedelta(minutes=5)
_DAY_RETENTION = timedelta(days=2)


def daily_window(moment: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """Return the UTC bounds of the calendar day containing ``moment`` in ``tz_name``."""

    tz = resolve_timezone(tz_name)
    local_date = ensure_utc(moment).astimezone(tz).date()
    start = datetime.combine(local_date, time(0), tzinfo=tz)
    end = datetime.combine(local_date + timedelta(days=1), time(0), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def second_window(moment: datetime) -> datetime:
    return ensure_utc(moment).replace(microsecond=0)


def consume(
    session: Session,
    tenant_id: str,
    policy: RateLimitPolicy,
    now: datetime | None = None,
    *,
    tz_name: str = "UTC",
) -> None:
    """Count one send against the tenant's daily and per-second windows.

    Raises :class:`RateLimitExceeded` without consuming anything when either
    window is full. The daily window resets at local midnight in ``tz_name``.
    """

    moment = ensure_utc(now) or now_utc()
    repository = RateLimitRepository(session)

    day_start, next_day = daily_window(moment, tz_name)
    if not repository.try_increment(
        tenant_id, WINDOW_DAY, day_start, limit=policy.daily_limit
    ):
        logger.info("Daily limit reached for tenant=%s until %s", tenant_id, next_day)
        raise RateLimitExceeded(SCOPE_DAILY, next_day)

    second_start = second_window(moment)
    if not repository.try_increment(
        tenant_id, WINDOW_SECOND, second_start, limit=policy.messages_per_second
    ):
        repository.release(tenant_id, WINDOW_DAY, day_start)
        raise RateLimitExceeded(SCOPE_PER_SECOND, moment + timedelta(seconds=1))


def purge_expired_counters(session: Session, now: datetime | None = None) -> int:
    moment = ensure_utc(now) or now_utc()
    repository = RateLimitRepository(session)
    return repository.purge_before(
        WINDOW_SECOND, moment - _SECOND_RETENTION
    ) + repository.purge_before(WINDOW_DAY, moment - _DAY_RETENTION)


__all__ = [
    "SCOPE_DAILY",
    "SCOPE_PER_SECOND",
    "WINDOW_DAY",
    "WINDOW_SECOND",
    "consume",
    "daily_window",
    "purge_expired_counters",
    "second_window",
]
