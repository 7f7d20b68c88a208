"""Quiet-hours gate evaluated in the tenant timezone."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from notifyq.domain.entities import QuietHoursPolicy
from notifyq.utils import ensure_utc, now_utc

from .tenant_settings import get_tenant_settings


def get_quiet_hours_policy(session: Session, tenant_id: str) -> QuietHoursPolicy:
    return get_tenant_settings(session, tenant_id).quiet_hours


def is_quiet_hours(session: Session, tenant_id: str, now: datetime | None = None) -> bool:
    """Return ``True`` when ``now`` falls inside the tenant's quiet window."""

    moment = ensure_utc(now) or now_utc()
    return get_quiet_hours_policy(session, tenant_id).contains(moment)


def next_send_time(
    policy: QuietHoursPolicy, moment: datetime, *, is_transactional: bool
) -> datetime | None:
    """Return when a send planned for ``moment`` may go out, or ``None`` if now.

    Transactional messages bypass quiet hours.
    """

    if is_transactional or not policy.contains(moment):
        return None
    return policy.window_end(moment)


__all__ = ["get_quiet_hours_policy", "is_quiet_hours", "next_send_time"]
