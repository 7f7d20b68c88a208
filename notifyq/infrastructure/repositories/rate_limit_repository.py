"""Persistence helpers for windowed rate-limit counters."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyq.infrastructure.models import RateLimitCounterModel
from notifyq.utils import ensure_naive_utc


class RateLimitRepository:
    """Atomically consume and release slots of a tenant's send windows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def try_increment(
        self, tenant_id: str, window: str, window_start: datetime, *, limit: int
    ) -> bool:
        """Count one send in the window unless ``limit`` has been reached."""

        if limit <= 0:
            return False
        start = ensure_naive_utc(window_start)
        if self._conditional_increment(tenant_id, window, start, limit):
            return True

        exists = (
            self.session.query(RateLimitCounterModel.id)
            .filter(
                RateLimitCounterModel.tenant_id == tenant_id,
                RateLimitCounterModel.window == window,
                RateLimitCounterModel.window_start == start,
            )
            .first()
        )
        if exists is not None:
            return False

        self.session.add(
            RateLimitCounterModel(
                tenant_id=tenant_id, window=window, window_start=start, count=1
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            # Another worker opened the window first.
            self.session.rollback()
            return self._conditional_increment(tenant_id, window, start, limit)
        return True

    def release(self, tenant_id: str, window: str, window_start: datetime) -> None:
        """Give back a slot consumed by :meth:`try_increment`."""

        statement = (
            update(RateLimitCounterModel)
            .where(
                RateLimitCounterModel.tenant_id == tenant_id,
                RateLimitCounterModel.window == window,
                RateLimitCounterModel.window_start == ensure_naive_utc(window_start),
                RateLimitCounterModel.count > 0,
            )
            .values(count=RateLimitCounterModel.count - 1)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(statement)
        self.session.commit()

    def current_count(self, tenant_id: str, window: str, window_start: datetime) -> int:
        value = (
            self.session.query(RateLimitCounterModel.count)
            .filter(
                RateLimitCounterModel.tenant_id == tenant_id,
                RateLimitCounterModel.window == window,
                RateLimitCounterModel.window_start == ensure_naive_utc(window_start),
            )
            .scalar()
        )
        return int(value or 0)

    def purge_before(self, window: str, cutoff: datetime) -> int:
        """Delete counters of ``window`` that started before ``cutoff``."""

        deleted = (
            self.session.query(RateLimitCounterModel)
            .filter(
                RateLimitCounterModel.window == window,
                RateLimitCounterModel.window_start < ensure_naive_utc(cutoff),
            )
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return int(deleted or 0)

    def _conditional_increment(
        self, tenant_id: str, window: str, window_start: datetime, limit: int
    ) -> bool:
        statement = (
            update(RateLimitCounterModel)
            .where(
                RateLimitCounterModel.tenant_id == tenant_id,
                RateLimitCounterModel.window == window,
                RateLimitCounterModel.window_start == window_start,
                RateLimitCounterModel.count < limit,
            )
            .values(count=RateLimitCounterModel.count + 1)
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated


__all__ = ["RateLimitRepository"]
