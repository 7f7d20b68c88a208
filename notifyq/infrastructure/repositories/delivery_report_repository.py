"""Persistence for delivery reports that arrived ahead of ``mark_sent``."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyq.infrastructure.models import DeliveryReportModel
from notifyq.utils import ensure_naive_utc, ensure_utc


@dataclass(frozen=True)
class PendingDeliveryReport:
    provider_message_id: str
    status: str
    error_code: str | None
    reported_at: datetime | None


class DeliveryReportRepository:
    """Hold early provider reports until the send path claims them."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def save_if_absent(
        self,
        provider_message_id: str,
        *,
        status: str,
        error_code: str | None,
        reported_at: datetime | None,
        now: datetime,
    ) -> bool:
        self.session.add(
            DeliveryReportModel(
                provider_message_id=provider_message_id,
                status=status,
                error_code=error_code,
                reported_at=ensure_naive_utc(reported_at),
                received_at=ensure_naive_utc(now),
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            # A report for this id is already waiting.
            self.session.rollback()
            return False
        return True

    def pop(self, provider_message_id: str) -> PendingDeliveryReport | None:
        """Remove and return the report stored for ``provider_message_id``."""

        model = (
            self.session.query(DeliveryReportModel)
            .filter(DeliveryReportModel.provider_message_id == provider_message_id)
            .first()
        )
        if model is None:
            return None
        report = PendingDeliveryReport(
            provider_message_id=model.provider_message_id,
            status=model.status,
            error_code=model.error_code,
            reported_at=ensure_utc(model.reported_at),
        )
        statement = (
            delete(DeliveryReportModel)
            .where(DeliveryReportModel.id == model.id)
            .execution_options(synchronize_session=False)
        )
        removed = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return report if removed else None

    def purge_before(self, cutoff: datetime) -> int:
        statement = (
            delete(DeliveryReportModel)
            .where(DeliveryReportModel.received_at < ensure_naive_utc(cutoff))
            .execution_options(synchronize_session=False)
        )
        count = self.session.execute(statement).rowcount
        self.session.commit()
        return int(count or 0)


__all__ = ["DeliveryReportRepository", "PendingDeliveryReport"]
