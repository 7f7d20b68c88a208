"""Persistence helpers for recipient opt-outs."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyq.domain.entities import OptOut
from notifyq.infrastructure.models import OptOutModel
from notifyq.utils import ensure_naive_utc, ensure_utc, now_naive_utc


class OptOutRepository:
    """Provide lookup and insert-once operations for :class:`OptOut`."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, tenant_id: str, recipient: str) -> OptOut | None:
        model = (
            self.session.query(OptOutModel)
            .filter(OptOutModel.tenant_id == tenant_id)
            .filter(OptOutModel.recipient == recipient)
            .first()
        )
        return self._to_entity(model) if model else None

    def exists(self, tenant_id: str, recipient: str) -> bool:
        query = self.session.query(OptOutModel.id).filter(
            OptOutModel.tenant_id == tenant_id,
            OptOutModel.recipient == recipient,
        )
        return self.session.query(query.exists()).scalar()

    def list_for_tenant(self, tenant_id: str, *, limit: int | None = 100) -> Sequence[OptOut]:
        query = (
            self.session.query(OptOutModel)
            .filter(OptOutModel.tenant_id == tenant_id)
            .order_by(OptOutModel.created_at.desc(), OptOutModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def add_if_absent(self, opt_out: OptOut) -> tuple[OptOut, bool]:
        """Insert ``opt_out`` unless the recipient is already suppressed.

        Returns the stored record and whether this call created it.
        """

        existing = self.get(opt_out.tenant_id, opt_out.recipient)
        if existing is not None:
            return existing, False

        model = OptOutModel(
            tenant_id=opt_out.tenant_id,
            recipient=opt_out.recipient,
            method=opt_out.method,
            raw_message=opt_out.raw_message,
            created_at=ensure_naive_utc(opt_out.created_at) or now_naive_utc(),
        )
        self.session.add(model)
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent insert won the unique constraint.
            self.session.rollback()
            existing = self.get(opt_out.tenant_id, opt_out.recipient)
            if existing is None:
                raise
            return existing, False
        self.session.refresh(model)
        return self._to_entity(model), True

    @staticmethod
    def _to_entity(model: OptOutModel) -> OptOut:
        return OptOut(
            id=model.id,
            tenant_id=model.tenant_id,
            recipient=model.recipient,
            method=model.method,
            raw_message=model.raw_message,
            created_at=ensure_utc(model.created_at),
        )


__all__ = ["OptOutRepository"]
