"""SQLAlchemy model for recipient opt-outs."""

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from notifyq.infrastructure.database import Base
from notifyq.utils import now_naive_utc


class OptOutModel(Base):
    """Database representation of a suppressed recipient."""

    __tablename__ = "opt_outs"
    __table_args__ = (
        UniqueConstraint("tenant_id", "recipient", name="uq_opt_outs_tenant_recipient"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    recipient = Column(String(320), nullable=False)
    method = Column(String(30), nullable=False)
    raw_message = Column(Text, nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_naive_utc)


__all__ = ["OptOutModel"]
