"""SQLAlchemy model for delivery reports received before their message was sent."""

from sqlalchemy import Column, DateTime, Integer, String

from notifyq.infrastructure.database import Base
from notifyq.utils import now_naive_utc


class DeliveryReportModel(Base):
    """Provider report waiting for the message that carries its id."""

    __tablename__ = "delivery_reports"

    id = Column(Integer, primary_key=True, index=True)
    provider_message_id = Column(String(120), nullable=False, unique=True)
    status = Column(String(20), nullable=False)
    error_code = Column(String(40), nullable=True)
    reported_at = Column(DateTime(), nullable=True)
    received_at = Column(DateTime(), nullable=False, default=now_naive_utc)


__all__ = ["DeliveryReportModel"]
