"""SQLAlchemy model for notification templates."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from notifyq.infrastructure.database import Base
from notifyq.utils import now_naive_utc


class NotificationTemplateModel(Base):
    """Database representation of a notification template."""

    __tablename__ = "notification_templates"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "notification_type",
            "channel",
            name="uq_notification_templates_scope",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    notification_type = Column(String(80), nullable=False)
    channel = Column(String(16), nullable=False, default="sms")
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    available_variables = Column(JSON, nullable=False, default=list)
    is_default = Column(Boolean, nullable=False, default=False)
    is_transactional = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(), nullable=False, default=now_naive_utc)
    updated_at = Column(DateTime(), nullable=False, default=now_naive_utc)


__all__ = ["NotificationTemplateModel"]
