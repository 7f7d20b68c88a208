"""SQLAlchemy models for tenant and per-notification channel settings."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)

from notifyq.infrastructure.database import Base
from notifyq.utils import now_naive_utc


class TenantSettingsModel(Base):
    """Tenant-level switches, quiet hours and throughput limits."""

    __tablename__ = "tenant_settings"

    tenant_id = Column(String(64), primary_key=True)
    timezone = Column(String(64), nullable=False, default="America/New_York")
    sms_enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)
    quiet_hours_start = Column(Time(), nullable=True)
    quiet_hours_end = Column(Time(), nullable=True)
    messages_per_second = Column(Integer, nullable=False, default=10)
    daily_limit = Column(Integer, nullable=False, default=1000)
    created_at = Column(DateTime(), nullable=False, default=now_naive_utc)
    updated_at = Column(DateTime(), nullable=False, default=now_naive_utc)


class ChannelSettingsModel(Base):
    """Channel toggles for a single notification type of a tenant."""

    __tablename__ = "channel_settings"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "notification_type", name="uq_channel_settings_type"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    notification_type = Column(String(80), nullable=False)
    sms_enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_template_id = Column(
        Integer,
        ForeignKey("notification_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    email_template_id = Column(
        Integer,
        ForeignKey("notification_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(), nullable=False, default=now_naive_utc)
    updated_at = Column(DateTime(), nullable=False, default=now_naive_utc)


__all__ = ["TenantSettingsModel", "ChannelSettingsModel"]
