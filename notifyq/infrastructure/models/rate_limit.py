"""SQLAlchemy model for windowed per-tenant send counters."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from notifyq.infrastructure.database import Base


class RateLimitCounterModel(Base):
    """Number of sends counted for a tenant inside one window."""

    __tablename__ = "rate_limit_counters"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "window", "window_start", name="uq_rate_limit_counters_window"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False)
    window = Column(String(16), nullable=False)
    window_start = Column(DateTime(), nullable=False)
    count = Column(Integer, nullable=False, default=0)


__all__ = ["RateLimitCounterModel"]
