"""Domain entity representing a notification content template."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class NotificationTemplate:
    """Content for one (tenant, notification type, channel) combination.

    ``tenant_id`` is ``None`` for system-wide defaults shared by every tenant.
    """

    id: int | None
    tenant_id: str | None
    notification_type: str
    channel: str
    subject: str | None
    content: str
    available_variables: list[str] = field(default_factory=list)
    is_default: bool = False
    is_transactional: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ResolvedTemplate:
    """Template chosen for a send together with the channel toggle state."""

    template: NotificationTemplate
    channel_enabled: bool


__all__ = ["NotificationTemplate", "ResolvedTemplate"]
