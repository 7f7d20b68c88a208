"""Per-tenant delivery policies: channel switches, quiet hours and rate limits."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone

from notifyq.utils import ensure_utc, resolve_timezone

from .message import CHANNEL_EMAIL, CHANNEL_SMS


@dataclass(frozen=True)
class QuietHoursPolicy:
    """Daily window, in the tenant timezone, during which sends are deferred.

    ``start`` is inclusive and ``end`` exclusive. A window whose start is later
    than its end wraps past midnight (``21:00-09:00``). Equal bounds describe
    an empty window.
    """

    enabled: bool = False
    start: time | None = None
    end: time | None = None
    timezone: str = "UTC"

    def is_configured(self) -> bool:
        return (
            self.enabled
            and self.start is not None
            and self.end is not None
            and self.start != self.end
        )

    def _localize(self, now: datetime) -> datetime:
        normalized = ensure_utc(now)
        return normalized.astimezone(resolve_timezone(self.timezone))

    def contains(self, now: datetime) -> bool:
        """Return ``True`` when ``now`` falls inside the quiet window."""

        if not self.is_configured():
            return False

        local_time = self._localize(now).time()
        if self.start < self.end:
            return self.start <= local_time < self.end
        return local_time >= self.start or local_time < self.end

    def window_end(self, now: datetime) -> datetime:
        """Return the next moment (UTC) at which the window closes after ``now``."""

        if not self.is_configured():
            return ensure_utc(now)

        local = self._localize(now)
        tz = local.tzinfo
        candidate = datetime.combine(local.date(), self.end, tzinfo=tz)
        if candidate <= local:
            candidate = datetime.combine(
                local.date() + timedelta(days=1), self.end, tzinfo=tz
            )
        return candidate.astimezone(timezone.utc)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Throughput limits for a tenant."""

    messages_per_second: int
    daily_limit: int


@dataclass
class TenantSettings:
    """Tenant-level configuration consulted by the delivery gates."""

    tenant_id: str
    timezone: str
    sms_enabled: bool
    email_enabled: bool
    quiet_hours: QuietHoursPolicy = field(default_factory=QuietHoursPolicy)
    rate_limits: RateLimitPolicy = field(
        default_factory=lambda: RateLimitPolicy(messages_per_second=10, daily_limit=1000)
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def master_switch(self, channel: str) -> bool:
        """Return the tenant-level switch for ``channel``."""

        if channel == CHANNEL_SMS:
            return self.sms_enabled
        if channel == CHANNEL_EMAIL:
            return self.email_enabled
        return False


@dataclass
class ChannelSettings:
    """Channel toggles and template overrides for one notification type."""

    id: int | None
    tenant_id: str
    notification_type: str
    sms_enabled: bool
    email_enabled: bool
    sms_template_id: int | None = None
    email_template_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_enabled(self, channel: str) -> bool:
        if channel == CHANNEL_SMS:
            return self.sms_enabled
        if channel == CHANNEL_EMAIL:
            return self.email_enabled
        return False

    def template_id_for(self, channel: str) -> int | None:
        if channel == CHANNEL_SMS:
            return self.sms_template_id
        if channel == CHANNEL_EMAIL:
            return self.email_template_id
        return None


__all__ = [
    "ChannelSettings",
    "QuietHoursPolicy",
    "RateLimitPolicy",
    "TenantSettings",
]
