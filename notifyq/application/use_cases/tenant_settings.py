"""Use cases for tenant-level delivery settings."""

from __future__ import annotations

from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from notifyq.config import get_settings
from notifyq.domain.entities import (
    CHANNEL_EMAIL,
    CHANNEL_SMS,
    QuietHoursPolicy,
    RateLimitPolicy,
    TenantSettings,
)
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import SettingsRepository


def default_tenant_settings(tenant_id: str) -> TenantSettings:
    """Settings applied to a tenant that has no stored row."""

    settings = get_settings()
    return TenantSettings(
        tenant_id=tenant_id,
        timezone=settings.default_tenant_timezone,
        sms_enabled=True,
        email_enabled=True,
        quiet_hours=QuietHoursPolicy(timezone=settings.default_tenant_timezone),
        rate_limits=RateLimitPolicy(
            messages_per_second=settings.default_messages_per_second,
            daily_limit=settings.default_daily_limit,
        ),
    )


def get_tenant_settings(session: Session, tenant_id: str) -> TenantSettings:
    stored = SettingsRepository(session).get_tenant_settings(tenant_id)
    return stored if stored is not None else default_tenant_settings(tenant_id)


def _validate_timezone(name: str) -> str:
    candidate = (name or "").strip()
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {name!r}") from exc
    return candidate


def update_tenant_settings(
    session: Session,
    tenant_id: str,
    *,
    timezone: str | None = None,
    sms_enabled: bool | None = None,
    email_enabled: bool | None = None,
    quiet_hours_enabled: bool | None = None,
    quiet_hours_start: time | None = None,
    quiet_hours_end: time | None = None,
    messages_per_second: int | None = None,
    daily_limit: int | None = None,
) -> TenantSettings:
    """Apply the provided fields to the tenant settings row.

    Turning a master switch off also disables that channel in every
    notification-type row, so no row stays enabled under a disabled tenant.
    """

    if not tenant_id:
        raise ValidationError("tenant_id is required")
    current = get_tenant_settings(session, tenant_id)

    tz_name = _validate_timezone(timezone) if timezone is not None else current.timezone
    quiet = QuietHoursPolicy(
        enabled=current.quiet_hours.enabled if quiet_hours_enabled is None else quiet_hours_enabled,
        start=quiet_hours_start if quiet_hours_start is not None else current.quiet_hours.start,
        end=quiet_hours_end if quiet_hours_end is not None else current.quiet_hours.end,
        timezone=tz_name,
    )
    if quiet.enabled and (quiet.start is None or quiet.end is None):
        raise ValidationError("Quiet hours need both a start and an end time")

    limits = RateLimitPolicy(
        messages_per_second=(
            current.rate_limits.messages_per_second
            if messages_per_second is None
            else messages_per_second
        ),
        daily_limit=current.rate_limits.daily_limit if daily_limit is None else daily_limit,
    )
    if limits.messages_per_second <= 0 or limits.daily_limit <= 0:
        raise ValidationError("Rate limits must be positive")

    updated = TenantSettings(
        tenant_id=tenant_id,
        timezone=tz_name,
        sms_enabled=current.sms_enabled if sms_enabled is None else sms_enabled,
        email_enabled=current.email_enabled if email_enabled is None else email_enabled,
        quiet_hours=quiet,
        rate_limits=limits,
    )

    repository = SettingsRepository(session)
    stored = repository.save_tenant_settings(updated)
    for channel_settings in repository.list_channel_settings(tenant_id):
        changed = False
        if not stored.master_switch(CHANNEL_SMS) and channel_settings.sms_enabled:
            channel_settings.sms_enabled = False
            changed = True
        if not stored.master_switch(CHANNEL_EMAIL) and channel_settings.email_enabled:
            channel_settings.email_enabled = False
            changed = True
        if changed:
            repository.save_channel_settings(channel_settings)
    return stored


__all__ = [
    "default_tenant_settings",
    "get_tenant_settings",
    "update_tenant_settings",
]
