"""Use cases for per-notification-type channel toggles."""

from __future__ import annotations

from sqlalchemy.orm import Session

from notifyq.domain.entities import CHANNEL_EMAIL, CHANNEL_SMS, CHANNELS, ChannelSettings
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import SettingsRepository, TemplateRepository

from .tenant_settings import get_tenant_settings


def is_channel_enabled(
    session: Session, tenant_id: str, notification_type: str, channel: str
) -> bool:
    """Return whether ``channel`` may be used for ``notification_type``.

    The tenant master switch wins; without a per-type row the master switch
    alone decides.
    """

    if channel not in CHANNELS:
        return False
    if not get_tenant_settings(session, tenant_id).master_switch(channel):
        return False
    stored = SettingsRepository(session).get_channel_settings(tenant_id, notification_type)
    if stored is None:
        return True
    return stored.is_enabled(channel)


def _check_template(
    session: Session, tenant_id: str, template_id: int | None, channel: str
) -> None:
    if template_id is None:
        return
    template = TemplateRepository(session).get(template_id)
    if template is None:
        raise ValidationError(f"Template {template_id} not found")
    if template.channel != channel:
        raise ValidationError(f"Template {template_id} is not a {channel} template")
    if template.tenant_id not in (None, tenant_id):
        raise ValidationError(f"Template {template_id} belongs to another tenant")


def update_channel_settings(
    session: Session,
    tenant_id: str,
    notification_type: str,
    *,
    sms_enabled: bool | None = None,
    email_enabled: bool | None = None,
    sms_template_id: int | None = None,
    email_template_id: int | None = None,
) -> ChannelSettings:
    """Create or update the channel row for ``notification_type``.

    Raises ``ValidationError`` when enabling a channel whose tenant master
    switch is off, or when a template override does not fit the channel.
    """

    if not tenant_id or not notification_type:
        raise ValidationError("tenant_id and notification_type are required")

    tenant = get_tenant_settings(session, tenant_id)
    repository = SettingsRepository(session)
    current = repository.get_channel_settings(tenant_id, notification_type)
    if current is None:
        current = ChannelSettings(
            id=None,
            tenant_id=tenant_id,
            notification_type=notification_type,
            sms_enabled=tenant.sms_enabled,
            email_enabled=tenant.email_enabled,
        )

    if sms_enabled is not None:
        if sms_enabled and not tenant.master_switch(CHANNEL_SMS):
            raise ValidationError("SMS is disabled for this tenant")
        current.sms_enabled = sms_enabled
    if email_enabled is not None:
        if email_enabled and not tenant.master_switch(CHANNEL_EMAIL):
            raise ValidationError("Email is disabled for this tenant")
        current.email_enabled = email_enabled

    _check_template(session, tenant_id, sms_template_id, CHANNEL_SMS)
    _check_template(session, tenant_id, email_template_id, CHANNEL_EMAIL)
    if sms_template_id is not None:
        current.sms_template_id = sms_template_id
    if email_template_id is not None:
        current.email_template_id = email_template_id

    return repository.save_channel_settings(current)


__all__ = ["is_channel_enabled", "update_channel_settings"]
