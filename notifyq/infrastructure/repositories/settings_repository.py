"""Persistence helpers for tenant and channel settings."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from notifyq.domain.entities import (
    ChannelSettings,
    QuietHoursPolicy,
    RateLimitPolicy,
    TenantSettings,
)
from notifyq.infrastructure.models import ChannelSettingsModel, TenantSettingsModel
from notifyq.utils import ensure_utc, now_naive_utc


class SettingsRepository:
    """Read and write :class:`TenantSettings` and :class:`ChannelSettings`."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_tenant_settings(self, tenant_id: str) -> TenantSettings | None:
        model = self.session.get(TenantSettingsModel, tenant_id)
        return self._tenant_to_entity(model) if model else None

    def save_tenant_settings(self, settings: TenantSettings) -> TenantSettings:
        now = now_naive_utc()
        model = self.session.get(TenantSettingsModel, settings.tenant_id)
        if model is None:
            model = TenantSettingsModel(tenant_id=settings.tenant_id, created_at=now)
        model.timezone = settings.timezone
        model.sms_enabled = settings.sms_enabled
        model.email_enabled = settings.email_enabled
        model.quiet_hours_enabled = settings.quiet_hours.enabled
        model.quiet_hours_start = settings.quiet_hours.start
        model.quiet_hours_end = settings.quiet_hours.end
        model.messages_per_second = settings.rate_limits.messages_per_second
        model.daily_limit = settings.rate_limits.daily_limit
        model.updated_at = now
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._tenant_to_entity(model)

    def get_channel_settings(
        self, tenant_id: str, notification_type: str
    ) -> ChannelSettings | None:
        model = (
            self.session.query(ChannelSettingsModel)
            .filter(ChannelSettingsModel.tenant_id == tenant_id)
            .filter(ChannelSettingsModel.notification_type == notification_type)
            .first()
        )
        return self._channel_to_entity(model) if model else None

    def list_channel_settings(self, tenant_id: str) -> Sequence[ChannelSettings]:
        models = (
            self.session.query(ChannelSettingsModel)
            .filter(ChannelSettingsModel.tenant_id == tenant_id)
            .order_by(ChannelSettingsModel.notification_type.asc())
            .all()
        )
        return [self._channel_to_entity(model) for model in models]

    def save_channel_settings(self, settings: ChannelSettings) -> ChannelSettings:
        now = now_naive_utc()
        model = (
            self.session.query(ChannelSettingsModel)
            .filter(ChannelSettingsModel.tenant_id == settings.tenant_id)
            .filter(ChannelSettingsModel.notification_type == settings.notification_type)
            .first()
        )
        if model is None:
            model = ChannelSettingsModel(
                tenant_id=settings.tenant_id,
                notification_type=settings.notification_type,
                created_at=now,
            )
        model.sms_enabled = settings.sms_enabled
        model.email_enabled = settings.email_enabled
        model.sms_template_id = settings.sms_template_id
        model.email_template_id = settings.email_template_id
        model.updated_at = now
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._channel_to_entity(model)

    @staticmethod
    def _tenant_to_entity(model: TenantSettingsModel) -> TenantSettings:
        return TenantSettings(
            tenant_id=model.tenant_id,
            timezone=model.timezone,
            sms_enabled=bool(model.sms_enabled),
            email_enabled=bool(model.email_enabled),
            quiet_hours=QuietHoursPolicy(
                enabled=bool(model.quiet_hours_enabled),
                start=model.quiet_hours_start,
                end=model.quiet_hours_end,
                timezone=model.timezone,
            ),
            rate_limits=RateLimitPolicy(
                messages_per_second=model.messages_per_second,
                daily_limit=model.daily_limit,
            ),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )

    @staticmethod
    def _channel_to_entity(model: ChannelSettingsModel) -> ChannelSettings:
        return ChannelSettings(
            id=model.id,
            tenant_id=model.tenant_id,
            notification_type=model.notification_type,
            sms_enabled=bool(model.sms_enabled),
            email_enabled=bool(model.email_enabled),
            sms_template_id=model.sms_template_id,
            email_template_id=model.email_template_id,
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )


__all__ = ["SettingsRepository"]
