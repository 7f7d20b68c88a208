"""Persistence helpers for notification templates."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from notifyq.domain.entities import NotificationTemplate
from notifyq.infrastructure.models import ChannelSettingsModel, NotificationTemplateModel
from notifyq.utils import ensure_utc, now_naive_utc


class TemplateRepository:
    """Provide lookup and upsert operations for :class:`NotificationTemplate`."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, template_id: int) -> NotificationTemplate | None:
        model = self.session.get(NotificationTemplateModel, template_id)
        return self._to_entity(model) if model else None

    def get_for_scope(
        self, tenant_id: str | None, notification_type: str, channel: str
    ) -> NotificationTemplate | None:
        """Return the template stored for exactly this tenant (or system) scope."""

        query = self.session.query(NotificationTemplateModel).filter(
            NotificationTemplateModel.notification_type == notification_type,
            NotificationTemplateModel.channel == channel,
        )
        if tenant_id is None:
            query = query.filter(NotificationTemplateModel.tenant_id.is_(None))
        else:
            query = query.filter(NotificationTemplateModel.tenant_id == tenant_id)
        model = query.order_by(NotificationTemplateModel.id.asc()).first()
        return self._to_entity(model) if model else None

    def get_system_default(
        self, notification_type: str, channel: str
    ) -> NotificationTemplate | None:
        model = (
            self.session.query(NotificationTemplateModel)
            .filter(NotificationTemplateModel.tenant_id.is_(None))
            .filter(NotificationTemplateModel.notification_type == notification_type)
            .filter(NotificationTemplateModel.channel == channel)
            .filter(NotificationTemplateModel.is_default.is_(True))
            .order_by(NotificationTemplateModel.id.asc())
            .first()
        )
        return self._to_entity(model) if model else None

    def list_for_tenant(self, tenant_id: str | None) -> Sequence[NotificationTemplate]:
        query = self.session.query(NotificationTemplateModel)
        if tenant_id is None:
            query = query.filter(NotificationTemplateModel.tenant_id.is_(None))
        else:
            query = query.filter(NotificationTemplateModel.tenant_id == tenant_id)
        query = query.order_by(
            NotificationTemplateModel.notification_type.asc(),
            NotificationTemplateModel.channel.asc(),
        )
        return [self._to_entity(model) for model in query.all()]

    def save(self, template: NotificationTemplate) -> NotificationTemplate:
        """Insert ``template`` or overwrite the one already stored for its scope."""

        model = None
        if template.id is not None:
            model = self.session.get(NotificationTemplateModel, template.id)
        if model is None:
            query = self.session.query(NotificationTemplateModel).filter(
                NotificationTemplateModel.notification_type == template.notification_type,
                NotificationTemplateModel.channel == template.channel,
            )
            if template.tenant_id is None:
                query = query.filter(NotificationTemplateModel.tenant_id.is_(None))
            else:
                query = query.filter(NotificationTemplateModel.tenant_id == template.tenant_id)
            model = query.first()

        now = now_naive_utc()
        if model is None:
            model = NotificationTemplateModel(created_at=now)
        self._apply_entity_to_model(model, template)
        model.updated_at = now
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def delete(self, template_id: int, *, tenant_id: str) -> bool:
        """Delete a tenant-owned template and drop channel overrides pointing at it."""

        statement = (
            delete(NotificationTemplateModel)
            .where(
                NotificationTemplateModel.id == template_id,
                NotificationTemplateModel.tenant_id == tenant_id,
            )
            .execution_options(synchronize_session=False)
        )
        removed = self.session.execute(statement).rowcount == 1
        if removed:
            for column in (
                ChannelSettingsModel.sms_template_id,
                ChannelSettingsModel.email_template_id,
            ):
                self.session.execute(
                    update(ChannelSettingsModel)
                    .where(ChannelSettingsModel.tenant_id == tenant_id, column == template_id)
                    .values({column.key: None, "updated_at": now_naive_utc()})
                    .execution_options(synchronize_session=False)
                )
        self.session.commit()
        return removed

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationTemplateModel, template: NotificationTemplate
    ) -> None:
        model.tenant_id = template.tenant_id
        model.notification_type = template.notification_type
        model.channel = template.channel
        model.subject = template.subject
        model.content = template.content
        model.available_variables = list(template.available_variables or [])
        model.is_default = template.is_default
        model.is_transactional = template.is_transactional

    @staticmethod
    def _to_entity(model: NotificationTemplateModel) -> NotificationTemplate:
        return NotificationTemplate(
            id=model.id,
            tenant_id=model.tenant_id,
            notification_type=model.notification_type,
            channel=model.channel,
            subject=model.subject,
            content=model.content,
            available_variables=list(model.available_variables or []),
            is_default=bool(model.is_default),
            is_transactional=bool(model.is_transactional),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )


__all__ = ["TemplateRepository"]
