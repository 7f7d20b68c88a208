"""Template lookup with tenant, system and built-in fallbacks."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from notifyq.domain.entities import CHANNELS, NotificationTemplate, ResolvedTemplate
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import SettingsRepository, TemplateRepository

from ..channel_settings import is_channel_enabled
from .defaults import builtin_template, builtin_templates
from .rendering import extract_variables

logger = logging.getLogger(__name__)


def resolve_template(
    session: Session, tenant_id: str, notification_type: str, channel: str
) -> ResolvedTemplate:
    """Return the template to use and whether the channel is enabled.

    Lookup order: the template id overridden in channel settings, the tenant's
    own template, the stored system default and finally the built-in default.
    """

    if channel not in CHANNELS:
        raise ValidationError(f"Unsupported channel: {channel!r}")

    repository = TemplateRepository(session)
    template: NotificationTemplate | None = None

    channel_settings = SettingsRepository(session).get_channel_settings(
        tenant_id, notification_type
    )
    override_id = channel_settings.template_id_for(channel) if channel_settings else None
    if override_id is not None:
        candidate = repository.get(override_id)
        if (
            candidate is not None
            and candidate.channel == channel
            and candidate.tenant_id in (None, tenant_id)
        ):
            template = candidate
        else:
            logger.warning(
                "Ignoring template override %s for tenant=%s type=%s channel=%s",
                override_id,
                tenant_id,
                notification_type,
                channel,
            )

    if template is None:
        template = repository.get_for_scope(tenant_id, notification_type, channel)
    if template is None:
        template = repository.get_system_default(notification_type, channel)
    if template is None:
        template = builtin_template(notification_type, channel)
    if template is None:
        raise ValidationError(
            f"No {channel} template found for notification type {notification_type!r}"
        )

    return ResolvedTemplate(
        template=template,
        channel_enabled=is_channel_enabled(session, tenant_id, notification_type, channel),
    )


def upsert_template(
    session: Session,
    *,
    tenant_id: str | None,
    notification_type: str,
    channel: str,
    content: str,
    subject: str | None = None,
    available_variables: list[str] | None = None,
    is_default: bool = False,
    is_transactional: bool = False,
) -> NotificationTemplate:
    """Create or replace the template for (tenant, type, channel)."""

    if channel not in CHANNELS:
        raise ValidationError(f"Unsupported channel: {channel!r}")
    if not notification_type:
        raise ValidationError("notification_type is required")
    if not (content or "").strip():
        raise ValidationError("Template content cannot be empty")

    variables = list(available_variables or [])
    if not variables:
        variables = extract_variables(content)
        for name in extract_variables(subject):
            if name not in variables:
                variables.append(name)

    return TemplateRepository(session).save(
        NotificationTemplate(
            id=None,
            tenant_id=tenant_id,
            notification_type=notification_type,
            channel=channel,
            subject=subject,
            content=content,
            available_variables=variables,
            is_default=is_default,
            is_transactional=is_transactional,
        )
    )


def seed_default_templates(
    session: Session, tenant_id: str | None = None
) -> list[NotificationTemplate]:
    """Store the built-in templates for ``tenant_id`` (or as system defaults).

    Templates already present for a scope are left untouched.
    """

    repository = TemplateRepository(session)
    seeded: list[NotificationTemplate] = []
    for template in builtin_templates():
        existing = repository.get_for_scope(
            tenant_id, template.notification_type, template.channel
        )
        if existing is not None:
            continue
        template.tenant_id = tenant_id
        seeded.append(repository.save(template))
    if seeded:
        logger.info(
            "Seeded %d default templates for %s",
            len(seeded),
            tenant_id or "system",
        )
    return seeded


def list_templates(session: Session, tenant_id: str | None) -> list[NotificationTemplate]:
    """Return the templates stored for ``tenant_id`` (``None`` for system defaults)."""

    return list(TemplateRepository(session).list_for_tenant(tenant_id))


def delete_template(session: Session, tenant_id: str, template_id: int) -> bool:
    """Delete one of the tenant's templates; return ``False`` when it is not theirs."""

    deleted = TemplateRepository(session).delete(template_id, tenant_id=tenant_id)
    if deleted:
        logger.info("Deleted template id=%s for tenant=%s", template_id, tenant_id)
    return deleted


__all__ = [
    "delete_template",
    "list_templates",
    "resolve_template",
    "seed_default_templates",
    "upsert_template",
]
