"""Tests for template rendering, segment counting and resolution order."""

from __future__ import annotations

import pytest

from conftest import TENANT
from notifyq.application.use_cases.channel_settings import (
    is_channel_enabled,
    update_channel_settings,
)
from notifyq.application.use_cases.templates import (
    SAMPLE_DATA,
    builtin_template,
    calculate_segments,
    delete_template,
    extract_variables,
    list_templates,
    preview_template,
    render_template,
    resolve_template,
    seed_default_templates,
    substitute_variables,
    upsert_template,
    validate_variables,
)
from notifyq.application.use_cases.tenant_settings import update_tenant_settings
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import SettingsRepository


@pytest.mark.parametrize(
    ("content", "encoding", "segments"),
    [
        ("", "GSM-7", 0),
        ("a" * 160, "GSM-7", 1),
        ("a" * 161, "GSM-7", 2),
        ("a" * 306, "GSM-7", 2),
        ("a" * 307, "GSM-7", 3),
        ("€" * 80, "GSM-7", 1),
        ("€" * 81, "GSM-7", 2),
        ("é" * 160, "GSM-7", 1),
        ("ç" * 70, "UCS-2", 1),
        ("ç" * 71, "UCS-2", 2),
        ("ç" * 134, "UCS-2", 2),
        ("ç" * 135, "UCS-2", 3),
    ],
)
def test_calculate_segments(content, encoding, segments):
    info = calculate_segments(content)

    assert info.encoding == encoding
    assert info.segment_count == segments
    assert info.character_count == len(content)


def test_extension_characters_count_twice():
    assert calculate_segments("[]").units == 4
    assert calculate_segments("ab").units == 2


def test_emoji_counts_as_two_ucs2_units():
    info = calculate_segments("hi 👋")

    assert info.encoding == "UCS-2"
    assert info.units == 5


def test_substitution_keeps_unknown_placeholders():
    content = "Hi {{name}}, order {{order}} {{name}}"

    assert extract_variables(content) == ["name", "order"]
    assert substitute_variables(content, {"name": "Ana"}) == "Hi Ana, order {{order}} Ana"
    assert validate_variables(content, {"name": "Ana", "order": None}) == ["order"]
    assert substitute_variables(content, {"name": "Ana", "order": 7}) == "Hi Ana, order 7 Ana"


def test_render_template_requires_all_variables(session):
    template = resolve_template(session, TENANT, "order_shipped", "sms").template

    with pytest.raises(ValidationError) as exc_info:
        render_template(template, {"brandName": "Acme"})

    assert "orderNumber" in str(exc_info.value)
    assert "trackingUrl" in str(exc_info.value)


def test_resolution_falls_back_to_builtin_default(session):
    resolved = resolve_template(session, TENANT, "order_shipped", "sms")

    assert resolved.template.id is None
    assert resolved.template.is_default
    assert resolved.channel_enabled
    assert "{{trackingUrl}}" in resolved.template.content


def test_builtin_templates_mark_transactional_types():
    assert builtin_template("verification_code", "sms").is_transactional
    assert builtin_template("security_alert", "email").is_transactional
    assert not builtin_template("order_shipped", "sms").is_transactional
    assert builtin_template("order_shipped", "email").subject
    assert builtin_template("order_shipped", "push") is None


def test_resolution_order(session):
    system = upsert_template(
        session,
        tenant_id=None,
        notification_type="order_shipped",
        channel="sms",
        content="System: {{orderNumber}}",
        is_default=True,
    )
    assert resolve_template(session, TENANT, "order_shipped", "sms").template.id == system.id

    tenant = upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="order_shipped",
        channel="sms",
        content="Tenant: {{orderNumber}}",
    )
    assert resolve_template(session, TENANT, "order_shipped", "sms").template.id == tenant.id
    assert resolve_template(session, "other", "order_shipped", "sms").template.id == system.id

    override = upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="order_shipped_vip",
        channel="sms",
        content="VIP: {{orderNumber}}",
    )
    update_channel_settings(session, TENANT, "order_shipped", sms_template_id=override.id)

    resolved = resolve_template(session, TENANT, "order_shipped", "sms")
    assert resolved.template.id == override.id
    assert resolved.template.content == "VIP: {{orderNumber}}"


def test_upsert_replaces_existing_scope(session):
    first = upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="welcome",
        channel="email",
        subject="Hi {{name}}",
        content="Welcome {{name}} to {{brand}}",
    )
    second = upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="welcome",
        channel="email",
        subject="Hello {{name}}",
        content="Welcome back {{name}}",
    )

    assert first.id == second.id
    assert second.subject == "Hello {{name}}"
    assert second.available_variables == ["name"]
    assert first.available_variables == ["name", "brand"]


def test_unknown_notification_type_raises(session):
    with pytest.raises(ValidationError):
        resolve_template(session, TENANT, "does_not_exist", "sms")


def test_seed_default_templates_is_repeatable(session):
    seeded = seed_default_templates(session, TENANT)

    assert {template.notification_type for template in seeded} >= {
        "order_shipped",
        "verification_code",
        "security_alert",
    }
    assert all(template.tenant_id == TENANT for template in seeded)
    assert seed_default_templates(session, TENANT) == []

    verification = resolve_template(session, TENANT, "verification_code", "sms").template
    assert verification.tenant_id == TENANT
    assert verification.is_transactional


def test_channel_toggle_follows_master_switch(session):
    assert is_channel_enabled(session, TENANT, "order_shipped", "sms")

    update_channel_settings(session, TENANT, "order_shipped", sms_enabled=False)
    assert not is_channel_enabled(session, TENANT, "order_shipped", "sms")
    assert is_channel_enabled(session, TENANT, "order_shipped", "email")

    update_tenant_settings(session, TENANT, email_enabled=False)
    assert not is_channel_enabled(session, TENANT, "order_shipped", "email")
    assert not is_channel_enabled(session, TENANT, "payout_sent", "email")

    with pytest.raises(ValidationError):
        update_channel_settings(session, TENANT, "order_shipped", email_enabled=True)

    resolved = resolve_template(session, TENANT, "order_shipped", "email")
    assert resolved.channel_enabled is False


def test_channel_override_must_match_channel(session):
    email_template = upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="order_shipped",
        channel="email",
        subject="Shipped",
        content="Shipped {{orderNumber}}",
    )

    with pytest.raises(ValidationError):
        update_channel_settings(
            session, TENANT, "order_shipped", sms_template_id=email_template.id
        )


def test_list_templates_is_scoped_to_tenant(session):
    seed_default_templates(session, None)
    upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="payout_sent",
        channel="sms",
        content="{{brandName}} paid {{amount}}",
    )
    upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="order_shipped",
        channel="sms",
        content="{{brandName}} shipped {{orderNumber}}",
    )
    upsert_template(
        session,
        tenant_id="other",
        notification_type="order_shipped",
        channel="sms",
        content="Other {{orderNumber}}",
    )

    listed = list_templates(session, TENANT)

    assert [template.notification_type for template in listed] == [
        "order_shipped",
        "payout_sent",
    ]
    assert all(template.tenant_id == TENANT for template in listed)
    assert all(template.tenant_id is None for template in list_templates(session, None))


def test_delete_template_clears_override_and_falls_back(session):
    custom = upsert_template(
        session,
        tenant_id=TENANT,
        notification_type="order_shipped",
        channel="sms",
        content="VIP {{orderNumber}}",
    )
    update_channel_settings(session, TENANT, "order_shipped", sms_template_id=custom.id)

    assert delete_template(session, "other", custom.id) is False
    assert delete_template(session, TENANT, custom.id) is True
    assert delete_template(session, TENANT, custom.id) is False

    session.expire_all()
    channel_settings = SettingsRepository(session).get_channel_settings(TENANT, "order_shipped")
    assert channel_settings.sms_template_id is None
    resolved = resolve_template(session, TENANT, "order_shipped", "sms")
    assert resolved.template.content == builtin_template("order_shipped", "sms").content


def test_system_templates_cannot_be_deleted_by_a_tenant(session):
    seeded = seed_default_templates(session, None)

    assert delete_template(session, TENANT, seeded[0].id) is False
    assert len(list_templates(session, None)) == len(seeded)


def test_preview_uses_sample_data_and_overrides():
    content = builtin_template("order_shipped", "sms").content

    preview = preview_template(content, "order_shipped", {"orderNumber": "777"})

    assert "{{" not in preview.content
    assert SAMPLE_DATA["order_shipped"]["trackingUrl"] in preview.content
    assert "#777" in preview.content
    assert preview.encoding == "GSM-7"
    assert preview.segment_count == 1
    assert preview.character_count == len(preview.content)


def test_preview_keeps_unknown_placeholders_and_counts_unicode():
    preview = preview_template("Hola {{nombre}} ✓", "unknown_type")

    assert preview.content == "Hola {{nombre}} ✓"
    assert preview.encoding == "UCS-2"
