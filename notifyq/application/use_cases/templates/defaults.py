"""Built-in templates used when neither the tenant nor the system defines one."""

from __future__ import annotations

from notifyq.domain.entities import CHANNEL_EMAIL, CHANNEL_SMS, NotificationTemplate

from .rendering import extract_variables

TRANSACTIONAL_NOTIFICATION_TYPES = frozenset({"verification_code", "security_alert"})

DEFAULT_SMS_TEMPLATES: dict[str, str] = {
    "order_shipped": (
        "{{brandName}}: Your order #{{orderNumber}} has shipped! "
        "Track at: {{trackingUrl}} Reply STOP to opt out."
    ),
    "delivery_notification": (
        "{{brandName}}: Your order #{{orderNumber}} was delivered! "
        "Thank you for your purchase. Reply STOP to opt out."
    ),
    "payment_available": (
        "{{brandName}}: {{amount}} is available for payout! "
        "Log in to claim: {{portalUrl}} Reply STOP to opt out."
    ),
    "payout_sent": (
        "{{brandName}}: Your payout of {{amount}} has been sent! "
        "It should arrive in 2-3 business days. Reply STOP to opt out."
    ),
    "action_required": (
        "{{brandName}}: Action required on your account. "
        "Log in: {{portalUrl}} Reply STOP to opt out."
    ),
    "verification_code": (
        "{{brandName}}: Your verification code is {{code}}. It expires in 10 minutes."
    ),
    "security_alert": (
        "{{brandName}}: Security alert - {{alertMessage}}. "
        "If this wasn't you, contact support immediately."
    ),
}

DEFAULT_EMAIL_TEMPLATES: dict[str, tuple[str, str]] = {
    "order_shipped": (
        "Your {{brandName}} order #{{orderNumber}} has shipped",
        "Good news! Your order #{{orderNumber}} is on its way.\n\n"
        "Track your package: {{trackingUrl}}",
    ),
    "delivery_notification": (
        "Your {{brandName}} order #{{orderNumber}} was delivered",
        "Your order #{{orderNumber}} was delivered. Thank you for your purchase!",
    ),
    "payment_available": (
        "{{amount}} is ready for payout",
        "{{amount}} is available for payout from {{brandName}}.\n\n"
        "Log in to claim it: {{portalUrl}}",
    ),
    "payout_sent": (
        "Your {{brandName}} payout of {{amount}} was sent",
        "Your payout of {{amount}} has been sent. "
        "It should arrive in 2-3 business days.",
    ),
    "action_required": (
        "Action required on your {{brandName}} account",
        "Please log in to review your account: {{portalUrl}}",
    ),
    "verification_code": (
        "Your {{brandName}} verification code",
        "Your verification code is {{code}}. It expires in 10 minutes.",
    ),
    "security_alert": (
        "{{brandName}} security alert",
        "{{alertMessage}}\n\nIf this wasn't you, contact support immediately.",
    ),
}


# Placeholder values used when previewing a template outside of a real send.
SAMPLE_DATA: dict[str, dict[str, str]] = {
    "order_shipped": {
        "brandName": "Acme",
        "orderNumber": "12345",
        "trackingUrl": "https://track.example.com/abc123",
    },
    "delivery_notification": {"brandName": "Acme", "orderNumber": "12345"},
    "payment_available": {
        "brandName": "Acme",
        "amount": "$150.00",
        "portalUrl": "https://portal.example.com",
    },
    "payout_sent": {"brandName": "Acme", "amount": "$150.00"},
    "action_required": {"brandName": "Acme", "portalUrl": "https://portal.example.com"},
    "verification_code": {"brandName": "Acme", "code": "123456"},
    "security_alert": {"brandName": "Acme", "alertMessage": "New login from unknown device"},
}


def builtin_template(notification_type: str, channel: str) -> NotificationTemplate | None:
    """Return the built-in template for the pair, or ``None`` when unknown."""

    subject: str | None = None
    if channel == CHANNEL_SMS:
        content = DEFAULT_SMS_TEMPLATES.get(notification_type)
    elif channel == CHANNEL_EMAIL:
        pair = DEFAULT_EMAIL_TEMPLATES.get(notification_type)
        if pair is None:
            return None
        subject, content = pair
    else:
        return None
    if content is None:
        return None

    variables = extract_variables(content)
    for name in extract_variables(subject):
        if name not in variables:
            variables.append(name)
    return NotificationTemplate(
        id=None,
        tenant_id=None,
        notification_type=notification_type,
        channel=channel,
        subject=subject,
        content=content,
        available_variables=variables,
        is_default=True,
        is_transactional=notification_type in TRANSACTIONAL_NOTIFICATION_TYPES,
    )


def builtin_templates() -> list[NotificationTemplate]:
    templates = []
    for notification_type in DEFAULT_SMS_TEMPLATES:
        for channel in (CHANNEL_SMS, CHANNEL_EMAIL):
            template = builtin_template(notification_type, channel)
            if template is not None:
                templates.append(template)
    return templates


__all__ = [
    "DEFAULT_EMAIL_TEMPLATES",
    "DEFAULT_SMS_TEMPLATES",
    "SAMPLE_DATA",
    "TRANSACTIONAL_NOTIFICATION_TYPES",
    "builtin_template",
    "builtin_templates",
]
