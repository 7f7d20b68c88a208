"""Outbound providers keyed by channel."""

from __future__ import annotations

import logging

from notifyq.config import Settings
from notifyq.domain.entities import CHANNEL_EMAIL, CHANNEL_SMS

from .base import DeliveryProvider, ProviderReceipt
from .sendgrid_email import SendGridEmailProvider
from .twilio import TwilioSmsProvider

logger = logging.getLogger(__name__)


def build_providers(settings: Settings) -> dict[str, DeliveryProvider]:
    """Instantiate the providers whose credentials are configured."""

    providers: dict[str, DeliveryProvider] = {}
    if settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number:
        providers[CHANNEL_SMS] = TwilioSmsProvider(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_from_number,
            base_url=settings.twilio_api_base_url,
            status_callback_url=settings.twilio_status_callback_url,
            timeout=settings.provider_timeout_seconds,
        )
    else:
        logger.info("Twilio configuration incomplete; SMS delivery disabled")

    if settings.sendgrid_api_key and settings.sendgrid_sender:
        providers[CHANNEL_EMAIL] = SendGridEmailProvider(
            settings.sendgrid_api_key, settings.sendgrid_sender
        )
    else:
        logger.info("SendGrid configuration incomplete; email delivery disabled")
    return providers


def close_providers(providers: dict[str, DeliveryProvider]) -> None:
    """Release the HTTP clients held by ``providers``."""

    for channel, provider in providers.items():
        close = getattr(provider, "close", None)
        if close is None:
            continue
        try:
            close()
        except Exception:
            logger.exception("Failed to close %s provider", channel)


__all__ = [
    "DeliveryProvider",
    "ProviderReceipt",
    "SendGridEmailProvider",
    "TwilioSmsProvider",
    "build_providers",
    "close_providers",
]
