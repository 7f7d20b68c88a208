"""Canonical forms for recipient addresses."""

from __future__ import annotations

import re

from notifyq.domain.entities import CHANNEL_EMAIL, CHANNEL_SMS, CHANNELS
from notifyq.domain.errors import ValidationError

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_phone(address: str) -> str:
    """Return ``address`` in E.164 form or raise ``ValidationError``."""

    candidate = _PHONE_SEPARATORS.sub("", (address or "").strip())
    if not E164_PATTERN.match(candidate):
        raise ValidationError(f"Invalid E.164 phone number: {address!r}")
    return candidate


def normalize_email(address: str) -> str:
    """Return a lower-cased email address or raise ``ValidationError``."""

    candidate = (address or "").strip().lower()
    if not EMAIL_PATTERN.match(candidate):
        raise ValidationError(f"Invalid email address: {address!r}")
    return candidate


def infer_channel(address: str) -> str:
    return CHANNEL_EMAIL if "@" in (address or "") else CHANNEL_SMS


def normalize_recipient(address: str, channel: str | None = None) -> str:
    """Normalize ``address`` for ``channel``, inferring it when omitted.

    Phones are keyed in E.164 and emails lower-cased so that opt-outs and
    per-recipient ordering match regardless of how producers format them.
    """

    resolved_channel = channel or infer_channel(address)
    if resolved_channel not in CHANNELS:
        raise ValidationError(f"Unsupported channel: {resolved_channel!r}")
    if resolved_channel == CHANNEL_EMAIL:
        return normalize_email(address)
    return normalize_phone(address)


__all__ = [
    "E164_PATTERN",
    "EMAIL_PATTERN",
    "infer_channel",
    "normalize_email",
    "normalize_phone",
    "normalize_recipient",
]
