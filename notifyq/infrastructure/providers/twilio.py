"""SMS delivery through the Twilio Messages REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from notifyq.domain.errors import (
    PermanentProviderError,
    RecipientUnsubscribedError,
    TransientProviderError,
)

from .base import ProviderReceipt

logger = logging.getLogger(__name__)

# Twilio error codes for numbers that can never receive the message.
INVALID_RECIPIENT_CODES = frozenset({21211, 21214, 21612, 21614})
UNSUBSCRIBED_RECIPIENT_CODES = frozenset({21610})


def _parse_error(response: httpx.Response) -> tuple[str | None, str]:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return None, text or f"HTTP {response.status_code}"
    if not isinstance(payload, dict):
        return None, str(payload)
    code = payload.get("code")
    message = payload.get("message") or payload.get("detail") or str(payload)
    return (str(code) if code is not None else None), str(message)


class TwilioSmsProvider:
    """Post messages to ``/Accounts/{sid}/Messages.json``."""

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        base_url: str = "https://api.twilio.com/2010-04-01",
        status_callback_url: str | None = None,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not (account_sid and auth_token and from_number):
            raise ValueError("Twilio credentials and sender number are required")
        self.account_sid = account_sid
        self.from_number = from_number
        self.status_callback_url = status_callback_url
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=(account_sid, auth_token),
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def send(
        self, recipient: str, content: str, *, subject: str | None = None
    ) -> ProviderReceipt:
        payload = {"To": recipient, "From": self.from_number, "Body": content}
        if self.status_callback_url:
            payload["StatusCallback"] = self.status_callback_url

        url = f"/Accounts/{self.account_sid}/Messages.json"
        try:
            response = self._client.post(url, data=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Twilio request timed out: %s", exc)
            raise TransientProviderError(f"Twilio timeout: {exc}") from exc
        except httpx.TransportError as exc:
            logger.warning("Twilio connection error: %s", exc)
            raise TransientProviderError(f"Twilio connection error: {exc}") from exc

        if response.status_code >= 400:
            code, detail = _parse_error(response)
            logger.error(
                "Twilio API request failed with status %s: %s (code %s)",
                response.status_code,
                detail,
                code,
            )
            message = f"Twilio HTTP {response.status_code}: {detail}"
            if response.status_code == 429 or response.status_code >= 500:
                raise TransientProviderError(message, code=code)
            code_number = int(code) if code and code.isdigit() else None
            if code_number in UNSUBSCRIBED_RECIPIENT_CODES:
                raise RecipientUnsubscribedError(message, code=code)
            if code_number in INVALID_RECIPIENT_CODES:
                raise PermanentProviderError(f"Invalid recipient: {detail}", code=code)
            raise PermanentProviderError(message, code=code)

        data: dict[str, Any] = response.json()
        return ProviderReceipt(
            provider=self.name, provider_message_id=data.get("sid"), raw=data
        )


__all__ = [
    "INVALID_RECIPIENT_CODES",
    "UNSUBSCRIBED_RECIPIENT_CODES",
    "TwilioSmsProvider",
]
