"""Email delivery through the SendGrid REST API."""

from __future__ import annotations

import html
import json
import logging
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from notifyq.domain.errors import PermanentProviderError, TransientProviderError

from .base import ProviderReceipt

logger = logging.getLogger(__name__)


def _extract_sendgrid_error_details(body: Any) -> str | None:
    """Return a human readable description for a SendGrid error payload."""

    if body in (None, ""):
        return None

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return body
    else:
        parsed = body

    if isinstance(parsed, dict):
        errors = parsed.get("errors")
        if isinstance(errors, list):
            messages: list[str] = []
            for item in errors:
                if not isinstance(item, dict):
                    continue
                message = item.get("message")
                field = item.get("field")
                if message and field:
                    messages.append(f"{message} (field: {field})")
                elif message:
                    messages.append(str(message))
            if messages:
                return "; ".join(messages)
        try:
            return json.dumps(parsed)
        except (TypeError, ValueError):
            return None

    if isinstance(parsed, list):
        return "; ".join(str(item) for item in parsed)

    return None


def _is_retryable_status(status_code: int | None) -> bool:
    return status_code is None or status_code == 429 or status_code >= 500


def _render_html(content: str) -> str:
    paragraphs = [part for part in content.split("\n\n") if part.strip()]
    return "".join(
        f"<p>{html.escape(part).replace(chr(10), '<br>')}</p>" for part in paragraphs
    )


class SendGridEmailProvider:
    """Send plain text notifications as SendGrid mail."""

    name = "sendgrid"

    def __init__(self, api_key: str, sender: str, *, client: Any | None = None) -> None:
        if not (api_key and sender):
            raise ValueError("SendGrid API key and sender are required")
        self.sender = sender
        self._client = client or SendGridAPIClient(api_key)

    def send(
        self, recipient: str, content: str, *, subject: str | None = None
    ) -> ProviderReceipt:
        message = Mail(
            from_email=self.sender,
            to_emails=recipient,
            subject=subject or "",
            plain_text_content=content,
            html_content=_render_html(content),
        )

        try:
            response = self._client.send(message)
        except Exception as exc:
            # The SDK raises HTTPError subclasses carrying ``status_code`` and
            # ``body``; transport failures carry neither.
            status_code = getattr(exc, "status_code", None)
            details = _extract_sendgrid_error_details(getattr(exc, "body", None))
            if status_code:
                logger.error(
                    "SendGrid API request failed with status %s: %s", status_code, details
                )
            else:
                logger.warning("SendGrid request failed: %s", exc)
            text = f"SendGrid error {status_code or exc.__class__.__name__}: {details or exc}"
            if _is_retryable_status(status_code):
                raise TransientProviderError(text) from exc
            raise PermanentProviderError(
                text, code=str(status_code) if status_code else None
            ) from exc

        status_code = getattr(response, "status_code", None)
        if not isinstance(status_code, int) or not 200 <= status_code < 300:
            details = _extract_sendgrid_error_details(getattr(response, "body", None))
            logger.error("SendGrid API responded with status %s: %s", status_code, details)
            text = f"SendGrid responded with status {status_code}: {details}"
            if _is_retryable_status(status_code if isinstance(status_code, int) else None):
                raise TransientProviderError(text)
            raise PermanentProviderError(text, code=str(status_code))

        headers = getattr(response, "headers", None) or {}
        provider_message_id = headers.get("X-Message-Id") or headers.get("x-message-id")
        return ProviderReceipt(
            provider=self.name,
            provider_message_id=provider_message_id,
            raw={"status_code": status_code},
        )


__all__ = ["SendGridEmailProvider"]
