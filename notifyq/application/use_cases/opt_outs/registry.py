"""Use cases for the per-tenant opt-out registry."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from notifyq.domain.entities import (
    OPT_OUT_METHOD_ADMIN,
    OPT_OUT_METHOD_STOP_KEYWORD,
    OptOut,
)
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.repositories import OptOutRepository
from notifyq.utils import now_utc

from .normalize import normalize_recipient

logger = logging.getLogger(__name__)

STOP_KEYWORDS = frozenset(
    {"STOP", "STOPALL", "UNSUBSCRIBE", "CANCEL", "END", "QUIT", "OPTOUT", "REVOKE"}
)


def is_stop_keyword(body: str | None) -> bool:
    """Return ``True`` when an inbound reply is a carrier stop keyword."""

    if not body:
        return False
    return body.strip().strip(".!").upper() in STOP_KEYWORDS


def _registry_key(recipient: str) -> str | None:
    try:
        return normalize_recipient(recipient)
    except ValidationError:
        return None


def is_opted_out(session: Session, tenant_id: str, recipient: str) -> bool:
    """Return whether ``recipient`` withdrew consent for ``tenant_id``."""

    key = _registry_key(recipient)
    if key is None:
        return False
    return OptOutRepository(session).exists(tenant_id, key)


def record_opt_out(
    session: Session,
    tenant_id: str,
    recipient: str,
    *,
    method: str = OPT_OUT_METHOD_ADMIN,
    raw_message: str | None = None,
) -> OptOut:
    """Suppress ``recipient`` for ``tenant_id``; repeated calls are no-ops."""

    if not tenant_id:
        raise ValidationError("tenant_id is required")
    opt_out, created = OptOutRepository(session).add_if_absent(
        OptOut(
            id=None,
            tenant_id=tenant_id,
            recipient=normalize_recipient(recipient),
            method=method,
            raw_message=raw_message,
            created_at=now_utc(),
        )
    )
    if created:
        logger.info(
            "Recipient opted out tenant=%s method=%s id=%s",
            tenant_id,
            method,
            opt_out.id,
        )
    return opt_out


def on_stop_keyword(
    session: Session, tenant_id: str, recipient: str, raw_message: str | None
) -> OptOut | None:
    """Register an opt-out when an inbound reply is a stop keyword."""

    if not is_stop_keyword(raw_message):
        return None
    return record_opt_out(
        session,
        tenant_id,
        recipient,
        method=OPT_OUT_METHOD_STOP_KEYWORD,
        raw_message=raw_message,
    )


def list_opt_outs(session: Session, tenant_id: str, *, limit: int | None = 100) -> list[OptOut]:
    return list(OptOutRepository(session).list_for_tenant(tenant_id, limit=limit))


__all__ = [
    "STOP_KEYWORDS",
    "is_opted_out",
    "is_stop_keyword",
    "list_opt_outs",
    "on_stop_keyword",
    "record_opt_out",
]
