"""Persistence layer for the delivery queue.

Every state change is written as a conditional ``UPDATE``: claims only
succeed on rows that are still queued and due, and result writes only
succeed while the row is ``processing`` under the caller's claim token.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session, aliased

from notifyq.domain.entities import (
    CLAIMABLE_STATUSES,
    MESSAGE_STATUS_DELIVERED,
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_PROCESSING,
    MESSAGE_STATUS_SCHEDULED,
    MESSAGE_STATUS_SENT,
    MESSAGE_STATUS_SKIPPED,
    MESSAGE_STATUSES,
    SKIP_REASON_CANCELLED,
    Message,
    Recipient,
)
from notifyq.infrastructure.models import MessageModel
from notifyq.utils import ensure_naive_utc, ensure_utc


class MessageRepository:
    """Provide queue operations for :class:`Message` records."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, message: Message) -> Message:
        model = MessageModel()
        self._apply_entity_to_model(model, message)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def get(self, message_id: int, *, tenant_id: str | None = None) -> Message | None:
        query = self.session.query(MessageModel).filter(MessageModel.id == message_id)
        if tenant_id is not None:
            query = query.filter(MessageModel.tenant_id == tenant_id)
        model = query.first()
        return self._to_entity(model) if model else None

    def list(
        self,
        tenant_id: str,
        *,
        statuses: Sequence[str] | None = None,
        notification_type: str | None = None,
        recipient_address: str | None = None,
        skip: int = 0,
        limit: int | None = 50,
    ) -> Sequence[Message]:
        query = self.session.query(MessageModel).filter(
            MessageModel.tenant_id == tenant_id
        )
        if statuses:
            query = query.filter(MessageModel.status.in_(list(statuses)))
        if notification_type:
            query = query.filter(MessageModel.notification_type == notification_type)
        if recipient_address:
            query = query.filter(MessageModel.recipient_address == recipient_address)
        query = query.order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def count_by_status(self, tenant_id: str) -> dict[str, int]:
        rows = (
            self.session.query(MessageModel.status, func.count(MessageModel.id))
            .filter(MessageModel.tenant_id == tenant_id)
            .group_by(MessageModel.status)
            .all()
        )
        counts = {status: 0 for status in MESSAGE_STATUSES}
        for status, total in rows:
            counts[status] = int(total)
        return counts

    def count_sent_since(self, tenant_id: str, since: datetime) -> int:
        total = (
            self.session.query(func.count(MessageModel.id))
            .filter(
                MessageModel.tenant_id == tenant_id,
                MessageModel.status.in_([MESSAGE_STATUS_SENT, MESSAGE_STATUS_DELIVERED]),
                MessageModel.sent_at >= ensure_naive_utc(since),
            )
            .scalar()
        )
        return int(total or 0)

    def count_failed_since(self, tenant_id: str, since: datetime) -> int:
        total = (
            self.session.query(func.count(MessageModel.id))
            .filter(
                MessageModel.tenant_id == tenant_id,
                MessageModel.status == MESSAGE_STATUS_FAILED,
                MessageModel.updated_at >= ensure_naive_utc(since),
            )
            .scalar()
        )
        return int(total or 0)

    # -- claiming -----------------------------------------------------------------

    def claim_due(self, *, claim_token: str, now: datetime, limit: int) -> list[Message]:
        """Atomically move up to ``limit`` due messages to ``processing``.

        Candidates are visited in (``scheduled_at``, ``id``) order. A message is
        skipped while a queued message for the same recipient precedes it in
        (``sequence_at``, ``id``) order or while another claimant is processing
        one for that recipient. Retries keep their ``sequence_at``, so a message
        waiting for a retry holds back later messages to the same recipient.
        """

        now_naive = ensure_naive_utc(now)
        due = and_(
            MessageModel.status.in_(CLAIMABLE_STATUSES),
            MessageModel.scheduled_at <= now_naive,
            MessageModel.attempts < MessageModel.max_attempts,
        )
        blocked = self._recipient_blocked(claim_token)

        candidate_ids = [
            message_id
            for (message_id,) in self.session.query(MessageModel.id)
            .filter(due, ~blocked)
            .order_by(MessageModel.scheduled_at.asc(), MessageModel.id.asc())
            .limit(limit)
            .all()
        ]

        claimed: list[int] = []
        for message_id in candidate_ids:
            statement = (
                update(MessageModel)
                .where(MessageModel.id == message_id, due, ~blocked)
                .values(
                    status=MESSAGE_STATUS_PROCESSING,
                    claim_token=claim_token,
                    claimed_at=now_naive,
                    updated_at=now_naive,
                )
                .execution_options(synchronize_session=False)
            )
            if self.session.execute(statement).rowcount == 1:
                claimed.append(message_id)
        self.session.commit()

        if not claimed:
            return []
        models = (
            self.session.query(MessageModel)
            .filter(MessageModel.id.in_(claimed))
            .filter(MessageModel.claim_token == claim_token)
            .order_by(MessageModel.scheduled_at.asc(), MessageModel.id.asc())
            .all()
        )
        return [self._to_entity(model) for model in models]

    @staticmethod
    def _recipient_blocked(claim_token: str):
        other = aliased(MessageModel)
        return (
            select(other.id)
            .where(
                other.id != MessageModel.id,
                other.tenant_id == MessageModel.tenant_id,
                other.channel == MessageModel.channel,
                other.recipient_address == MessageModel.recipient_address,
                or_(
                    and_(
                        other.status == MESSAGE_STATUS_PROCESSING,
                        or_(
                            other.claim_token.is_(None),
                            other.claim_token != claim_token,
                        ),
                    ),
                    and_(
                        other.status.in_(CLAIMABLE_STATUSES),
                        other.attempts < other.max_attempts,
                        or_(
                            other.sequence_at < MessageModel.sequence_at,
                            and_(
                                other.sequence_at == MessageModel.sequence_at,
                                other.id < MessageModel.id,
                            ),
                        ),
                    ),
                ),
            )
            .correlate(MessageModel)
            .exists()
        )

    def reset_stale_claims(self, *, older_than: datetime, now: datetime) -> int:
        """Return abandoned ``processing`` rows to the queue."""

        now_naive = ensure_naive_utc(now)
        statement = (
            update(MessageModel)
            .where(
                MessageModel.status == MESSAGE_STATUS_PROCESSING,
                MessageModel.claimed_at < ensure_naive_utc(older_than),
            )
            .values(
                status=MESSAGE_STATUS_SCHEDULED,
                claim_token=None,
                claimed_at=None,
                updated_at=now_naive,
            )
            .execution_options(synchronize_session=False)
        )
        count = self.session.execute(statement).rowcount
        self.session.commit()
        return int(count or 0)

    def refresh_claim(self, message_id: int, *, claim_token: str, now: datetime) -> bool:
        """Confirm ``claim_token`` still owns the row and restart its stale timer."""

        now_naive = ensure_naive_utc(now)
        statement = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.status == MESSAGE_STATUS_PROCESSING,
                MessageModel.claim_token == claim_token,
            )
            .values(claimed_at=now_naive, updated_at=now_naive)
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated

    # -- results of a claimed attempt ----------------------------------------------

    def mark_sent(
        self,
        message_id: int,
        *,
        claim_token: str,
        provider_message_id: str | None,
        attempts: int,
        now: datetime,
    ) -> bool:
        now_naive = ensure_naive_utc(now)
        return self._finish_claim(
            message_id,
            claim_token,
            status=MESSAGE_STATUS_SENT,
            attempts=attempts,
            last_attempt_at=now_naive,
            sent_at=now_naive,
            provider_message_id=provider_message_id,
            error_message=None,
            updated_at=now_naive,
        )

    def mark_skipped(
        self, message_id: int, *, claim_token: str, reason: str, now: datetime
    ) -> bool:
        return self._finish_claim(
            message_id,
            claim_token,
            status=MESSAGE_STATUS_SKIPPED,
            skip_reason=reason,
            updated_at=ensure_naive_utc(now),
        )

    def defer(
        self, message_id: int, *, claim_token: str, until: datetime, now: datetime
    ) -> bool:
        """Requeue at ``until``, behind the recipient's messages queued before then."""

        return self._finish_claim(
            message_id,
            claim_token,
            status=MESSAGE_STATUS_SCHEDULED,
            scheduled_at=ensure_naive_utc(until),
            sequence_at=ensure_naive_utc(until),
            updated_at=ensure_naive_utc(now),
        )

    def schedule_retry(
        self,
        message_id: int,
        *,
        claim_token: str,
        attempts: int,
        error_message: str,
        retry_at: datetime,
        now: datetime,
    ) -> bool:
        now_naive = ensure_naive_utc(now)
        return self._finish_claim(
            message_id,
            claim_token,
            status=MESSAGE_STATUS_PENDING,
            attempts=attempts,
            last_attempt_at=now_naive,
            scheduled_at=ensure_naive_utc(retry_at),
            error_message=error_message,
            updated_at=now_naive,
        )

    def mark_failed(
        self,
        message_id: int,
        *,
        claim_token: str,
        attempts: int,
        error_message: str,
        now: datetime,
    ) -> bool:
        now_naive = ensure_naive_utc(now)
        return self._finish_claim(
            message_id,
            claim_token,
            status=MESSAGE_STATUS_FAILED,
            attempts=attempts,
            last_attempt_at=now_naive,
            error_message=error_message,
            updated_at=now_naive,
        )

    def mark_cancelled_after_attempt(
        self,
        message_id: int,
        *,
        claim_token: str,
        attempts: int,
        error_message: str | None,
        now: datetime,
    ) -> bool:
        now_naive = ensure_naive_utc(now)
        return self._finish_claim(
            message_id,
            claim_token,
            status=MESSAGE_STATUS_SKIPPED,
            skip_reason=SKIP_REASON_CANCELLED,
            attempts=attempts,
            last_attempt_at=now_naive,
            error_message=error_message,
            updated_at=now_naive,
        )

    def _finish_claim(self, message_id: int, claim_token: str, **values: Any) -> bool:
        statement = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.status == MESSAGE_STATUS_PROCESSING,
                MessageModel.claim_token == claim_token,
            )
            .values(claim_token=None, claimed_at=None, **values)
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated

    def is_cancel_requested(self, message_id: int) -> bool:
        value = (
            self.session.query(MessageModel.cancel_requested_at)
            .filter(MessageModel.id == message_id)
            .scalar()
        )
        return value is not None

    # -- external transitions -------------------------------------------------------

    def cancel_queued(self, tenant_id: str, message_id: int, *, now: datetime) -> bool:
        now_naive = ensure_naive_utc(now)
        statement = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.tenant_id == tenant_id,
                MessageModel.status.in_(CLAIMABLE_STATUSES),
            )
            .values(
                status=MESSAGE_STATUS_SKIPPED,
                skip_reason=SKIP_REASON_CANCELLED,
                cancel_requested_at=now_naive,
                updated_at=now_naive,
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated

    def request_cancel(self, tenant_id: str, message_id: int, *, now: datetime) -> bool:
        now_naive = ensure_naive_utc(now)
        statement = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.tenant_id == tenant_id,
                MessageModel.status == MESSAGE_STATUS_PROCESSING,
            )
            .values(
                cancel_requested_at=func.coalesce(
                    MessageModel.cancel_requested_at, now_naive
                ),
                updated_at=now_naive,
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated

    def mark_delivered(
        self, provider_message_id: str, *, delivered_at: datetime, now: datetime
    ) -> bool:
        statement = (
            update(MessageModel)
            .where(
                MessageModel.provider_message_id == provider_message_id,
                MessageModel.status == MESSAGE_STATUS_SENT,
            )
            .values(
                status=MESSAGE_STATUS_DELIVERED,
                delivered_at=ensure_naive_utc(delivered_at),
                updated_at=ensure_naive_utc(now),
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated

    def has_provider_message_id(self, provider_message_id: str) -> bool:
        found = (
            self.session.query(MessageModel.id)
            .filter(MessageModel.provider_message_id == provider_message_id)
            .first()
        )
        return found is not None

    def record_delivery_error(
        self, provider_message_id: str, *, error_message: str, now: datetime
    ) -> bool:
        statement = (
            update(MessageModel)
            .where(
                MessageModel.provider_message_id == provider_message_id,
                MessageModel.status == MESSAGE_STATUS_SENT,
            )
            .values(error_message=error_message, updated_at=ensure_naive_utc(now))
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(statement).rowcount == 1
        self.session.commit()
        return updated

    @staticmethod
    def _apply_entity_to_model(model: MessageModel, message: Message) -> None:
        model.tenant_id = message.tenant_id
        model.channel = message.channel
        model.recipient_address = message.recipient.address
        model.recipient_type = message.recipient.type
        model.recipient_id = message.recipient.id
        model.recipient_name = message.recipient.name
        model.notification_type = message.notification_type
        model.subject = message.subject
        model.content = message.content
        model.character_count = message.character_count
        model.segment_count = message.segment_count
        model.is_transactional = message.is_transactional
        model.status = message.status
        model.scheduled_at = ensure_naive_utc(message.scheduled_at)
        model.sequence_at = ensure_naive_utc(
            message.sequence_at or message.scheduled_at or message.created_at
        )
        model.attempts = message.attempts
        model.max_attempts = message.max_attempts
        model.created_at = ensure_naive_utc(message.created_at)
        model.updated_at = ensure_naive_utc(message.updated_at or message.created_at)

    @staticmethod
    def _to_entity(model: MessageModel) -> Message:
        return Message(
            id=model.id,
            tenant_id=model.tenant_id,
            channel=model.channel,
            recipient=Recipient(
                address=model.recipient_address,
                type=model.recipient_type,
                id=model.recipient_id,
                name=model.recipient_name,
            ),
            notification_type=model.notification_type,
            subject=model.subject,
            content=model.content,
            character_count=model.character_count,
            segment_count=model.segment_count,
            is_transactional=bool(model.is_transactional),
            status=model.status,
            scheduled_at=ensure_utc(model.scheduled_at),
            sequence_at=ensure_utc(model.sequence_at),
            attempts=model.attempts,
            max_attempts=model.max_attempts,
            claim_token=model.claim_token,
            claimed_at=ensure_utc(model.claimed_at),
            last_attempt_at=ensure_utc(model.last_attempt_at),
            sent_at=ensure_utc(model.sent_at),
            delivered_at=ensure_utc(model.delivered_at),
            provider_message_id=model.provider_message_id,
            skip_reason=model.skip_reason,
            error_message=model.error_message,
            cancel_requested_at=ensure_utc(model.cancel_requested_at),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )


__all__ = ["MessageRepository"]
