"""Tests for the delivery queue state machine."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import BASE_TIME, TENANT, FakeProvider
from notifyq.application.delivery import compute_backoff, process_message
from notifyq.application.use_cases.channel_settings import update_channel_settings
from notifyq.application.use_cases.messages import (
    CANCEL_RESULT_CANCELLED,
    CANCEL_RESULT_NOT_CANCELLABLE,
    CANCEL_RESULT_NOT_FOUND,
    CANCEL_RESULT_REQUESTED,
    apply_pending_delivery_report,
    cancel_message,
    enqueue,
    get_queue_stats,
    list_messages,
    on_delivery_status,
    purge_delivery_reports,
    reset_stale_claims,
)
from notifyq.domain.entities import (
    MESSAGE_STATUS_DELIVERED,
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_PROCESSING,
    MESSAGE_STATUS_SCHEDULED,
    MESSAGE_STATUS_SENT,
    MESSAGE_STATUS_SKIPPED,
    SKIP_REASON_CANCELLED,
    SKIP_REASON_CHANNEL_DISABLED,
    Recipient,
)
from notifyq.domain.errors import (
    PermanentProviderError,
    TransientProviderError,
    ValidationError,
)
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.infrastructure.worker import DeliveryWorker
from notifyq.utils import now_utc


def _get(session, message_id):
    session.expire_all()
    return MessageRepository(session).get(message_id)


def _worker(session_factory, provider, worker_id="w1"):
    return DeliveryWorker(worker_id, {"sms": provider}, session_factory=session_factory)


def test_enqueue_renders_and_queues_pending(session, recipient, variables):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    assert message.id is not None
    assert message.status == MESSAGE_STATUS_PENDING
    assert message.scheduled_at == BASE_TIME
    assert message.attempts == 0
    assert message.max_attempts == 3
    assert message.content.startswith("Acme: Your order #1001 has shipped!")
    assert message.segment_count == 1
    assert message.character_count == len(message.content)


def test_enqueue_future_message_is_scheduled(session, recipient, variables):
    later = BASE_TIME + timedelta(hours=2)

    message = enqueue(
        session, TENANT, recipient, "order_shipped", variables, scheduled_at=later, now=BASE_TIME
    )

    assert message.status == MESSAGE_STATUS_SCHEDULED
    assert message.scheduled_at == later


def test_enqueue_normalizes_recipient(session, variables):
    message = enqueue(
        session,
        TENANT,
        Recipient(address="+1 (415) 555-0101"),
        "order_shipped",
        variables,
        now=BASE_TIME,
    )

    assert message.recipient.address == "+14155550101"


@pytest.mark.parametrize(
    ("recipient", "channel", "notification_type", "variables"),
    [
        (Recipient(address="4155550101"), "sms", "order_shipped", None),
        (Recipient(address="ana@example"), "email", "order_shipped", None),
        (Recipient(address="+14155550101"), "sms", "unknown_type", {}),
        (Recipient(address="+14155550101"), "fax", "order_shipped", None),
        (Recipient(address="+14155550101", type="robot"), "sms", "order_shipped", None),
        (Recipient(address="+14155550101"), "sms", "order_shipped", {"brandName": "Acme"}),
    ],
)
def test_enqueue_rejects_invalid_input(session, recipient, channel, notification_type, variables):
    full = {"brandName": "Acme", "orderNumber": "1", "trackingUrl": "u"}
    with pytest.raises(ValidationError):
        enqueue(
            session,
            TENANT,
            recipient,
            notification_type,
            full if variables is None else variables,
            channel=channel,
            now=BASE_TIME,
        )
    assert list_messages(session, TENANT) == []


def test_enqueue_email_uses_subject(session, variables):
    message = enqueue(
        session,
        TENANT,
        Recipient(address="Ana@Example.com"),
        "order_shipped",
        variables,
        channel="email",
        now=BASE_TIME,
    )

    assert message.recipient.address == "ana@example.com"
    assert message.subject == "Your Acme order #1001 has shipped"
    assert message.segment_count == 0


def test_successful_send(session, session_factory, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    assert _worker(session_factory, fake_provider).run_once(now=BASE_TIME) == 1

    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_SENT
    assert stored.attempts == 1
    assert stored.provider_message_id == "fake-1"
    assert stored.sent_at == BASE_TIME
    assert stored.last_attempt_at == BASE_TIME
    assert stored.claim_token is None
    assert fake_provider.sent == [(recipient.address, message.content, None)]


def test_message_is_not_claimed_before_due(session, session_factory, recipient, variables, fake_provider):
    enqueue(
        session,
        TENANT,
        recipient,
        "order_shipped",
        variables,
        scheduled_at=BASE_TIME + timedelta(minutes=5),
        now=BASE_TIME,
    )

    assert _worker(session_factory, fake_provider).run_once(now=BASE_TIME) == 0
    assert _worker(session_factory, fake_provider).run_once(
        now=BASE_TIME + timedelta(minutes=5)
    ) == 1


def test_transient_errors_exhaust_attempts(session, session_factory, recipient, variables):
    provider = FakeProvider(
        TransientProviderError("timeout"),
        TransientProviderError("timeout"),
        TransientProviderError("timeout"),
    )
    worker = _worker(session_factory, provider)
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    assert worker.run_once(now=BASE_TIME) == 1
    first = _get(session, message.id)
    assert first.status == MESSAGE_STATUS_PENDING
    assert first.attempts == 1
    assert first.scheduled_at == BASE_TIME + timedelta(seconds=60)
    assert first.error_message == "timeout"

    # Not due yet.
    assert worker.run_once(now=BASE_TIME + timedelta(seconds=30)) == 0

    second_try = BASE_TIME + timedelta(seconds=61)
    assert worker.run_once(now=second_try) == 1
    second = _get(session, message.id)
    assert second.status == MESSAGE_STATUS_PENDING
    assert second.attempts == 2
    assert second.scheduled_at == second_try + timedelta(seconds=120)

    third_try = second_try + timedelta(seconds=121)
    assert worker.run_once(now=third_try) == 1
    final = _get(session, message.id)
    assert final.status == MESSAGE_STATUS_FAILED
    assert final.attempts == 3
    assert final.attempts <= final.max_attempts
    assert final.attempts_exhausted()
    assert final.is_terminal()

    assert worker.run_once(now=third_try + timedelta(days=1)) == 0
    assert len(provider.sent) == 3


def test_permanent_error_fails_immediately(session, session_factory, recipient, variables):
    provider = FakeProvider(PermanentProviderError("invalid number", code="21211"))
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    _worker(session_factory, provider).run_once(now=BASE_TIME)

    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_FAILED
    assert stored.attempts == 1
    assert stored.error_message == "invalid number"


def test_unexpected_provider_exception_is_retried(session, session_factory, recipient, variables):
    provider = FakeProvider(RuntimeError("boom"))
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    _worker(session_factory, provider).run_once(now=BASE_TIME)

    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_PENDING
    assert stored.attempts == 1
    assert "boom" in stored.error_message


def test_missing_provider_fails_message(session, session_factory, recipient, variables):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    DeliveryWorker("w1", {}, session_factory=session_factory).run_once(now=BASE_TIME)

    assert _get(session, message.id).status == MESSAGE_STATUS_FAILED


def test_delivery_callback_round_trip_and_replay(
    session, session_factory, recipient, variables, fake_provider
):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    _worker(session_factory, fake_provider).run_once(now=BASE_TIME)
    delivered_at = BASE_TIME + timedelta(seconds=5)

    assert on_delivery_status(session, "fake-1", "delivered", delivered_at) is True
    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_DELIVERED
    assert stored.delivered_at == delivered_at

    assert on_delivery_status(session, "fake-1", "delivered", delivered_at) is False
    assert on_delivery_status(session, "unknown-sid", "delivered") is False
    replayed = _get(session, message.id)
    assert replayed.status == MESSAGE_STATUS_DELIVERED
    assert replayed.delivered_at == delivered_at


def test_delivery_report_arriving_before_send_is_recorded(
    session, session_factory, recipient, variables
):
    class ReportingProvider(FakeProvider):
        """Delivers the status callback before the worker records the send."""

        def send(self, recipient, content, *, subject=None):
            receipt = super().send(recipient, content, subject=subject)
            callback_session = session_factory()
            try:
                self.callback_result = on_delivery_status(
                    callback_session, receipt.provider_message_id, "delivered", BASE_TIME
                )
            finally:
                callback_session.close()
            return receipt

    provider = ReportingProvider()
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    assert _worker(session_factory, provider).run_once(now=BASE_TIME) == 1

    assert provider.callback_result is False
    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_DELIVERED
    assert stored.delivered_at == BASE_TIME
    # The held report is consumed once applied.
    assert apply_pending_delivery_report(session, "fake-1") is False


def test_unmatched_delivery_reports_are_purged(session):
    assert on_delivery_status(session, "SM-never-sent", "delivered") is False

    assert purge_delivery_reports(session, BASE_TIME) == 0
    assert purge_delivery_reports(session, now_utc() + timedelta(minutes=1)) == 1
    assert apply_pending_delivery_report(session, "SM-never-sent") is False


def test_delivery_callback_ignores_non_sent_messages(session, recipient, variables):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    assert on_delivery_status(session, "fake-1", "delivered") is False
    assert _get(session, message.id).status == MESSAGE_STATUS_PENDING


def test_undelivered_report_keeps_message_sent(
    session, session_factory, recipient, variables, fake_provider
):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    _worker(session_factory, fake_provider).run_once(now=BASE_TIME)

    assert on_delivery_status(session, "fake-1", "undelivered", error_code="30003") is True

    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_SENT
    assert "30003" in stored.error_message


def test_claim_is_exclusive_to_its_token(session, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    repository = MessageRepository(session)

    claimed = repository.claim_due(claim_token="w1:a", now=BASE_TIME, limit=10)
    assert [item.id for item in claimed] == [message.id]
    assert repository.claim_due(claim_token="w2:b", now=BASE_TIME, limit=10) == []

    # A writer holding another token cannot record a result.
    assert not repository.mark_sent(
        message.id, claim_token="w2:b", provider_message_id="x", attempts=1, now=BASE_TIME
    )
    assert _get(session, message.id).status == MESSAGE_STATUS_PROCESSING

    assert process_message(
        session, claimed[0], providers={"sms": fake_provider}, now=BASE_TIME
    ) == "sent"
    assert _get(session, message.id).status == MESSAGE_STATUS_SENT


def test_stale_claim_reset_invalidates_old_token(session, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    repository = MessageRepository(session)
    stale = repository.claim_due(claim_token="w1:old", now=BASE_TIME, limit=10)[0]

    assert reset_stale_claims(session, BASE_TIME + timedelta(minutes=5)) == 0
    assert reset_stale_claims(session, BASE_TIME + timedelta(minutes=11)) == 1
    assert _get(session, message.id).status == MESSAGE_STATUS_SCHEDULED

    later = BASE_TIME + timedelta(minutes=12)
    fresh = repository.claim_due(claim_token="w2:new", now=later, limit=10)[0]

    assert process_message(session, stale, providers={"sms": fake_provider}, now=later) == "claim_lost"
    assert _get(session, message.id).claim_token == "w2:new"
    assert process_message(session, fresh, providers={"sms": fake_provider}, now=later) == "sent"
    assert _get(session, message.id).attempts == 1
    assert len(fake_provider.sent) == 1


def test_worker_holding_a_reset_claim_does_not_resend(session, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    repository = MessageRepository(session)
    stale = repository.claim_due(claim_token="w1:old", now=BASE_TIME, limit=10)[0]
    later = BASE_TIME + timedelta(minutes=12)
    reset_stale_claims(session, later)
    fresh = repository.claim_due(claim_token="w2:new", now=later, limit=10)[0]

    assert process_message(session, fresh, providers={"sms": fake_provider}, now=later) == "sent"
    assert process_message(session, stale, providers={"sms": fake_provider}, now=later) == "claim_lost"

    assert len(fake_provider.sent) == 1
    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_SENT
    assert stored.provider_message_id == "fake-1"


def test_sending_refreshes_the_claim_timestamp(session, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    repository = MessageRepository(session)
    claimed = repository.claim_due(claim_token="w1:a", now=BASE_TIME, limit=1)[0]
    later = BASE_TIME + timedelta(minutes=9)

    assert repository.refresh_claim(message.id, claim_token="w1:a", now=later)
    assert not repository.refresh_claim(message.id, claim_token="w2:b", now=later)
    # The refreshed claim is no longer stale ten minutes after it was taken.
    assert reset_stale_claims(session, BASE_TIME + timedelta(minutes=11)) == 0
    assert process_message(session, claimed, providers={"sms": fake_provider}, now=later) == "sent"


def test_messages_for_same_recipient_are_sent_in_order(session, recipient, variables):
    first = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    second = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    other = enqueue(
        session,
        TENANT,
        Recipient(address="+14155550199"),
        "order_shipped",
        variables,
        now=BASE_TIME,
    )
    repository = MessageRepository(session)

    # Only the head message of each recipient is claimable.
    batch = repository.claim_due(claim_token="w1:a", now=BASE_TIME, limit=10)
    assert [item.id for item in batch] == [first.id, other.id]

    # Another worker cannot take the same recipient while the first one is processing.
    assert repository.claim_due(claim_token="w2:b", now=BASE_TIME, limit=10) == []
    assert _get(session, second.id).status == MESSAGE_STATUS_PENDING


def test_earlier_queued_message_blocks_later_one(session, recipient, variables, fake_provider):
    first = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    second = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    repository = MessageRepository(session)

    claimed = repository.claim_due(claim_token="w1:a", now=BASE_TIME, limit=1)
    assert [item.id for item in claimed] == [first.id]
    # The second message waits until the first one leaves processing.
    assert repository.claim_due(claim_token="w2:b", now=BASE_TIME, limit=10) == []

    process_message(session, claimed[0], providers={"sms": fake_provider}, now=BASE_TIME)
    next_batch = repository.claim_due(claim_token="w2:b", now=BASE_TIME, limit=10)
    assert [item.id for item in next_batch] == [second.id]


def test_retry_holds_back_later_messages_for_the_recipient(
    session, session_factory, recipient, variables
):
    provider = FakeProvider(TransientProviderError("busy"))
    first = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    second = enqueue(
        session,
        TENANT,
        recipient,
        "order_shipped",
        variables,
        scheduled_at=BASE_TIME + timedelta(seconds=1),
        now=BASE_TIME,
    )
    other = enqueue(
        session,
        TENANT,
        Recipient(address="+14155550199"),
        "order_shipped",
        variables,
        scheduled_at=BASE_TIME + timedelta(seconds=1),
        now=BASE_TIME,
    )
    worker = _worker(session_factory, provider)

    assert worker.run_once(now=BASE_TIME) == 1
    assert _get(session, first.id).status == MESSAGE_STATUS_PENDING

    # The retry is due at BASE_TIME + 60s and keeps its place ahead of the second message.
    assert worker.run_once(now=BASE_TIME + timedelta(seconds=2)) == 1
    assert _get(session, other.id).status == MESSAGE_STATUS_SENT
    assert _get(session, second.id).status == MESSAGE_STATUS_SCHEDULED

    assert worker.run_once(now=BASE_TIME + timedelta(seconds=61)) == 1
    assert _get(session, first.id).status == MESSAGE_STATUS_SENT
    assert _get(session, second.id).status == MESSAGE_STATUS_SCHEDULED

    assert worker.run_once(now=BASE_TIME + timedelta(seconds=62)) == 1
    stored_first = _get(session, first.id)
    stored_second = _get(session, second.id)
    assert stored_second.status == MESSAGE_STATUS_SENT
    assert stored_first.sent_at < stored_second.sent_at
    assert [sent[0] for sent in provider.sent] == [
        recipient.address,
        "+14155550199",
        recipient.address,
        recipient.address,
    ]


def test_deferred_message_lets_later_messages_through(
    session, session_factory, recipient, variables, fake_provider
):
    first = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    second = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    repository = MessageRepository(session)
    head = repository.claim_due(claim_token="w1:a", now=BASE_TIME, limit=10)[0]
    until = BASE_TIME + timedelta(hours=12)

    assert repository.defer(first.id, claim_token="w1:a", until=until, now=BASE_TIME)

    assert head.id == first.id
    assert _get(session, first.id).sequence_at == until
    next_batch = repository.claim_due(claim_token="w1:b", now=BASE_TIME, limit=10)
    assert [item.id for item in next_batch] == [second.id]


def test_cancel_queued_message(session, session_factory, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    outcome = cancel_message(session, TENANT, message.id)

    assert outcome.result == CANCEL_RESULT_CANCELLED
    assert outcome.message.status == MESSAGE_STATUS_SKIPPED
    assert outcome.message.skip_reason == SKIP_REASON_CANCELLED
    assert _worker(session_factory, fake_provider).run_once(now=BASE_TIME) == 0
    assert fake_provider.sent == []
    assert cancel_message(session, TENANT, message.id).result == CANCEL_RESULT_NOT_CANCELLABLE
    assert cancel_message(session, "other", message.id).result == CANCEL_RESULT_NOT_FOUND


def test_cancel_while_processing_is_honoured_before_send(
    session, recipient, variables, fake_provider
):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    claimed = MessageRepository(session).claim_due(claim_token="w1:a", now=BASE_TIME, limit=1)[0]

    assert cancel_message(session, TENANT, message.id).result == CANCEL_RESULT_REQUESTED
    assert process_message(session, claimed, providers={"sms": fake_provider}, now=BASE_TIME) == "skipped"

    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_SKIPPED
    assert stored.skip_reason == SKIP_REASON_CANCELLED
    assert stored.attempts == 0
    assert fake_provider.sent == []


def test_cancel_requested_during_failed_attempt_stops_retries(session, recipient, variables):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    claimed = MessageRepository(session).claim_due(claim_token="w1:a", now=BASE_TIME, limit=1)[0]

    class CancellingProvider:
        name = "cancelling"

        def send(self, recipient, content, *, subject=None):
            cancel_message(session, TENANT, message.id)
            raise TransientProviderError("busy")

    outcome = process_message(
        session, claimed, providers={"sms": CancellingProvider()}, now=BASE_TIME
    )

    stored = _get(session, message.id)
    assert outcome == "cancelled"
    assert stored.status == MESSAGE_STATUS_SKIPPED
    assert stored.skip_reason == SKIP_REASON_CANCELLED
    assert stored.attempts == 1


def test_sent_message_cannot_be_cancelled(session, session_factory, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    _worker(session_factory, fake_provider).run_once(now=BASE_TIME)

    outcome = cancel_message(session, TENANT, message.id)

    assert outcome.result == CANCEL_RESULT_NOT_CANCELLABLE
    assert _get(session, message.id).status == MESSAGE_STATUS_SENT


def test_disabled_channel_is_skipped(session, session_factory, recipient, variables, fake_provider):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    update_channel_settings(session, TENANT, "order_shipped", sms_enabled=False)

    _worker(session_factory, fake_provider).run_once(now=BASE_TIME)

    stored = _get(session, message.id)
    assert stored.status == MESSAGE_STATUS_SKIPPED
    assert stored.skip_reason == SKIP_REASON_CHANNEL_DISABLED
    assert fake_provider.sent == []


def test_queue_stats(session, session_factory, recipient, variables):
    provider = FakeProvider(None, PermanentProviderError("rejected"))
    enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    enqueue(session, TENANT, Recipient(address="+14155550199"), "order_shipped", variables, now=BASE_TIME)
    pending = enqueue(
        session,
        TENANT,
        Recipient(address="+14155550177"),
        "order_shipped",
        variables,
        scheduled_at=BASE_TIME + timedelta(days=1),
        now=BASE_TIME,
    )
    _worker(session_factory, provider).run_once(now=BASE_TIME)

    stats = get_queue_stats(session, TENANT, now=BASE_TIME + timedelta(minutes=1))

    assert stats.total == 3
    assert stats.counts[MESSAGE_STATUS_SENT] == 1
    assert stats.counts[MESSAGE_STATUS_FAILED] == 1
    assert stats.counts[MESSAGE_STATUS_SCHEDULED] == 1
    assert stats.sent_last_24h == 1
    assert [m.id for m in list_messages(session, TENANT, status="scheduled")] == [pending.id]


@pytest.mark.parametrize(
    ("attempts", "expected"),
    [(1, 60), (2, 120), (3, 240), (6, 1920), (7, 3600), (12, 3600)],
)
def test_compute_backoff(attempts, expected):
    delay = compute_backoff(attempts, base_seconds=60, max_seconds=3600)

    assert delay == timedelta(seconds=expected)
