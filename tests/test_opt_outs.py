"""Tests for recipient normalization and the opt-out registry."""

from __future__ import annotations

import pytest

from conftest import BASE_TIME, TENANT, FakeProvider
from notifyq.application.use_cases.messages import enqueue
from notifyq.application.use_cases.opt_outs import (
    is_opted_out,
    is_stop_keyword,
    list_opt_outs,
    normalize_recipient,
    on_stop_keyword,
    record_opt_out,
)
from notifyq.domain.entities import (
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_SKIPPED,
    OPT_OUT_METHOD_PROVIDER,
    OPT_OUT_METHOD_STOP_KEYWORD,
    SKIP_REASON_OPTED_OUT,
)
from notifyq.domain.errors import RecipientUnsubscribedError, ValidationError
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.infrastructure.worker import DeliveryWorker


@pytest.mark.parametrize(
    ("raw", "channel", "expected"),
    [
        ("+1 (415) 555-0101", "sms", "+14155550101"),
        ("+44.20.7946.0958", "sms", "+442079460958"),
        ("  Ana@Example.COM ", "email", "ana@example.com"),
        ("ana@example.com", None, "ana@example.com"),
        ("+14155550101", None, "+14155550101"),
    ],
)
def test_normalize_recipient(raw, channel, expected):
    assert normalize_recipient(raw, channel) == expected


@pytest.mark.parametrize(
    ("raw", "channel"),
    [
        ("4155550101", "sms"),
        ("+0123456", "sms"),
        ("+1234567890123456", "sms"),
        ("not-an-email", "email"),
        ("ana@example", "email"),
    ],
)
def test_normalize_recipient_rejects_invalid_addresses(raw, channel):
    with pytest.raises(ValidationError):
        normalize_recipient(raw, channel)


def test_record_opt_out_is_idempotent(session):
    first = record_opt_out(session, TENANT, "+1 415 555 0101")
    second = record_opt_out(session, TENANT, "+14155550101")

    assert first.id == second.id
    assert len(list_opt_outs(session, TENANT)) == 1
    assert is_opted_out(session, TENANT, "+1-415-555-0101")


def test_opt_outs_are_scoped_per_tenant(session):
    record_opt_out(session, TENANT, "ana@example.com")

    assert is_opted_out(session, TENANT, "ANA@example.com")
    assert not is_opted_out(session, "other-tenant", "ana@example.com")


def test_invalid_address_is_never_opted_out(session):
    assert not is_opted_out(session, TENANT, "garbage")


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ("STOP", True),
        (" stop ", True),
        ("Unsubscribe", True),
        ("STOPALL", True),
        ("quit!", True),
        ("please stop", False),
        ("", False),
        (None, False),
    ],
)
def test_stop_keyword_detection(body, expected):
    assert is_stop_keyword(body) is expected


def test_on_stop_keyword_records_only_for_keywords(session):
    assert on_stop_keyword(session, TENANT, "+14155550101", "Thanks!") is None
    assert not is_opted_out(session, TENANT, "+14155550101")

    opt_out = on_stop_keyword(session, TENANT, "+14155550101", "STOP")

    assert opt_out is not None
    assert opt_out.method == OPT_OUT_METHOD_STOP_KEYWORD
    assert opt_out.raw_message == "STOP"
    assert on_stop_keyword(session, TENANT, "+14155550101", "stop").id == opt_out.id


def test_opted_out_recipient_is_skipped_on_claim(
    session, session_factory, recipient, variables, fake_provider
):
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)
    record_opt_out(session, TENANT, recipient.address)

    worker = DeliveryWorker("w1", {"sms": fake_provider}, session_factory=session_factory)
    assert worker.run_once(now=BASE_TIME) == 1

    stored = MessageRepository(session).get(message.id)
    assert stored.status == MESSAGE_STATUS_SKIPPED
    assert stored.skip_reason == SKIP_REASON_OPTED_OUT
    assert stored.attempts == 0
    assert stored.sent_at is None
    assert fake_provider.sent == []


def test_provider_unsubscribe_records_opt_out(session, session_factory, recipient, variables):
    provider = FakeProvider(RecipientUnsubscribedError("unsubscribed", code="21610"))
    message = enqueue(session, TENANT, recipient, "order_shipped", variables, now=BASE_TIME)

    DeliveryWorker("w1", {"sms": provider}, session_factory=session_factory).run_once(
        now=BASE_TIME
    )

    session.expire_all()
    stored = MessageRepository(session).get(message.id)
    assert stored.status == MESSAGE_STATUS_FAILED
    assert stored.attempts == 1
    opt_outs = list_opt_outs(session, TENANT)
    assert [(item.recipient, item.method) for item in opt_outs] == [
        (recipient.address, OPT_OUT_METHOD_PROVIDER)
    ]
