"""Tests for per-tenant send throttling."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import BASE_TIME, TENANT
from notifyq.application.use_cases.messages import enqueue
from notifyq.application.use_cases.rate_limits import (
    SCOPE_DAILY,
    SCOPE_PER_SECOND,
    WINDOW_DAY,
    WINDOW_SECOND,
    consume,
    daily_window,
    purge_expired_counters,
)
from notifyq.application.use_cases.tenant_settings import update_tenant_settings
from notifyq.domain.entities import (
    MESSAGE_STATUS_SCHEDULED,
    MESSAGE_STATUS_SENT,
    RateLimitPolicy,
    Recipient,
)
from notifyq.domain.errors import RateLimitExceeded
from notifyq.infrastructure.repositories import MessageRepository, RateLimitRepository
from notifyq.infrastructure.worker import DeliveryWorker

NEW_YORK = "America/New_York"
# Midnight of March 3rd in New York (EST) expressed in UTC.
NEXT_LOCAL_MIDNIGHT = datetime(2026, 3, 3, 5, 0, tzinfo=timezone.utc)


def test_daily_window_follows_tenant_timezone():
    start, end = daily_window(BASE_TIME, NEW_YORK)

    assert start == datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)
    assert end == NEXT_LOCAL_MIDNIGHT

    utc_start, utc_end = daily_window(BASE_TIME, "UTC")
    assert utc_start == datetime(2026, 3, 2, tzinfo=timezone.utc)
    assert utc_end == datetime(2026, 3, 3, tzinfo=timezone.utc)


def test_per_second_limit(session):
    policy = RateLimitPolicy(messages_per_second=2, daily_limit=100)

    consume(session, TENANT, policy, BASE_TIME)
    consume(session, TENANT, policy, BASE_TIME + timedelta(milliseconds=400))

    with pytest.raises(RateLimitExceeded) as exc_info:
        consume(session, TENANT, policy, BASE_TIME + timedelta(milliseconds=900))

    assert exc_info.value.scope == SCOPE_PER_SECOND
    assert exc_info.value.retry_at == BASE_TIME + timedelta(milliseconds=1900)

    # The next second opens a new window.
    consume(session, TENANT, policy, BASE_TIME + timedelta(seconds=1))


def test_rejected_second_releases_daily_slot(session):
    policy = RateLimitPolicy(messages_per_second=1, daily_limit=100)
    repository = RateLimitRepository(session)
    day_start, _ = daily_window(BASE_TIME, NEW_YORK)

    consume(session, TENANT, policy, BASE_TIME, tz_name=NEW_YORK)
    with pytest.raises(RateLimitExceeded):
        consume(session, TENANT, policy, BASE_TIME, tz_name=NEW_YORK)

    assert repository.current_count(TENANT, WINDOW_DAY, day_start) == 1
    assert repository.current_count(TENANT, WINDOW_SECOND, BASE_TIME) == 1


def test_daily_limit_defers_to_next_local_midnight(session):
    policy = RateLimitPolicy(messages_per_second=10, daily_limit=2)

    consume(session, TENANT, policy, BASE_TIME, tz_name=NEW_YORK)
    consume(session, TENANT, policy, BASE_TIME + timedelta(hours=1), tz_name=NEW_YORK)

    with pytest.raises(RateLimitExceeded) as exc_info:
        consume(session, TENANT, policy, BASE_TIME + timedelta(hours=2), tz_name=NEW_YORK)

    assert exc_info.value.scope == SCOPE_DAILY
    assert exc_info.value.retry_at == NEXT_LOCAL_MIDNIGHT

    # Another tenant has its own counters.
    consume(session, "other", policy, BASE_TIME + timedelta(hours=2), tz_name=NEW_YORK)
    # The local day rolls over at midnight in New York, not in UTC.
    consume(session, TENANT, policy, NEXT_LOCAL_MIDNIGHT, tz_name=NEW_YORK)


def test_zero_limit_blocks_every_send(session):
    with pytest.raises(RateLimitExceeded):
        consume(session, TENANT, RateLimitPolicy(messages_per_second=5, daily_limit=0), BASE_TIME)


def test_purge_expired_counters(session):
    policy = RateLimitPolicy(messages_per_second=5, daily_limit=100)
    consume(session, TENANT, policy, BASE_TIME)
    repository = RateLimitRepository(session)

    assert purge_expired_counters(session, BASE_TIME + timedelta(minutes=1)) == 0
    assert purge_expired_counters(session, BASE_TIME + timedelta(minutes=10)) == 1
    assert repository.current_count(TENANT, WINDOW_SECOND, BASE_TIME) == 0
    assert purge_expired_counters(session, BASE_TIME + timedelta(days=3)) == 1


def test_worker_defers_messages_over_the_daily_limit(
    session, session_factory, variables, fake_provider
):
    update_tenant_settings(session, TENANT, daily_limit=1)
    first = enqueue(
        session, TENANT, Recipient(address="+14155550101"), "order_shipped", variables, now=BASE_TIME
    )
    second = enqueue(
        session, TENANT, Recipient(address="+14155550102"), "order_shipped", variables, now=BASE_TIME
    )

    worker = DeliveryWorker("w1", {"sms": fake_provider}, session_factory=session_factory)
    assert worker.run_once(now=BASE_TIME) == 2

    session.expire_all()
    repository = MessageRepository(session)
    assert repository.get(first.id).status == MESSAGE_STATUS_SENT
    deferred = repository.get(second.id)
    assert deferred.status == MESSAGE_STATUS_SCHEDULED
    assert deferred.scheduled_at == NEXT_LOCAL_MIDNIGHT
    assert deferred.attempts == 0
    assert len(fake_provider.sent) == 1


def test_worker_defers_messages_over_the_per_second_limit(
    session, session_factory, variables, fake_provider
):
    update_tenant_settings(session, TENANT, messages_per_second=1)
    enqueue(
        session, TENANT, Recipient(address="+14155550101"), "order_shipped", variables, now=BASE_TIME
    )
    second = enqueue(
        session, TENANT, Recipient(address="+14155550102"), "order_shipped", variables, now=BASE_TIME
    )
    worker = DeliveryWorker("w1", {"sms": fake_provider}, session_factory=session_factory)

    worker.run_once(now=BASE_TIME)

    session.expire_all()
    deferred = MessageRepository(session).get(second.id)
    assert deferred.status == MESSAGE_STATUS_SCHEDULED
    assert deferred.scheduled_at == BASE_TIME + timedelta(seconds=1)

    assert worker.run_once(now=BASE_TIME + timedelta(seconds=1)) == 1
    session.expire_all()
    assert MessageRepository(session).get(second.id).status == MESSAGE_STATUS_SENT
