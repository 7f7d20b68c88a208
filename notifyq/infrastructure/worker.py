"""Delivery workers and the APScheduler pool that drives them."""

from __future__ import annotations

import logging
import socket
import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from notifyq.application.delivery import handle_unexpected_error, process_message
from notifyq.application.use_cases.messages import purge_delivery_reports, reset_stale_claims
from notifyq.application.use_cases.rate_limits import purge_expired_counters
from notifyq.config import Settings, get_settings
from notifyq.infrastructure.database import SessionLocal, session_scope
from notifyq.infrastructure.providers import DeliveryProvider
from notifyq.infrastructure.repositories import MessageRepository
from notifyq.utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

_JOB_ID_RESET_STALE = "reset_stale_claims"
_JOB_ID_PURGE_COUNTERS = "purge_rate_limit_counters"


def new_claim_token(worker_id: str) -> str:
    return f"{worker_id}:{uuid.uuid4().hex}"


class DeliveryWorker:
    """Claim due messages and process them one at a time."""

    def __init__(
        self,
        worker_id: str,
        providers: Mapping[str, DeliveryProvider],
        *,
        session_factory: sessionmaker = SessionLocal,
        batch_size: int | None = None,
    ) -> None:
        self.worker_id = worker_id
        self.providers = providers
        self.session_factory = session_factory
        self.batch_size = batch_size or get_settings().worker_batch_size

    def run_once(self, now: datetime | None = None) -> int:
        """Claim one batch and process it; return the number of messages handled."""

        current = ensure_utc(now) or now_utc()
        claim_token = new_claim_token(self.worker_id)
        with session_scope(self.session_factory) as session:
            claimed = MessageRepository(session).claim_due(
                claim_token=claim_token, now=current, limit=self.batch_size
            )
            if not claimed:
                return 0
            logger.info(
                "Worker %s claimed %d message(s) with token %s",
                self.worker_id,
                len(claimed),
                claim_token,
            )

            for message in claimed:
                try:
                    outcome = process_message(
                        session, message, providers=self.providers, now=now
                    )
                except Exception as exc:
                    session.rollback()
                    logger.exception(
                        "Worker %s failed processing message id=%s",
                        self.worker_id,
                        message.id,
                    )
                    outcome = handle_unexpected_error(session, message, exc, now=now)
                logger.debug("Message id=%s -> %s", message.id, outcome)
            return len(claimed)


def _on_scheduler_event(event) -> None:
    job_id = getattr(event, "job_id", "?")
    if event.code == EVENT_JOB_MISSED:
        logger.warning("APScheduler: missed run of job_id=%s", job_id)
    elif event.code == EVENT_JOB_MAX_INSTANCES:
        logger.warning("APScheduler: job_id=%s still running, run skipped", job_id)
    elif event.code == EVENT_JOB_ERROR:
        logger.error(
            "APScheduler: job_id=%s raised %r", job_id, getattr(event, "exception", None)
        )


class DeliveryWorkerPool:
    """Run ``worker_count`` workers plus the maintenance jobs on a scheduler."""

    def __init__(
        self,
        providers: Mapping[str, DeliveryProvider],
        *,
        settings: Settings | None = None,
        session_factory: sessionmaker = SessionLocal,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC", daemon=True)
        self.scheduler.add_listener(
            _on_scheduler_event,
            EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES | EVENT_JOB_ERROR,
        )
        prefix = f"{socket.gethostname()}-{uuid.uuid4().hex[:6]}"
        self.workers = [
            DeliveryWorker(
                f"{prefix}-{index}",
                providers,
                session_factory=session_factory,
                batch_size=self.settings.worker_batch_size,
            )
            for index in range(self.settings.worker_count)
        ]

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def _reset_stale_claims(self) -> None:
        with session_scope(self.session_factory) as session:
            reset_stale_claims(session, stale_minutes=self.settings.claim_stale_minutes)

    def _purge_expired(self) -> None:
        retention = timedelta(hours=self.settings.delivery_report_retention_hours)
        with session_scope(self.session_factory) as session:
            purge_expired_counters(session)
            purge_delivery_reports(session, now_utc() - retention)

    def start(self) -> None:
        if self.running:
            return
        interval = self.settings.worker_poll_interval_seconds
        for worker in self.workers:
            self.scheduler.add_job(
                worker.run_once,
                trigger=IntervalTrigger(seconds=interval),
                id=f"deliver-{worker.worker_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=max(int(interval), 1),
            )
        self.scheduler.add_job(
            self._reset_stale_claims,
            trigger=IntervalTrigger(minutes=1),
            id=_JOB_ID_RESET_STALE,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._purge_expired,
            trigger=IntervalTrigger(hours=1),
            id=_JOB_ID_PURGE_COUNTERS,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Delivery worker pool started with %d worker(s), polling every %.1fs",
            len(self.workers),
            interval,
        )

    def stop(self, *, wait: bool = True) -> None:
        if not self.running:
            return
        self.scheduler.shutdown(wait=wait)
        logger.info("Delivery worker pool stopped")


__all__ = ["DeliveryWorker", "DeliveryWorkerPool", "new_claim_token"]
