"""Shared fixtures: a fresh SQLite database per test and scripted providers."""

from __future__ import annotations

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{Path(tempfile.gettempdir()) / 'notifyq-tests.db'}"
)

from sqlalchemy.orm import sessionmaker  # noqa: E402

from notifyq.config import reset_settings_cache  # noqa: E402
from notifyq.domain.entities import Recipient  # noqa: E402
from notifyq.infrastructure.database import build_engine, initialize_database  # noqa: E402
from notifyq.infrastructure.providers import ProviderReceipt  # noqa: E402

# Monday 2026-03-02 15:00 UTC, 10:00 in America/New_York.
BASE_TIME = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)
TENANT = "acme"


class FakeProvider:
    """Provider that replays a script of outcomes, then keeps succeeding."""

    name = "fake"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.sent: list[tuple[str, str, str | None]] = []

    def send(self, recipient, content, *, subject=None):
        self.sent.append((recipient, content, subject))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        return ProviderReceipt(
            provider=self.name, provider_message_id=f"fake-{len(self.sent)}"
        )


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'notifyq.db'}")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autoflush=False, bind=engine)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def recipient():
    return Recipient(address="+14155550101", type="customer", id="c-1", name="Ana")


@pytest.fixture()
def variables():
    return {"brandName": "Acme", "orderNumber": "1001", "trackingUrl": "https://t.example/1"}
