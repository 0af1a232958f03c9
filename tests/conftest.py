"""Shared fixtures: an in-memory store and a tracker bound to it."""

import os
import time

import pytest

from meubolso.audit import AuditLogger
from meubolso.services.storage import InMemoryStore
from meubolso.tracker import FinanceTracker


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def audit():
    return AuditLogger(keep_history=True)


@pytest.fixture
def tracker(store, audit):
    """A bootstrapped tracker (default categories seeded)."""
    tracker = FinanceTracker(store, key_prefix="meubolso_", audit_logger=audit)
    tracker.initialize()
    return tracker


@pytest.fixture
def sao_paulo_tz():
    """Run the test with the process local zone set to America/Sao_Paulo (UTC-3)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    previous = os.environ.get("TZ")
    os.environ["TZ"] = "America/Sao_Paulo"
    time.tzset()
    yield
    if previous is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = previous
    time.tzset()
