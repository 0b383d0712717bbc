from datetime import datetime, timedelta, timezone

import pytest

from contractor_sync.directory import ContractorDirectory
from contractor_sync.ledger import ReportLedger
from contractor_sync.session import ScanSessionManager
from contractor_sync.store import MemoryStore


class FakeClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start=datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def empty_directory(store, clock):
    return ContractorDirectory(store, device_id="device_test", seed_defaults=False, clock=clock)


@pytest.fixture
def ledger(store, clock):
    return ReportLedger(store, clock=clock)


@pytest.fixture
def sessions(store, empty_directory, ledger, clock):
    return ScanSessionManager(store, empty_directory, ledger, clock=clock)
