"""
Shared fixtures for the optisettle test suite.
"""

import datetime as _dt
from decimal import Decimal

import pytest


START = _dt.datetime(2024, 1, 1, 12, 0, 0, tzinfo=_dt.timezone.utc)
CHALLENGE_PERIOD = _dt.timedelta(hours=1)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: _dt.datetime = START):
        self.now = start

    def __call__(self) -> _dt.datetime:
        return self.now

    def advance(self, delta: _dt.timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    from optisettle.store import InMemoryBatchStore

    return InMemoryBatchStore({"0xa": Decimal(100)})


@pytest.fixture
def ledger(store, clock):
    from optisettle.core.ledger import Ledger

    return Ledger(store, clock=clock)


@pytest.fixture
def lifecycle(store, ledger, clock):
    from optisettle.core.lifecycle import BatchLifecycle

    return BatchLifecycle(store, ledger, clock=clock, challenge_period=CHALLENGE_PERIOD)


@pytest.fixture
def transactions():
    from optisettle.protocol.models import Transaction

    return [
        Transaction("0xA", "0xB", Decimal("10")),
        Transaction("0xB", "0xC", Decimal("2.5")),
        Transaction("0xC", "0xD", Decimal("1")),
        Transaction("0xD", "0xA", Decimal("0.25")),
        Transaction("0xA", "0xE", Decimal("3")),
    ]
