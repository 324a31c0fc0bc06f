"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from lead_router.adapters.memory.unit_of_work import InMemoryStore, InMemoryUnitOfWork

T0 = datetime(2026, 2, 25, 10, 0, tzinfo=timezone.utc)


class TickClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    return lambda: InMemoryUnitOfWork(store)
