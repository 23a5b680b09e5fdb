"""
Pytest configuration and shared test utilities.

This module provides shared fixtures for all itemcache tests: a controllable
clock, in-memory sources (including one whose calls block until released) and
an observer that records every snapshot it receives.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from itemcache.data_management import InMemoryDataSource, RemoteDataSource
from itemcache.models import Item
from itemcache.utils.config import reset_config

# ===================================================================
# Test Doubles
# ===================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class GatedSource(InMemoryDataSource):
    """In-memory source whose calls block until ``gate`` is set.

    ``entered`` is set as soon as any call starts waiting, which lets a test
    know an operation has reached its suspension point.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def _enter(self, operation: str) -> None:
        self.entered.set()
        await self.gate.wait()
        await super()._enter(operation)


class SnapshotRecorder:
    """Observer collecting every snapshot it is notified with."""

    def __init__(self):
        self.snapshots = []

    def __call__(self, snapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def statuses(self):
        return [snapshot.status for snapshot in self.snapshots]

    @property
    def last(self):
        return self.snapshots[-1]


# ===================================================================
# Fixtures
# ===================================================================


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Keep configuration singletons from leaking between tests."""
    monkeypatch.delenv("CONFIG_FILE", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_items() -> list[Item]:
    """The two-item remote collection used by most scenarios."""
    return [Item(id=1, title="a"), Item(id=2, title="b")]


@pytest.fixture
def memory_source(sample_items) -> InMemoryDataSource:
    return InMemoryDataSource(sample_items)


@pytest.fixture
def gated_source(sample_items) -> GatedSource:
    return GatedSource(sample_items)


@pytest.fixture
def mock_source() -> AsyncMock:
    """AsyncMock honouring the RemoteDataSource interface."""
    source = AsyncMock(spec=RemoteDataSource)
    source.name = "mock"
    return source


@pytest.fixture
def recorder() -> SnapshotRecorder:
    return SnapshotRecorder()
