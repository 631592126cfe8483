from __future__ import annotations

import pytest

from convener.database import initialize_database
from convener.services.events_store import EventsStore
from convener.services.lifecycle import EventLifecycle
from convener.services.users_store import UserStatsStore
from convener.testing.fakes import FakeNotificationChannel

from .support import NOW, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "convener.sqlite3")


@pytest.fixture
async def stores(db_path):
    events = EventsStore(db_path)
    users = UserStatsStore(db_path)
    await initialize_database(db_path, [events, users])
    return events, users


@pytest.fixture
def events_store(stores) -> EventsStore:
    return stores[0]


@pytest.fixture
def user_stats_store(stores) -> UserStatsStore:
    return stores[1]


@pytest.fixture
def lifecycle(events_store) -> EventLifecycle:
    return EventLifecycle(events_store, clock=lambda: NOW)


@pytest.fixture
def channel() -> FakeNotificationChannel:
    return FakeNotificationChannel()
