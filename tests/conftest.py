"""Shared fixtures: a throwaway SQLite database and a controllable clock."""

import pytest

from freeze_guard.database import build_engine, create_db_and_tables
from freeze_guard.services.freeze_service import FreezeService
from freeze_guard.services.freeze_store import FreezeStore

START_TIME = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'freeze.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(engine, clock):
    return FreezeStore(engine, clock=clock)


@pytest.fixture
def service(store, clock):
    return FreezeService(store, clock=clock)
