"""
Shared pytest fixtures.

Each test gets its own SQLite database file and media root under tmp_path,
a controllable clock, and services wired with no real network time sources.
"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from corpsjournal.core.dates import service_tz
from corpsjournal.core.deps import build_services, get_services
from corpsjournal.db.base import Base, get_db
from corpsjournal.main import app
from corpsjournal.services.badges import BadgeEngine
from corpsjournal.services.entries import EntryRepository
from corpsjournal.services.kv_store import KeyValueStore
from corpsjournal.services.media import MediaStore
from corpsjournal.services.service_profile import ServiceProfileStore

LAGOS = service_tz()


class FakeClock:
    """Callable clock that tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


class FakeTimeSource:
    """A time source answering a fixed instant, or failing with `error`."""

    def __init__(self, name: str, time: datetime | None = None, error: Exception | None = None):
        self.name = name
        self.time = time
        self.error = error
        self.calls = 0

    async def fetch(self, session):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.time


def lagos(*args) -> datetime:
    return datetime(*args, tzinfo=LAGOS)


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'journal.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def clock():
    return FakeClock(lagos(2026, 3, 15, 10, 0))


@pytest.fixture()
def store(session_factory):
    return KeyValueStore(session_factory)


@pytest.fixture()
def media(tmp_path):
    return MediaStore(tmp_path / "media")


@pytest.fixture()
def entries(store, media, clock):
    return EntryRepository(store, media=media, clock=clock)


@pytest.fixture()
def profiles(store, clock):
    return ServiceProfileStore(store, clock=clock)


@pytest.fixture()
def badges(store, profiles, clock):
    return BadgeEngine(store, profiles, clock=clock)


@pytest.fixture()
def services(session_factory, tmp_path, clock):
    return build_services(
        session_factory,
        media_root=str(tmp_path / "media"),
        time_sources=[],
        clock=clock,
    )


@pytest.fixture()
def client(services, session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def temp_file(tmp_path):
    """Factory for source files standing in for picker/recorder output."""
    def make(name: str, content: bytes = b"data") -> str:
        path = tmp_path / "incoming" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return str(path)
    return make
