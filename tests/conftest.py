"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from parcelsync.carriers.base import FetchOutcome
from parcelsync.db.models import Base
from parcelsync.db.store import ItemStore
from parcelsync.services.notifier import Notification

NOW = datetime(2026, 1, 16, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
async def session_factory(tmp_path):
    """A file-backed database, so every store operation gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return ItemStore(session_factory)


def mock_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)


class FakeAdapter:
    """Source adapter returning scripted outcomes, one per call (the last one repeats)."""

    def __init__(self, *outcomes: FetchOutcome):
        self.outcomes = list(outcomes)
        self.calls: list[str] = []

    async def fetch(self, tracking_code: str) -> FetchOutcome:
        self.calls.append(tracking_code)
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]

    async def aclose(self) -> None:
        pass


class RecordingTransport:
    """Notification transport that records what it was asked to deliver."""

    def __init__(self):
        self.sent: list[Notification] = []
        self.groups: list[tuple[list[Notification], str]] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)

    async def send_group(self, notifications: list[Notification], summary: str) -> None:
        self.groups.append((list(notifications), summary))

    @property
    def delivered(self) -> int:
        return len(self.sent) + sum(len(group) for group, _ in self.groups)


class FakeLoader:
    """Stands in for the carrier loader with scripted direct scrapers."""

    def __init__(self, carriers: dict | None = None):
        self.carriers = carriers or {}

    def has_carrier(self, slug: str) -> bool:
        return slug in self.carriers

    def get_carrier(self, slug: str):
        return self.carriers.get(slug)

    async def aclose(self) -> None:
        pass


class FakeAggregator:
    """Aggregator API double: detection results and one tracking per slug."""

    def __init__(self, trackings: dict | None = None, detected: list | None = None):
        self.trackings = trackings or {}
        self.detected = detected or []
        self.created: list[tuple[str, str]] = []

    async def create_tracking(self, tracking_code, slug=None, title=None):
        self.created.append((slug, tracking_code))

    async def get_tracking_info(self, slug, tracking_code):
        return self.trackings.get(slug)

    async def detect_couriers(self, tracking_code):
        return self.detected

    async def aclose(self) -> None:
        pass
