"""Database package."""

from parcelsync.db.database import async_session, engine, init_db
from parcelsync.db.models import Base, SyncRun, TrackedItem, TrackingEvent
from parcelsync.db.store import ItemStore

__all__ = [
    "Base",
    "ItemStore",
    "SyncRun",
    "TrackedItem",
    "TrackingEvent",
    "async_session",
    "engine",
    "init_db",
]
