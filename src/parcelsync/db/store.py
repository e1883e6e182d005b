"""Storage operations on tracked items.

Every method opens its own session, so concurrent refresh tasks never share
an ``AsyncSession``. Writing a snapshot (status, events, archive flag) is a
single transaction: if it is cancelled before commit the item is untouched.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from parcelsync.carriers.base import TrackingSnapshot
from parcelsync.db.database import async_session
from parcelsync.db.models import SyncRun, TrackedItem, TrackingEvent
from parcelsync.normalise.status import is_delivered

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass
class AppliedSnapshot:
    """Old and new status of one item, read and written in the same transaction."""

    old_status: str
    new_status: str
    archived: bool = False

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


class ItemStore:
    """Reads and writes tracked items and their timelines."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self.session_factory = session_factory or async_session

    async def add(self, item: TrackedItem) -> TrackedItem:
        async with self.session_factory() as session:
            session.add(item)
            await session.commit()
            await session.refresh(item)
        return item

    async def get(self, item_id: str) -> TrackedItem | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackedItem)
                .where(TrackedItem.id == item_id)
                .options(selectinload(TrackedItem.events))
            )
            return result.scalar_one_or_none()

    async def find_by_code(self, tracking_code: str) -> TrackedItem | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackedItem).where(TrackedItem.tracking_code == tracking_code.strip())
            )
            return result.scalars().first()

    async def list_items(self, archived: bool | None = False) -> list[TrackedItem]:
        """Items newest first; ``archived=None`` returns both."""
        query = select(TrackedItem).order_by(TrackedItem.created_at.desc())
        if archived is not None:
            query = query.where(TrackedItem.is_archived.is_(archived))
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def active_items(self) -> list[TrackedItem]:
        return await self.list_items(archived=False)

    async def _update(self, item_id: str, **values) -> bool:
        async with self.session_factory() as session:
            item = await session.get(TrackedItem, item_id)
            if item is None:
                return False
            for key, value in values.items():
                setattr(item, key, value)
            await session.commit()
            return True

    async def set_carrier(self, item_id: str, carrier: str) -> bool:
        return await self._update(item_id, carrier=carrier)

    async def set_status(self, item_id: str, status: str) -> bool:
        """Store an engine sentinel status without touching the timeline."""
        return await self._update(item_id, status=status)

    async def rename(self, item_id: str, title: str) -> bool:
        return await self._update(item_id, title=title)

    async def set_archived(self, item_id: str, archived: bool) -> bool:
        return await self._update(item_id, is_archived=archived)

    async def set_muted(self, item_id: str, muted: bool) -> bool:
        return await self._update(item_id, is_muted=muted)

    async def mark_reminder_sent(self, item_id: str) -> bool:
        return await self._update(item_id, reminder_sent=True)

    async def apply_snapshot(
        self,
        item_id: str,
        snapshot: TrackingSnapshot,
        now: datetime | None = None,
    ) -> AppliedSnapshot | None:
        """Replace an item's status and timeline with a fetched snapshot.

        The reminder flag is reset only when a new, different estimated
        delivery arrives. The item is auto-archived the first time its status
        is delivered and never again, even after the user unarchives it.
        """
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as session:
            item = await session.get(TrackedItem, item_id)
            if item is None:
                return None

            old_status = item.status
            item.status = snapshot.status
            item.last_update = now
            if snapshot.sub_carrier:
                item.sub_carrier_name = snapshot.sub_carrier

            if snapshot.expected_delivery is not None:
                expected = as_utc(snapshot.expected_delivery)
                if expected != as_utc(item.estimated_delivery):
                    item.estimated_delivery = expected
                    item.reminder_sent = False

            archived = False
            if is_delivered(snapshot.status) and not item.auto_archived:
                item.auto_archived = True
                item.is_archived = True
                archived = True
                logger.info("Auto-archived delivered item %s", item_id)

            await session.execute(delete(TrackingEvent).where(TrackingEvent.item_id == item_id))
            session.add_all(
                TrackingEvent(
                    item_id=item_id,
                    timestamp=event.timestamp,
                    description=event.description,
                    location=event.location,
                    latitude=event.latitude,
                    longitude=event.longitude,
                    status=event.status,
                )
                for event in snapshot.events
            )
            await session.commit()

        return AppliedSnapshot(old_status=old_status, new_status=snapshot.status, archived=archived)

    async def record_sync_run(self, run: SyncRun) -> None:
        async with self.session_factory() as session:
            session.add(run)
            await session.commit()

    async def last_sync_run(self) -> SyncRun | None:
        async with self.session_factory() as session:
            result = await session.execute(select(SyncRun).order_by(SyncRun.id.desc()).limit(1))
            return result.scalar_one_or_none()
