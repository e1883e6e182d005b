"""Periodic sync: refresh every active item, then notify.

One cycle runs Start -> ParallelRefresh -> Diff -> Suppress/Group -> Notify
-> Reminders -> Persist. All refreshes finish before any notification is
built, so a summary always counts the whole cycle. Per-item failures are
logged and counted; only a failure of the cycle itself (e.g. the active item
list cannot be read) reaches the job, which retries the whole cycle.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from parcelsync.carriers.base import NoData, TransientError
from parcelsync.config import Settings, settings
from parcelsync.db.models import SyncRun, TrackedItem
from parcelsync.db.store import ItemStore, as_utc
from parcelsync.normalise.status import is_delivered, is_important
from parcelsync.services.notifier import (
    LoggingTransport,
    Notification,
    NotificationTransport,
    dispatch,
    reminder_notification,
    status_notification,
)
from parcelsync.services.quiet_hours import QuietHours
from parcelsync.services.tracker import RefreshResult, TrackerService

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=24)


@dataclass
class SyncReport:
    started_at: datetime
    finished_at: datetime | None = None
    refreshed: int = 0
    failed: int = 0
    changed: int = 0
    notified: int = 0
    reminders: int = 0
    notifications: list[Notification] = field(default_factory=list)


@dataclass
class JobResult:
    success: bool
    attempts: int
    report: SyncReport | None = None
    error: str | None = None


class SyncEngine:
    """Runs one sync cycle over all active items."""

    def __init__(
        self,
        tracker: TrackerService,
        transport: NotificationTransport | None = None,
        config: Settings | None = None,
        store: ItemStore | None = None,
    ):
        self.tracker = tracker
        self.store = store or tracker.store
        self.transport = transport or LoggingTransport()
        self.config = config or settings

    @property
    def quiet_hours(self) -> QuietHours:
        return QuietHours(
            self.config.quiet_hours_enabled,
            self.config.quiet_hours_start,
            self.config.quiet_hours_end,
        )

    async def run_cycle(self, now: datetime | None = None) -> SyncReport:
        now = now or datetime.now(timezone.utc)
        local_now = now.astimezone(ZoneInfo(self.config.timezone))
        report = SyncReport(started_at=now)

        items = await self.store.active_items()
        logger.info("Sync cycle: %d active items", len(items))

        candidates = await self._refresh_all(items, now, report)
        notifications = self._filter(candidates, local_now)
        report.notifications = notifications
        report.notified = await dispatch(self.transport, notifications)
        report.reminders = await self._send_reminders(now, local_now)

        report.finished_at = datetime.now(timezone.utc)
        await self.store.record_sync_run(
            SyncRun(
                started_at=report.started_at,
                finished_at=report.finished_at,
                refreshed=report.refreshed,
                failed=report.failed,
                changed=report.changed,
                notified=report.notified,
                reminders=report.reminders,
            )
        )
        logger.info(
            "Sync cycle done: %d refreshed, %d failed, %d changed, %d notified, %d reminders",
            report.refreshed, report.failed, report.changed, report.notified, report.reminders,
        )
        return report

    async def _refresh_all(
        self, items: list[TrackedItem], now: datetime, report: SyncReport
    ) -> list[tuple[int, TrackedItem, RefreshResult]]:
        candidates: list[tuple[int, TrackedItem, RefreshResult]] = []
        lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.config.max_concurrent_refreshes)

        async def refresh(index: int, item: TrackedItem) -> None:
            async with semaphore:
                try:
                    result = await self.tracker.refresh_item(item.id, now)
                except Exception:
                    logger.exception("Refresh failed for item %s", item.id)
                    report.failed += 1
                    return

            if result is None or isinstance(result.outcome, (NoData, TransientError)):
                report.failed += 1
                return
            report.refreshed += 1
            if result.changed:
                async with lock:
                    report.changed += 1
                    candidates.append((index, item, result))

        await asyncio.gather(*(refresh(i, item) for i, item in enumerate(items)))
        return sorted(candidates, key=lambda c: c[0])

    def _filter(
        self, candidates: list[tuple[int, TrackedItem, RefreshResult]], local_now: datetime
    ) -> list[Notification]:
        if not candidates:
            return []
        if not self.config.notifications_enabled:
            logger.info("Notifications disabled, dropping %d candidates", len(candidates))
            return []
        if self.quiet_hours.is_active(local_now):
            logger.info("Quiet hours, dropping %d candidates", len(candidates))
            return []

        notifications = []
        for _, item, result in candidates:
            if item.is_muted:
                continue
            if self.config.only_important_events and not is_important(result.new_status):
                logger.debug("Unimportant status %r for %s", result.new_status, item.id)
                continue
            notifications.append(status_notification(item.id, result.title, result.new_status))
        return notifications

    async def _send_reminders(self, now: datetime, local_now: datetime) -> int:
        """One reminder per item whose estimated delivery is within the next 24 hours.

        Deferred, not flagged, while notifications are off or quiet hours are on.
        """
        if not self.config.notifications_enabled or self.quiet_hours.is_active(local_now):
            return 0

        sent = 0
        for item in await self.store.active_items():
            eta = as_utc(item.estimated_delivery)
            if eta is None or item.is_muted or item.reminder_sent or is_delivered(item.status):
                continue
            local_eta = eta.astimezone(local_now.tzinfo)
            if eta > now + REMINDER_WINDOW or local_eta.date() < local_now.date():
                continue
            await self.transport.send(reminder_notification(item.id, item.title, local_eta, local_now))
            await self.store.mark_reminder_sent(item.id)
            sent += 1
        return sent


class SyncJob:
    """Job wrapper: retries the whole cycle on failure, up to a fixed cap."""

    def __init__(
        self,
        engine: SyncEngine,
        max_attempts: int | None = None,
        timeout: float | None = None,
        retry_delay: float = 5.0,
    ):
        self.engine = engine
        self.max_attempts = max_attempts or engine.config.sync_max_attempts
        self.timeout = timeout or engine.config.sync_timeout_seconds
        self.retry_delay = retry_delay

    async def run(self) -> JobResult:
        error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                report = await asyncio.wait_for(self.engine.run_cycle(), self.timeout)
                return JobResult(success=True, attempts=attempt, report=report)
            except Exception as e:
                error = e
                logger.exception("Sync cycle failed (attempt %d/%d)", attempt, self.max_attempts)
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay * attempt)

        logger.error("Sync cycle failed permanently after %d attempts", self.max_attempts)
        return JobResult(
            success=False,
            attempts=self.max_attempts,
            error=f"{type(error).__name__}: {error}",
        )

    async def run_forever(self, interval_minutes: int | None = None) -> None:
        interval = (interval_minutes or self.engine.config.refresh_interval_minutes) * 60
        while True:
            await self.run()
            await asyncio.sleep(interval)
