"""Tests for notification building and grouping."""

from datetime import datetime, timezone

from conftest import RecordingTransport

from parcelsync.normalise.status import LOGIN_REQUIRED
from parcelsync.services.notifier import (
    LOGIN_REQUIRED_BODY,
    Notification,
    dispatch,
    reminder_notification,
    status_notification,
)


def test_status_notification():
    assert status_notification("1", "Zapatos", "En reparto") == Notification("Zapatos", "En reparto", "1")
    assert status_notification("1", "Zapatos", LOGIN_REQUIRED).body == LOGIN_REQUIRED_BODY


def test_reminder_wording_is_by_calendar_date():
    now = datetime(2026, 1, 16, 22, 0, tzinfo=timezone.utc)
    # Two hours away but after midnight
    assert reminder_notification("1", "Zapatos", datetime(2026, 1, 17, 0, 0, tzinfo=timezone.utc), now).body == (
        "Llega mañana"
    )
    assert reminder_notification("1", "Zapatos", datetime(2026, 1, 16, 23, 0, tzinfo=timezone.utc), now).body == (
        "Llega hoy"
    )


async def test_single_notification_is_sent_alone():
    transport = RecordingTransport()
    assert await dispatch(transport, [Notification("a", "b", "1")]) == 1
    assert len(transport.sent) == 1
    assert transport.groups == []


async def test_several_notifications_are_grouped_with_one_summary():
    transport = RecordingTransport()
    notifications = [Notification(f"item {i}", "En reparto", str(i)) for i in range(3)]

    assert await dispatch(transport, notifications) == 3

    assert transport.sent == []
    assert transport.groups == [(notifications, "3 envíos actualizados")]


async def test_nothing_to_send():
    transport = RecordingTransport()
    assert await dispatch(transport, []) == 0
    assert transport.delivered == 0
