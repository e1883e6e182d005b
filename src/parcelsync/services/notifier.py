"""Notification intents and the transport they are handed to."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from parcelsync.normalise.status import LOGIN_REQUIRED

logger = logging.getLogger(__name__)

LOGIN_REQUIRED_BODY = "Inicia sesión de nuevo para seguir este pedido"


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    item_id: str


class NotificationTransport(Protocol):
    """Delivers notifications; platform payloads are the transport's business."""

    async def send(self, notification: Notification) -> None: ...

    async def send_group(self, notifications: list[Notification], summary: str) -> None: ...


class LoggingTransport:
    """Transport that writes notifications to the log."""

    async def send(self, notification: Notification) -> None:
        logger.info("Notify [%s] %s: %s", notification.item_id, notification.title, notification.body)

    async def send_group(self, notifications: list[Notification], summary: str) -> None:
        for notification in notifications:
            await self.send(notification)
        logger.info("Notify summary: %s", summary)


def status_notification(item_id: str, title: str, status: str) -> Notification:
    body = LOGIN_REQUIRED_BODY if status == LOGIN_REQUIRED else status
    return Notification(title=title, body=body, item_id=item_id)


def summary_text(notifications: list[Notification]) -> str:
    return f"{len(notifications)} envíos actualizados"


def reminder_notification(item_id: str, title: str, eta: datetime, now: datetime) -> Notification:
    """Same-day vs next-day wording by calendar date, not elapsed hours."""
    if eta.date() <= now.date():
        body = "Llega hoy"
    else:
        body = "Llega mañana"
    return Notification(title=title, body=body, item_id=item_id)


async def dispatch(transport: NotificationTransport, notifications: list[Notification]) -> int:
    """One notification alone; two or more individually plus one summary."""
    if not notifications:
        return 0
    if len(notifications) == 1:
        await transport.send(notifications[0])
    else:
        await transport.send_group(notifications, summary_text(notifications))
    return len(notifications)
