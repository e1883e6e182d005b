"""Shared scraping strategies for direct carrier adapters.

Carrier pages change without notice, so every scraper tries its sources in a
fixed order and reports which ones it tried when all of them come up empty:

1. Structured data embedded in the page (Next.js ``__NEXT_DATA__``,
   ``application/json`` and ``ld+json`` script blocks), the most reliable
   source when present.
2. CSS selector candidates from ``carrier.yaml`` for the status label and the
   events table, accepting the first plausible match.
"""

import json
import logging
from typing import Any

from bs4 import BeautifulSoup, Tag

from parcelsync.carriers.base import BaseCarrier, FetchOutcome, NoData, RawEvent, ensure_ok

logger = logging.getLogger(__name__)

EMBEDDED_JSON_SELECTORS = (
    "script#__NEXT_DATA__",
    'script[type="application/json"]',
    'script[type="application/ld+json"]',
)

STATUS_KEYS = ("estado", "Estado", "estadoActual", "estado_actual", "status", "statusCode", "trackingStatus", "EstadoGuia")
EVENTS_KEYS = ("novedades", "Novedades", "events", "eventos", "Eventos", "eventos_rastreo", "movimientos", "history", "trackingHistory")
DATE_KEYS = ("fecha_hora", "fecha", "Fecha", "date", "createdAt", "timestamp", "hora")
DESCRIPTION_KEYS = ("descripcion", "Descripcion", "description", "novedad", "Novedad", "movimiento", "event", "estado", "status")
LOCATION_KEYS = ("ciudad", "Ciudad", "city", "ubicacion", "location", "place")

DEFAULT_BOILERPLATE = (
    "rastrea tu envío",
    "rastreo de guía",
    "número de guía",
    "track your shipment",
    "iniciar sesión",
    "cookies",
)

DIAGNOSTIC_SNIPPET_CHARS = 200


def first_value(data: dict[str, Any], keys: tuple[str, ...] | list[str]) -> Any:
    """Return the first non-blank value among candidate keys."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            if value.strip():
                return value.strip()
        elif value not in (None, [], {}):
            return value
    return None


def rows_from_json(items: list[Any]) -> list[RawEvent]:
    """Turn a list of JSON event objects into raw timeline rows."""
    rows = []
    for item in items:
        if not isinstance(item, dict):
            continue
        description = first_value(item, DESCRIPTION_KEYS)
        if not description or not isinstance(description, str):
            continue
        rows.append(
            RawEvent(
                description=description,
                date_text=str(first_value(item, DATE_KEYS) or ""),
                location=first_value(item, LOCATION_KEYS),
            )
        )
    return rows


def tracking_from_json(data: dict[str, Any]) -> tuple[str | None, list[RawEvent]]:
    """Extract (status, rows) from a tracking object using the candidate keys."""
    status = first_value(data, STATUS_KEYS)
    events = first_value(data, EVENTS_KEYS)
    rows = rows_from_json(events) if isinstance(events, list) else []
    return (status if isinstance(status, str) else None), rows


def _walk(data: Any, path: list[str]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class HtmlScraperCarrier(BaseCarrier):
    """Direct scraper for carriers with a public HTML tracking page."""

    MIN_STATUS_LENGTH = 4
    MAX_STATUS_LENGTH = 80

    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        response = ensure_ok(await self.client.get(self.get_tracking_url(tracking_code)))
        return self.parse_page(response.text)

    def parse_page(self, html: str) -> FetchOutcome:
        soup = BeautifulSoup(html, "lxml")

        structured = self._from_embedded_json(soup)
        if structured is not None:
            status, rows = structured
            logger.debug("%s: embedded JSON status=%s events=%d", self.id, status, len(rows))
            return self.snapshot(status, rows)

        status = self._status_from_selectors(soup)
        rows = self._events_from_selectors(soup)
        if status is None and not rows:
            snippet = " ".join(soup.get_text(" ", strip=True).split())[:DIAGNOSTIC_SNIPPET_CHARS]
            return NoData(
                f"{self.id}: embedded JSON ({len(self.config.embedded_json_paths)} paths) "
                f"and selectors ({len(self.config.status_selectors)} status, "
                f"{len(self.config.event_selectors)} events) found nothing; "
                f"page {len(html)} chars: {snippet!r}"
            )
        return self.snapshot(status, rows)

    def _from_embedded_json(self, soup: BeautifulSoup) -> tuple[str | None, list[RawEvent]] | None:
        if not self.config.embedded_json_paths:
            return None
        for selector in EMBEDDED_JSON_SELECTORS:
            for script in soup.select(selector):
                try:
                    data = json.loads(script.string or "")
                except ValueError:
                    continue
                for path in self.config.embedded_json_paths:
                    tracking = _walk(data, path)
                    if not isinstance(tracking, dict):
                        continue
                    status, rows = tracking_from_json(tracking)
                    if status or rows:
                        return status, rows
        return None

    def is_plausible_status(self, text: str) -> bool:
        if not self.MIN_STATUS_LENGTH <= len(text) <= self.MAX_STATUS_LENGTH:
            return False
        lower = text.lower()
        boilerplate = self.config.boilerplate or DEFAULT_BOILERPLATE
        return not any(phrase in lower for phrase in boilerplate)

    def _status_from_selectors(self, soup: BeautifulSoup) -> str | None:
        for selector in self.config.status_selectors:
            element = soup.select_one(selector)
            if element is None:
                continue
            text = " ".join(element.get_text(" ", strip=True).split())
            if self.is_plausible_status(text):
                logger.debug("%s: status from %r: %s", self.id, selector, text)
                return text
        return None

    def _events_from_selectors(self, soup: BeautifulSoup) -> list[RawEvent]:
        columns = self.config.options.get("columns", ["date", "description", "location"])
        for selector in self.config.event_selectors:
            container = soup.select_one(selector)
            if container is None:
                continue
            rows = self._table_rows(container, columns) or self._list_rows(container)
            if rows:
                logger.debug("%s: %d events from %r", self.id, len(rows), selector)
                return rows
        return []

    @staticmethod
    def _table_rows(container: Tag, columns: list[str]) -> list[RawEvent]:
        rows = []
        for tr in container.select("tr"):
            cells = [" ".join(td.get_text(" ", strip=True).split()) for td in tr.find_all("td")]
            if len(cells) < 2:
                continue
            values = dict(zip(columns, cells))
            description = values.get("description", "")
            if not description:
                continue
            rows.append(
                RawEvent(
                    description=description,
                    date_text=values.get("date", ""),
                    location=values.get("location") or None,
                )
            )
        return rows

    @staticmethod
    def _list_rows(container: Tag) -> list[RawEvent]:
        rows = []
        for item in container.select("li, [class*=novedad], [class*=evento]"):
            text = " ".join(item.get_text(" ", strip=True).split())
            if text:
                rows.append(RawEvent(description=text))
        return rows
