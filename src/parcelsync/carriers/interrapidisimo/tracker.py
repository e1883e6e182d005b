"""Interrapidísimo tracking implementation."""

import logging
from typing import Any

import httpx

from parcelsync.carriers.base import (
    BaseCarrier,
    CarrierConfig,
    FetchOutcome,
    NoData,
    RawEvent,
    default_client,
    ensure_ok,
)
from parcelsync.carriers.scraper import EVENTS_KEYS, STATUS_KEYS, first_value

logger = logging.getLogger(__name__)

TOKEN_KEYS = ("token", "Token", "access_token", "AccessToken")


class InterrapidisimoCarrier(BaseCarrier):
    """Interrapidísimo carrier adapter.

    Two steps: obtain a temporary bearer token with the public app's shared
    credentials, then query the guide tracking API.
    """

    def __init__(self, config: CarrierConfig, client: httpx.AsyncClient | None = None):
        super().__init__(config, client or default_client(accept="application/json"))

    async def _get_token(self) -> str | None:
        response = ensure_ok(
            await self.client.post(
                self.config.options["auth_url"],
                json={
                    "Usuario": self.config.options["app_user"],
                    "Clave": self.config.options["app_password"],
                },
            )
        )
        # Bare token, JSON string or JSON object
        text = response.text.strip()
        if text.startswith("{"):
            value = first_value(response.json(), TOKEN_KEYS)
            return value if isinstance(value, str) else None
        return text.strip('"') or None

    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        token = await self._get_token()
        if not token:
            return NoData(f"{self.id}: token endpoint answered without a token")
        logger.debug("%s: temporary token obtained", self.id)

        response = ensure_ok(
            await self.client.post(
                self.config.options["api_url"],
                json={"NumeroGuia": tracking_code},
                headers={"Authorization": f"Bearer {token}"},
            )
        )
        root = response.json()
        if not isinstance(root, dict):
            raise ValueError(f"expected a JSON object, got {type(root).__name__}")
        if root.get("Success", True) is False:
            return NoData(f"{self.id}: API error: {root.get('Message', 'unknown error')}")

        data = first_value(root, ("Data", "data", "Result"))
        if not isinstance(data, dict):
            data = root

        status = first_value(data, STATUS_KEYS)
        events = first_value(data, EVENTS_KEYS)
        rows = self._rows(events) if isinstance(events, list) else []
        if not status and not rows:
            return NoData(
                f"{self.id}: no Estado/Novedades in API response "
                f"(keys: {', '.join(sorted(data)[:10]) or 'none'})"
            )
        return self.snapshot(status if isinstance(status, str) else None, rows)

    @staticmethod
    def _rows(events: list[Any]) -> list[RawEvent]:
        rows = []
        for event in events:
            if not isinstance(event, dict):
                continue
            description = first_value(event, ("Novedad", "Descripcion", "descripcion", "Estado"))
            if not isinstance(description, str):
                continue
            day = first_value(event, ("Fecha", "fecha")) or ""
            hour = first_value(event, ("Hora", "hora")) or ""
            city = first_value(event, ("Ciudad", "ciudad")) or ""
            rows.append(
                RawEvent(
                    description=description,
                    date_text=f"{day} {hour}".strip(),
                    # "BOGOTA\CUND\COL" style paths
                    location=" ".join(str(city).replace("\\", " ").split()) or None,
                )
            )
        return rows
