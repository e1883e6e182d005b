"""Servientrega tracking implementation."""

import httpx

from parcelsync.carriers.base import BaseCarrier, CarrierConfig, FetchOutcome, NoData, default_client, ensure_ok
from parcelsync.carriers.scraper import EVENTS_KEYS, STATUS_KEYS, first_value, rows_from_json


class ServientregaCarrier(BaseCarrier):
    """Servientrega carrier adapter.

    The public page loads its data from a JSON endpoint of the mobile portal,
    which is queried directly.
    """

    def __init__(self, config: CarrierConfig, client: httpx.AsyncClient | None = None):
        super().__init__(config, client or default_client(accept="application/json"))

    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        response = ensure_ok(
            await self.client.get(
                self.get_tracking_url(tracking_code),
                headers=self.config.options.get("headers", {}),
            )
        )
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        status = first_value(data, ("estadoActual", *STATUS_KEYS))
        movements = first_value(data, EVENTS_KEYS)
        rows = rows_from_json(movements) if isinstance(movements, list) else []
        if not status and not rows:
            return NoData(
                f"{self.id}: JSON API returned no estadoActual/movimientos "
                f"(keys: {', '.join(sorted(data)[:10]) or 'none'})"
            )
        return self.snapshot(status if isinstance(status, str) else None, rows)
