"""Envía tracking implementation."""

import httpx

from parcelsync.carriers.base import BaseCarrier, CarrierConfig, FetchOutcome, NoData, default_client, ensure_ok
from parcelsync.carriers.scraper import tracking_from_json


class EnviaCarrier(BaseCarrier):
    """Envía carrier adapter, backed by the landing page's general-track API."""

    def __init__(self, config: CarrierConfig, client: httpx.AsyncClient | None = None):
        super().__init__(config, client or default_client(accept="application/json"))

    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        response = ensure_ok(
            await self.client.post(
                self.config.options["api_url"],
                json={"trackingNumbers": [tracking_code]},
                headers={
                    "Origin": self.config.website,
                    "Referer": self.get_tracking_url(tracking_code),
                },
            )
        )
        data = response.json()
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        if not data or not isinstance(data[0], dict):
            return NoData(f"{self.id}: general-track API returned an empty array")

        status, rows = tracking_from_json(data[0])
        if not status and not rows:
            return NoData(
                f"{self.id}: no status or events in general-track item "
                f"(keys: {', '.join(sorted(data[0])[:10]) or 'none'})"
            )
        return self.snapshot(status, rows)
