"""Coordinates for timeline locations, looked up on OpenStreetMap Nominatim."""

import logging
from dataclasses import dataclass

import httpx

from parcelsync.carriers.base import TimelineEvent, ensure_ok
from parcelsync.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


class Geocoder:
    """Resolves event locations to coordinates.

    Answers are cached for the life of the process, misses included, so each
    city is looked up once. Network failures are not cached.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        region: str | None = None,
    ):
        self.base_url = base_url or settings.geocoding_url
        self.region = settings.geocoding_region if region is None else region
        # Nominatim's usage policy asks for an identifying User-Agent
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": f"{settings.app_name}/0.1", "Accept": "application/json"},
            timeout=settings.http_timeout_seconds,
        )
        self._cache: dict[str, Coordinates | None] = {}

    def query_for(self, location: str) -> str:
        location = " ".join(location.split())
        if self.region and self.region.lower() not in location.lower():
            return f"{location}, {self.region}"
        return location

    async def locate(self, location: str | None) -> Coordinates | None:
        if not location or not location.strip():
            return None
        query = self.query_for(location)
        key = query.lower()
        if key in self._cache:
            return self._cache[key]

        try:
            response = ensure_ok(
                await self.client.get(self.base_url, params={"q": query, "format": "json", "limit": 1})
            )
            results = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Geocoding failed for %r: %s", query, e)
            return None

        coordinates = None
        if isinstance(results, list) and results:
            try:
                coordinates = Coordinates(float(results[0]["lat"]), float(results[0]["lon"]))
            except (KeyError, TypeError, ValueError):
                logger.debug("Unusable geocoding result for %r: %r", query, results[0])
        self._cache[key] = coordinates
        return coordinates

    async def enrich(self, events: list[TimelineEvent]) -> None:
        """Fill in coordinates on events that have a location but none yet."""
        for event in events:
            if event.latitude is not None or not event.location:
                continue
            coordinates = await self.locate(event.location)
            if coordinates is not None:
                event.latitude = coordinates.latitude
                event.longitude = coordinates.longitude

    async def aclose(self) -> None:
        await self.client.aclose()
