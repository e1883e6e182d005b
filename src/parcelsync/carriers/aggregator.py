"""AfterShip v4 client and the aggregator source adapter.

The aggregator only reports on trackings it has been told about, so every
fetch is a create-then-get pair. Creating a tracking that already exists is
the normal case on every refresh after the first one and counts as success.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from parcelsync.carriers.base import (
    PLACEHOLDER_STEP,
    FetchOutcome,
    NoData,
    Success,
    TimelineEvent,
    TrackingSnapshot,
    TransientError,
)
from parcelsync.config import settings
from parcelsync.normalise.dates import parse_date
from parcelsync.normalise.status import normalise_message, normalise_tag

logger = logging.getLogger(__name__)

# Meta codes AfterShip uses for "tracking already exists"
ALREADY_EXISTS_CODES = frozenset({4003, 4009})

NO_DESCRIPTION = "Sin descripción"


class AggregatorError(Exception):
    """Error response from the aggregator API."""

    def __init__(self, message: str, code: int | None = None, status_code: int | None = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class TrackingAlreadyExistsError(AggregatorError):
    """The tracking was already registered.

    AfterShip reports this as meta code 4003/4009 or HTTP 409. Some unrelated
    conflicts share the same status code; they are treated the same way.
    """


@dataclass
class Checkpoint:
    message: str | None = None
    subtag_message: str | None = None
    location: str | None = None
    tag: str | None = None
    checkpoint_time: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Checkpoint":
        location = data.get("location")
        if not location:
            parts = [data.get("city"), data.get("state"), data.get("country_name")]
            location = ", ".join(p for p in parts if p) or None
        return cls(
            message=data.get("message"),
            subtag_message=data.get("subtag_message"),
            location=location,
            tag=data.get("tag"),
            checkpoint_time=data.get("checkpoint_time"),
        )


@dataclass
class AggregatorTracking:
    tag: str
    subtag_message: str | None = None
    expected_delivery: str | None = None
    checkpoints: list[Checkpoint] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AggregatorTracking":
        return cls(
            tag=data.get("tag") or "Pending",
            subtag_message=data.get("subtag_message"),
            expected_delivery=data.get("expected_delivery"),
            checkpoints=[Checkpoint.from_api(c) for c in data.get("checkpoints") or []],
        )


@dataclass
class DetectedCourier:
    slug: str
    name: str


class AfterShipClient:
    """Thin async client for the AfterShip tracking API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.aftership_base_url,
            headers={
                "as-api-key": api_key if api_key is not None else settings.aftership_api_key,
                "Content-Type": "application/json",
            },
            timeout=settings.http_timeout_seconds,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self.client.request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = None
        meta = (body.get("meta") or {}) if isinstance(body, dict) else {}
        code = meta.get("code") or response.status_code
        message = meta.get("message") or response.reason_phrase

        if code in ALREADY_EXISTS_CODES or response.status_code == 409:
            raise TrackingAlreadyExistsError(message, code, response.status_code)
        if not response.is_success or not 200 <= code < 300:
            raise AggregatorError(
                f"{method} {path} failed: {code} {message}", code, response.status_code
            )
        if not isinstance(body, dict):
            raise AggregatorError(f"{method} {path}: malformed body", code, response.status_code)
        return body.get("data") or {}

    async def create_tracking(self, tracking_code: str, slug: str | None = None, title: str | None = None) -> None:
        tracking: dict[str, Any] = {"tracking_number": tracking_code}
        if slug:
            tracking["slug"] = slug
        if title:
            tracking["title"] = title
        await self._request("POST", "trackings", json={"tracking": tracking})

    async def get_tracking_info(self, slug: str, tracking_code: str) -> AggregatorTracking | None:
        data = await self._request("GET", f"trackings/{slug}/{tracking_code}")
        tracking = data.get("tracking")
        return AggregatorTracking.from_api(tracking) if tracking else None

    async def detect_couriers(self, tracking_code: str) -> list[DetectedCourier]:
        data = await self._request(
            "POST", "couriers/detect", json={"tracking": {"tracking_number": tracking_code}}
        )
        return [
            DetectedCourier(slug=c["slug"], name=c.get("name", c["slug"]))
            for c in data.get("couriers") or []
            if c.get("slug")
        ]

    async def aclose(self) -> None:
        await self.client.aclose()


def status_from(tracking: AggregatorTracking) -> str:
    """The translated sub-tag message when translation changed it, else the translated tag."""
    if tracking.subtag_message:
        translated = normalise_message(tracking.subtag_message)
        if translated != tracking.subtag_message:
            return translated
    return normalise_tag(tracking.tag)


def snapshot_from(tracking: AggregatorTracking, now: datetime | None = None) -> TrackingSnapshot:
    now = now or datetime.now(timezone.utc)
    events = []
    for index, checkpoint in enumerate(tracking.checkpoints):
        timestamp = parse_date(checkpoint.checkpoint_time, now=now) or now - index * PLACEHOLDER_STEP
        description = checkpoint.message or checkpoint.subtag_message or NO_DESCRIPTION
        events.append(
            TimelineEvent(
                timestamp=timestamp,
                description=normalise_message(description),
                location=checkpoint.location,
                status=normalise_tag(checkpoint.tag) if checkpoint.tag else None,
            )
        )
    return TrackingSnapshot(
        status=status_from(tracking),
        events=events,
        expected_delivery=parse_date(tracking.expected_delivery, now=now, assume_past=False),
    )


class AggregatorAdapter:
    """Source adapter that fetches one slug through the aggregator."""

    def __init__(self, api: AfterShipClient, slug: str, title: str | None = None):
        self.api = api
        self.slug = slug
        self.title = title

    async def fetch(self, tracking_code: str) -> FetchOutcome:
        tracking_code = tracking_code.strip()
        try:
            try:
                await self.api.create_tracking(tracking_code, self.slug, self.title)
                logger.debug("Tracking created: %s/%s", self.slug, tracking_code)
            except TrackingAlreadyExistsError:
                logger.debug("Tracking already exists: %s/%s", self.slug, tracking_code)
            tracking = await self.api.get_tracking_info(self.slug, tracking_code)
        except AggregatorError as e:
            logger.warning("Aggregator error for %s/%s: %s", self.slug, tracking_code, e)
            return TransientError(str(e))
        except httpx.HTTPError as e:
            logger.warning("Aggregator HTTP error for %s/%s: %s", self.slug, tracking_code, e)
            return TransientError(f"HTTP error: {e}")

        if tracking is None:
            return NoData(f"aggregator: no tracking object for {self.slug}/{tracking_code}")
        return Success(snapshot_from(tracking))
