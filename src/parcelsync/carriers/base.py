"""Base classes and result types shared by every tracking source."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol, TypeAlias

import httpx
import yaml

from parcelsync.config import settings
from parcelsync.normalise.dates import parse_date
from parcelsync.normalise.status import TRACKING, normalise_message

logger = logging.getLogger(__name__)

# Spacing of synthetic timestamps for events without a parseable date
PLACEHOLDER_STEP = timedelta(hours=1)


@dataclass
class TimelineEvent:
    """One normalised timeline entry."""

    timestamp: datetime
    description: str
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    status: str | None = None


@dataclass
class TrackingSnapshot:
    """Result of a single successful fetch. Replaces, never merges with, stored data."""

    status: str
    events: list[TimelineEvent] = field(default_factory=list)
    expected_delivery: datetime | None = None
    sub_carrier: str | None = None


@dataclass
class Success:
    snapshot: TrackingSnapshot


@dataclass
class LoginRequired:
    reason: str = "Sign-in required"


@dataclass
class TransientError:
    """Network or HTTP failure; eligible for the sync job's retry policy."""

    reason: str


@dataclass
class NoData:
    """The source answered but nothing parseable was found.

    The diagnostic names the strategies that were tried, so a silent
    upstream layout change can be told apart from a missing parcel.
    """

    diagnostic: str


FetchOutcome: TypeAlias = Success | LoginRequired | TransientError | NoData


class SourceAdapter(Protocol):
    """Anything that can fetch a tracking code into a FetchOutcome."""

    async def fetch(self, tracking_code: str) -> FetchOutcome: ...


@dataclass
class RawEvent:
    """A timeline row as scraped, before date and message normalisation."""

    description: str
    date_text: str = ""
    location: str | None = None
    status: str | None = None
    latitude: float | None = None
    longitude: float | None = None


def build_timeline(
    rows: list[RawEvent],
    now: datetime | None = None,
    hint: str | None = "es",
) -> list[TimelineEvent]:
    """Normalise scraped rows into timeline events.

    Rows whose date cannot be parsed get ``now - index hours`` so the
    upstream order (newest first) survives.
    """
    now = now or datetime.now(timezone.utc)
    events = []
    for index, row in enumerate(rows):
        timestamp = parse_date(row.date_text, hint, now=now)
        if timestamp is None:
            if row.date_text:
                logger.debug("Unparseable date %r, using placeholder", row.date_text)
            timestamp = now - index * PLACEHOLDER_STEP
        events.append(
            TimelineEvent(
                timestamp=timestamp,
                description=normalise_message(row.description),
                location=row.location or None,
                latitude=row.latitude,
                longitude=row.longitude,
                status=normalise_message(row.status) if row.status else None,
            )
        )
    return events


@dataclass
class CarrierConfig:
    """Configuration loaded from carrier.yaml."""

    id: str
    name: str
    website: str
    tracking_url_template: str
    status_selectors: list[str] = field(default_factory=list)
    event_selectors: list[str] = field(default_factory=list)
    embedded_json_paths: list[list[str]] = field(default_factory=list)
    boilerplate: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "CarrierConfig":
        """Load carrier configuration from a YAML file."""
        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls(
            id=data["id"],
            name=data["name"],
            website=data["website"],
            tracking_url_template=data.get("tracking_url_template", ""),
            status_selectors=data.get("status_selectors", []),
            event_selectors=data.get("event_selectors", []),
            embedded_json_paths=data.get("embedded_json_paths", []),
            boilerplate=data.get("boilerplate", []),
            options=data.get("options", {}),
            enabled=data.get("enabled", True),
        )


def default_client(accept: str = "text/html,application/xhtml+xml,*/*;q=0.8") -> httpx.AsyncClient:
    """HTTP client with the browser-like headers carrier sites expect."""
    return httpx.AsyncClient(
        headers={
            "User-Agent": settings.user_agent,
            "Accept": accept,
            "Accept-Language": "es-CO,es;q=0.9,en;q=0.8",
        },
        follow_redirects=True,
        timeout=settings.http_timeout_seconds,
    )


class BaseCarrier(ABC):
    """Abstract base class for direct carrier scrapers.

    To add a carrier scraper:
    1. Create a directory in /carriers/ named after the carrier slug
    2. Add a carrier.yaml with its configuration and selector candidates
    3. Create a tracker.py that subclasses BaseCarrier (or HtmlScraperCarrier)
    4. Implement fetch_raw, or rely on the HTML strategies
    """

    def __init__(self, config: CarrierConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self.client = client or default_client()

    @property
    def id(self) -> str:
        return self.config.id

    def get_tracking_url(self, tracking_code: str) -> str:
        """Get the URL to track a parcel on the carrier's website."""
        return self.config.tracking_url_template.format(tracking_number=tracking_code)

    def snapshot(self, status: str | None, rows: list[RawEvent]) -> FetchOutcome:
        """Build a normalised outcome from a scraped status and timeline."""
        if not status and not rows:
            return NoData(f"{self.id}: no status or events")
        events = build_timeline(rows)
        canonical = normalise_message(status) if status else TRACKING
        return Success(TrackingSnapshot(status=canonical, events=events))

    async def fetch(self, tracking_code: str) -> FetchOutcome:
        tracking_code = tracking_code.strip()
        try:
            outcome = await self.fetch_raw(tracking_code)
        except httpx.HTTPError as e:
            logger.warning("%s: HTTP error for %s: %s", self.id, tracking_code, e)
            return TransientError(f"HTTP error: {e}")
        except ValueError as e:
            logger.warning("%s: malformed response for %s: %s", self.id, tracking_code, e)
            return TransientError(f"Malformed response: {e}")

        if isinstance(outcome, NoData):
            logger.warning("%s: no data for %s (%s)", self.id, tracking_code, outcome.diagnostic)
        elif isinstance(outcome, Success):
            logger.debug(
                "%s: %s -> %s (%d events)",
                self.id, tracking_code, outcome.snapshot.status, len(outcome.snapshot.events),
            )
        return outcome

    @abstractmethod
    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        """Fetch and parse the carrier's page or API.

        httpx errors and ValueError (bad JSON) raised here are turned into
        TransientError by fetch().
        """

    async def aclose(self) -> None:
        await self.client.aclose()


def ensure_ok(response: httpx.Response) -> httpx.Response:
    """Raise for non-2xx responses so they surface as TransientError."""
    response.raise_for_status()
    return response
