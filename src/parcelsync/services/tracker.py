"""Service for tracking parcels: resolve a strategy, fetch, store the snapshot."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from parcelsync.carriers.aggregator import AggregatorAdapter
from parcelsync.carriers.base import FetchOutcome, LoginRequired, NoData, SourceAdapter, Success, TransientError
from parcelsync.carriers.merchant import MerchantScraper
from parcelsync.db.models import TrackedItem
from parcelsync.db.store import ItemStore
from parcelsync.normalise.carrier import classify
from parcelsync.normalise.status import LOGIN_REQUIRED, MANUAL, NO_DATA_YET, REGISTERING
from parcelsync.services.geocoding import Geocoder
from parcelsync.services.resolver import CarrierResolver, FetchStrategy, ResolutionError, StrategyKind

logger = logging.getLogger(__name__)

# Placeholder titles written by older clients
GENERIC_TITLES = frozenset({"", "Envío sin título"})

MIN_CANDIDATE_LENGTH = 8

# Slugs the aggregator does not know about
SCRAPER_ONLY_SUFFIX = "-scraper"


@dataclass
class CandidateCode:
    """A tracking code offered by a mailbox scanner."""

    tracking_code: str
    carrier_hint: str | None = None
    title: str | None = None


@dataclass
class RefreshResult:
    item_id: str
    title: str
    old_status: str
    new_status: str
    outcome: FetchOutcome | None = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


class TrackerService:
    """Fetch orchestrator for tracked items."""

    def __init__(
        self,
        store: ItemStore,
        resolver: CarrierResolver,
        merchant: MerchantScraper | None = None,
        geocoder: Geocoder | None = None,
    ):
        self.store = store
        self.resolver = resolver
        self.loader = resolver.loader
        self.aggregator = resolver.aggregator
        self.merchant = merchant or MerchantScraper()
        self.geocoder = geocoder

    async def add_item(
        self,
        tracking_code: str,
        carrier_hint: str | None = None,
        title: str | None = None,
    ) -> TrackedItem:
        """Register a new item and run its first fetch."""
        tracking_code = tracking_code.strip()
        item = TrackedItem(
            tracking_code=tracking_code,
            carrier=(carrier_hint or "").strip(),
            title=(title or "").strip() or tracking_code,
            status=REGISTERING,
            last_update=datetime.now(timezone.utc),
        )
        item = await self.store.add(item)
        logger.info("Added item %s (%s)", item.id, tracking_code)

        result = await self.refresh_item(item.id)
        if result is not None and isinstance(result.outcome, (NoData, TransientError)):
            await self.store.set_status(item.id, NO_DATA_YET)
        return await self.store.get(item.id) or item

    async def import_candidates(self, candidates: list[CandidateCode]) -> list[TrackedItem]:
        """Add codes found by a mailbox scanner, skipping short and already tracked ones."""
        added = []
        seen: set[str] = set()
        for candidate in candidates:
            code = candidate.tracking_code.strip()
            if len(code) < MIN_CANDIDATE_LENGTH or code.upper() in seen:
                logger.debug("Skipping candidate %r", code)
                continue
            seen.add(code.upper())
            if await self.store.find_by_code(code) is not None:
                logger.debug("Candidate %s already tracked", code)
                continue
            hint = candidate.carrier_hint or classify(code)
            added.append(await self.add_item(code, hint, candidate.title))
        return added

    async def refresh_item(self, item_id: str, now: datetime | None = None) -> RefreshResult | None:
        """Fetch one item and store the outcome.

        Adapter failures never raise: LoginRequired stores the sentinel status,
        NoData and transient errors leave the item untouched.
        """
        item = await self.store.get(item_id)
        if item is None:
            return None
        now = now or datetime.now(timezone.utc)

        title = item.title
        if title.strip() in GENERIC_TITLES:
            title = item.tracking_code
            await self.store.rename(item.id, title)

        try:
            strategy = await self.resolver.resolve(item.carrier, item.tracking_code)
        except ResolutionError as e:
            logger.warning("Could not resolve a source for %s: %s", item.id, e)
            return RefreshResult(item.id, title, item.status, item.status, TransientError(str(e)))

        label = strategy.stored_label(item.carrier)
        if label != item.carrier:
            logger.info("Correcting carrier of %s: %r -> %r", item.id, item.carrier, label)
            await self.store.set_carrier(item.id, label)

        result = RefreshResult(item.id, title, item.status, item.status)
        if strategy.kind is StrategyKind.MANUAL:
            if item.status != MANUAL:
                await self.store.set_status(item.id, MANUAL)
                result.new_status = MANUAL
            return result

        outcome = await self._fetch(strategy, item.tracking_code, title)
        result.outcome = outcome

        if isinstance(outcome, Success):
            if self.geocoder is not None:
                await self.geocoder.enrich(outcome.snapshot.events)
            applied = await self.store.apply_snapshot(item.id, outcome.snapshot, now)
            if applied is not None:
                result.old_status = applied.old_status
                result.new_status = applied.new_status
        elif isinstance(outcome, LoginRequired):
            logger.warning("Login required for %s: %s", item.id, outcome.reason)
            await self.store.set_status(item.id, LOGIN_REQUIRED)
            result.new_status = LOGIN_REQUIRED
        elif isinstance(outcome, NoData):
            logger.info("No data for %s, keeping status %r", item.id, item.status)
        else:
            logger.info("Transient error for %s: %s", item.id, outcome.reason)
        return result

    async def _fetch(self, strategy: FetchStrategy, tracking_code: str, title: str) -> FetchOutcome:
        outcome = await self._adapter(strategy, title).fetch(tracking_code)
        if (
            strategy.kind is StrategyKind.DIRECT
            and isinstance(outcome, (NoData, TransientError))
            and self.aggregator is not None
            and not strategy.slug.endswith(SCRAPER_ONLY_SUFFIX)
        ):
            logger.info("Direct scraper %s failed, trying the aggregator", strategy.slug)
            fallback = await AggregatorAdapter(self.aggregator, strategy.slug, title).fetch(tracking_code)
            if isinstance(fallback, Success):
                return fallback
        return outcome

    def _adapter(self, strategy: FetchStrategy, title: str) -> SourceAdapter:
        if strategy.kind is StrategyKind.DIRECT:
            return self.loader.get_carrier(strategy.slug)
        if strategy.kind is StrategyKind.MERCHANT:
            return self.merchant
        return AggregatorAdapter(self.aggregator, strategy.slug, title)

    async def aclose(self) -> None:
        await self.merchant.aclose()
        await self.loader.aclose()
        if self.geocoder is not None:
            await self.geocoder.aclose()
        if self.aggregator is not None:
            await self.aggregator.aclose()

