"""Carrier resolution: from a carrier label and a code to a fetch strategy."""

import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from parcelsync.carriers.aggregator import AfterShipClient, AggregatorError
from parcelsync.normalise.carrier import classify, is_merchant_code
from parcelsync.services.carrier_loader import CarrierLoader

logger = logging.getLogger(__name__)

MERCHANT_SLUG = "amazon"
MANUAL_SLUG = "manual"

# Known display names and synonyms -> aggregator slug or direct scraper id.
# Canonical slugs map to themselves so stored slugs resolve without a lookup.
CARRIER_SLUGS: dict[str, str] = {
    # Colombia
    "coordinadora": "coordinadora",
    "servientrega": "servientrega",
    "inter rapidísimo": "interrapidisimo-scraper",
    "inter rapidisimo": "interrapidisimo-scraper",
    "interrapidísimo": "interrapidisimo-scraper",
    "interrapidisimo": "interrapidisimo-scraper",
    "inter-rapidisimo": "interrapidisimo-scraper",
    "interrapidisimo-scraper": "interrapidisimo-scraper",
    "deprisa": "deprisa",
    "envía / colvanes": "envia-co",
    "envía": "envia-co",
    "envia": "envia-co",
    "colvanes": "envia-co",
    "envia-co": "envia-co",
    "tcc": "tcc-co",
    "tcc-co": "tcc-co",
    "clicoh": "logysto",
    "logysto": "logysto",
    "saferbo": "saferbo",
    "472": "472-co",
    "472-co": "472-co",
    "listo": "listo",
    "treda": "treda",
    "speed": "speed-co",
    "speed-co": "speed-co",
    "castores": "castores",
    "avianca cargo": "avianca-cargo",
    "avianca-cargo": "avianca-cargo",
    "la 14": "la-14",
    "la14": "la-14",
    "la-14": "la-14",
    "picap": "picap",
    "mensajeros urbanos": "mensajerosurbanos",
    "mensajerosurbanos": "mensajerosurbanos",
    # Mexico
    "estafeta": "estafeta",
    "redpack": "redpack",
    # Merchant last mile (tracked through the merchant)
    "pasarex": MERCHANT_SLUG,
    "amazon / pasarex": MERCHANT_SLUG,
    # International
    "fedex": "fedex",
    "ups": "ups",
    "usps": "usps",
    "dhl": "dhl",
    "dhl express": "dhl",
    "amazon": MERCHANT_SLUG,
    "amazon logistics": MERCHANT_SLUG,
}

DISPLAY_NAMES: dict[str, str] = {
    "interrapidisimo-scraper": "Interrapidísimo",
    "inter-rapidisimo": "Interrapidísimo",
    "coordinadora": "Coordinadora",
    "servientrega": "Servientrega",
    "envia-co": "Envía",
    "tcc-co": "TCC",
    "472-co": "472",
    "logysto": "Logysto",
    "saferbo": "Saferbo",
    "deprisa": "Deprisa",
    "listo": "Listo",
    "treda": "Treda",
    "speed-co": "Speed",
    "castores": "Castores",
    "avianca-cargo": "Avianca Cargo",
    "la-14": "La 14",
    "picap": "Picap",
    "mensajerosurbanos": "Mensajeros Urbanos",
    "estafeta": "Estafeta",
    "redpack": "Redpack",
    "amazon": "Amazon",
    "fedex": "FedEx",
    "ups": "UPS",
    "usps": "USPS",
    "dhl": "DHL",
    "manual": "Manual",
}


def lookup_slug(label: str | None) -> str | None:
    """Static label -> slug lookup (case-insensitive, trimmed)."""
    if not label:
        return None
    return CARRIER_SLUGS.get(label.strip().lower())


def display_name(slug: str) -> str:
    """User-facing name for a slug; unknown slugs are capitalised."""
    key = slug.strip().lower()
    if key in DISPLAY_NAMES:
        return DISPLAY_NAMES[key]
    return slug[:1].upper() + slug[1:]


class StrategyKind(str, Enum):
    AGGREGATOR = "aggregator"
    MERCHANT = "merchant"
    DIRECT = "direct"
    MANUAL = "manual"


@dataclass(frozen=True)
class FetchStrategy:
    kind: StrategyKind
    slug: str | None = None

    def stored_label(self, current: str | None) -> str:
        """The carrier value to persist on an item currently labelled ``current``.

        A resolved slug replaces the label. A manual strategy keeps whatever
        the user typed, so the item resolves again once a source for it
        exists; only an empty label becomes ``manual``.
        """
        if self.slug:
            return self.slug
        return (current or "").strip() or MANUAL_SLUG


class ResolutionError(Exception):
    """Resolution could not finish because the aggregator was unreachable."""


class CarrierResolver:
    """Picks the source adapter for a tracking code.

    Order: static table, classifier label, aggregator auto-detect; then a
    dedicated direct scraper beats the aggregator, merchant codes go to the
    merchant scraper, anything else with a slug goes to the aggregator.

    Raises ResolutionError when auto-detect fails on the network or with a
    server error, so the caller can retry later instead of giving up.
    """

    def __init__(self, loader: CarrierLoader, aggregator: AfterShipClient | None = None):
        self.loader = loader
        self.aggregator = aggregator

    async def resolve(self, label: str | None, tracking_code: str) -> FetchStrategy:
        tracking_code = tracking_code.strip()
        if label and label.strip().lower() == MANUAL_SLUG:
            return FetchStrategy(StrategyKind.MANUAL)

        slug = lookup_slug(label)

        if slug is None:
            classified = classify(tracking_code)
            slug = lookup_slug(classified)
            if slug:
                logger.debug("Classified %s as %s (%s)", tracking_code, classified, slug)

        if slug is None:
            slug = await self._auto_detect(tracking_code)

        if slug is None:
            if is_merchant_code(tracking_code):
                return FetchStrategy(StrategyKind.MERCHANT, MERCHANT_SLUG)
            return FetchStrategy(StrategyKind.MANUAL)

        if self.loader.has_carrier(slug):
            return FetchStrategy(StrategyKind.DIRECT, slug)
        if slug == MERCHANT_SLUG or is_merchant_code(tracking_code):
            return FetchStrategy(StrategyKind.MERCHANT, MERCHANT_SLUG)
        if self.aggregator is None:
            return FetchStrategy(StrategyKind.MANUAL)
        return FetchStrategy(StrategyKind.AGGREGATOR, slug)

    async def _auto_detect(self, tracking_code: str) -> str | None:
        if self.aggregator is None:
            return None
        try:
            couriers = await self.aggregator.detect_couriers(tracking_code)
        except httpx.HTTPError as e:
            raise ResolutionError(f"auto-detect for {tracking_code}: {e}") from e
        except AggregatorError as e:
            if e.status_code is None or e.status_code >= 500:
                raise ResolutionError(f"auto-detect for {tracking_code}: {e}") from e
            logger.warning("Auto-detect rejected %s: %s", tracking_code, e)
            return None
        if len(couriers) != 1:
            logger.debug("Auto-detect for %s returned %d couriers", tracking_code, len(couriers))
            return None
        logger.info("Auto-detected %s (%s) for %s", couriers[0].name, couriers[0].slug, tracking_code)
        return couriers[0].slug
