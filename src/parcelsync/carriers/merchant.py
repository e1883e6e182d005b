"""Authenticated merchant order-tracking scraper.

The merchant only shows tracking to a signed-in customer. A session cookie
blob is captured out of band (by whatever handles the interactive sign-in)
and handed to this adapter through a SessionStore. When the merchant answers
with a sign-in page the session is invalidated and the item is flagged
``LOGIN_REQUIRED``; nothing here ever retries a login.
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from parcelsync.carriers.base import (
    FetchOutcome,
    LoginRequired,
    NoData,
    RawEvent,
    Success,
    TrackingSnapshot,
    TransientError,
    build_timeline,
    default_client,
    ensure_ok,
)
from parcelsync.config import settings
from parcelsync.normalise.carrier import MERCHANT_ORDER_RE
from parcelsync.normalise.dates import parse_arrival
from parcelsync.normalise.status import normalise_message

logger = logging.getLogger(__name__)

ORDER_DETAILS_PATH = "/gp/your-account/order-details?orderID={code}"
SHIP_TRACK_PATH = "/gp/your-account/ship-track?orderId={code}"
PACKAGE_TRACK_PATH = "/progress-tracker/package?trackingId={code}"

TRACK_LINK_TEXTS = (
    "track package",
    "rastrear paquete",
    "seguir paquete",
    "ver seguimiento",
)
TRACK_LINK_HREFS = ("ship-track", "progress-tracker")

# Primary status header first, progress-bar label last
STATUS_SELECTORS = (
    "div.shipment-top-status",
    "h3.a-spacing-small",
    "h2.a-color-state",
    "div.js-shipment-info-container h2",
    "div.pt-delivery-card-primary-status",
    "h1.a-spacing-small",
    "div.shipment-status",
    "span.shipment-status-label",
    "div.milestone-primaryMessage",
    "h1",
)
EVENT_MESSAGE_SELECTORS = ("div.tracking-event-message", "div.transport-event-message")
ARRIVAL_SELECTORS = ("span.arrival-date-text", "span.promise-date")
CARRIER_INFO_SELECTORS = (".carrier-related-info", "[id*=carrierRelatedInfo]", ".pt-delivery-card-carrier")

GENERIC_HEADINGS = ("detalles del pedido", "resumen del pedido", "order details", "order summary")

# Last resort when only a generic heading was found: (body keyword, status)
BODY_KEYWORDS = (
    ("entregado", "Entregado"),
    ("llega mañana", "Llega mañana"),
    ("llega hoy", "Llega hoy"),
    ("en camino", "En camino"),
    ("en tránsito", "En tránsito"),
    ("tu paquete", "En reparto"),
)

SUB_CARRIER_RE = re.compile(
    r"(?:shipped with|enviado con|transportado por)\s+(.+?)"
    r"(?:\s+(?:tracking id|id de rastreo|número de seguimiento)\b.*)?$",
    re.IGNORECASE,
)
SIGN_IN_TITLES = ("sign-in", "sign in", "iniciar sesión")


class SessionStore(Protocol):
    """Holds the merchant session captured out of band."""

    def get_session(self) -> str | None: ...

    def invalidate_session(self) -> None: ...


class FileSessionStore:
    """Session cookie blob kept in a file under the data directory."""

    def __init__(self, path: Path | None = None):
        self.path = path or settings.data_dir / settings.merchant_session_file

    def get_session(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8").strip() or None

    def save_session(self, cookies: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(cookies.strip(), encoding="utf-8")

    def invalidate_session(self) -> None:
        self.path.unlink(missing_ok=True)
        logger.info("Merchant session invalidated")


def _text(element) -> str:
    return " ".join(element.get_text(" ", strip=True).split()) if element is not None else ""


def is_sign_in_page(soup: BeautifulSoup, url: httpx.URL | str = "") -> bool:
    if "/ap/signin" in str(url):
        return True
    title = soup.title.get_text(strip=True).lower() if soup.title else ""
    if any(marker in title for marker in SIGN_IN_TITLES):
        return True
    return soup.select_one("form[name=signIn]") is not None


def find_track_link(soup: BeautifulSoup) -> str | None:
    """Locate the track-package link on an order details page."""
    for link in soup.find_all("a", href=True):
        if _text(link).lower() in TRACK_LINK_TEXTS:
            return link["href"]
    for link in soup.find_all("a", href=True):
        if any(part in link["href"] for part in TRACK_LINK_HREFS):
            return link["href"]
    return None


def _status(soup: BeautifulSoup) -> str | None:
    status = ""
    for selector in STATUS_SELECTORS:
        status = _text(soup.select_one(selector))
        if status:
            break

    lower = status.lower()
    if lower and not any(h in lower for h in GENERIC_HEADINGS):
        return status

    # Generic or missing heading: refine from the latest timeline message
    for selector in EVENT_MESSAGE_SELECTORS:
        message = _text(soup.select_one(selector))
        if message:
            return message
    if status:
        body = _text(soup.body).lower()
        for keyword, label in BODY_KEYWORDS:
            if keyword in body:
                return label
    return status or None


def _timeline(soup: BeautifulSoup) -> list[RawEvent]:
    """Timeline rows in page order (newest first); date headers apply to the rows below them."""
    rows = []
    current_date = ""
    for element in soup.select(".tracking-event-date, .tracking-event-message"):
        if "tracking-event-date" in element.get("class", []):
            current_date = _text(element)
            continue
        message = _text(element)
        if not message:
            continue
        row = element.find_parent(class_="a-row") or element.parent
        clock = _text(row.select_one(".tracking-event-time")) if row else ""
        location = _text(row.select_one(".tracking-event-location")) if row else ""
        rows.append(
            RawEvent(
                description=message,
                date_text=f"{current_date} {clock}".strip(),
                location=location or None,
            )
        )
    return rows


def _sub_carrier(soup: BeautifulSoup) -> str | None:
    for selector in CARRIER_INFO_SELECTORS:
        match = SUB_CARRIER_RE.search(_text(soup.select_one(selector)))
        if match:
            return match.group(1).strip(" .")
    return None


def parse_tracking_page(html: str, now: datetime | None = None) -> FetchOutcome:
    """Extract status, arrival estimate and timeline from a merchant tracking page."""
    now = now or datetime.now(timezone.utc)
    soup = BeautifulSoup(html, "lxml")
    status = _status(soup)
    rows = _timeline(soup)
    if not status and not rows:
        title = soup.title.get_text(strip=True) if soup.title else ""
        return NoData(
            f"merchant: {len(STATUS_SELECTORS)} status selectors and timeline rows "
            f"found nothing; page {len(html)} chars, title {title!r}"
        )

    arrival = ""
    for selector in ARRIVAL_SELECTORS:
        arrival = _text(soup.select_one(selector))
        if arrival:
            break

    return Success(
        TrackingSnapshot(
            status=normalise_message(status) if status else normalise_message(rows[0].description),
            events=build_timeline(rows, now=now, hint=None),
            expected_delivery=parse_arrival(arrival, now=now),
            sub_carrier=_sub_carrier(soup),
        )
    )


class MerchantScraper:
    """Source adapter for the merchant's authenticated order tracking."""

    def __init__(
        self,
        session_store: SessionStore | None = None,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
    ):
        self.session_store = session_store or FileSessionStore()
        self.client = client or default_client()
        self.base_url = base_url or settings.merchant_base_url

    async def fetch(self, tracking_code: str) -> FetchOutcome:
        tracking_code = tracking_code.strip()
        session = self.session_store.get_session()
        if not session:
            return LoginRequired("No merchant session")
        headers = {"Cookie": session}

        try:
            if MERCHANT_ORDER_RE.fullmatch(tracking_code):
                tracking_url = await self._tracking_url_for_order(tracking_code, headers)
                if tracking_url is None:
                    return self._login_required(tracking_code)
            else:
                tracking_url = urljoin(self.base_url, PACKAGE_TRACK_PATH.format(code=tracking_code))

            response = ensure_ok(await self.client.get(tracking_url, headers=headers))
        except httpx.HTTPError as e:
            logger.warning("Merchant HTTP error for %s: %s", tracking_code, e)
            return TransientError(f"HTTP error: {e}")

        if is_sign_in_page(BeautifulSoup(response.text, "lxml"), response.url):
            return self._login_required(tracking_code)

        outcome = parse_tracking_page(response.text)
        if isinstance(outcome, NoData):
            logger.warning("Merchant: no data for %s (%s)", tracking_code, outcome.diagnostic)
        return outcome

    async def _tracking_url_for_order(self, order_id: str, headers: dict[str, str]) -> str | None:
        """Follow the order details page to its tracking page; None on a sign-in page."""
        url = urljoin(self.base_url, ORDER_DETAILS_PATH.format(code=order_id))
        response = ensure_ok(await self.client.get(url, headers=headers))
        soup = BeautifulSoup(response.text, "lxml")
        if is_sign_in_page(soup, response.url):
            return None

        href = find_track_link(soup)
        if href is None:
            logger.debug("No track link on order %s, using ship-track page", order_id)
            return urljoin(self.base_url, SHIP_TRACK_PATH.format(code=order_id))
        return urljoin(str(response.url), href)

    def _login_required(self, tracking_code: str) -> LoginRequired:
        logger.warning("Merchant sign-in page for %s, invalidating session", tracking_code)
        self.session_store.invalidate_session()
        return LoginRequired("Merchant session expired")

    async def aclose(self) -> None:
        await self.client.aclose()
