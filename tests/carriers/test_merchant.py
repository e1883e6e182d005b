"""Tests for the authenticated merchant scraper."""

from datetime import datetime, timezone

import httpx
from conftest import mock_client

from parcelsync.carriers.base import LoginRequired, NoData, Success, TransientError
from parcelsync.carriers.merchant import FileSessionStore, MerchantScraper, parse_tracking_page

BASE_URL = "https://merchant.test"
NOW = datetime(2026, 1, 16, 15, 0, tzinfo=timezone.utc)

ORDER_PAGE = """
<html><head><title>Order Details</title></head><body>
<a href="/gp/help">Help</a>
<a href="/gp/your-account/ship-track?itemId=abc&amp;orderId=111-1234567-1234567">Track package</a>
</body></html>
"""

TRACKING_PAGE = """
<html><head><title>Your package</title></head><body>
<div class="shipment-top-status">Order details</div>
<span class="arrival-date-text">Arriving tomorrow</span>
<div class="carrier-related-info">Shipped with Servientrega Tracking ID: 912345678</div>
<div class="tracking-event-date">Thursday, January 15</div>
<div class="a-row">
  <span class="tracking-event-time">6:10 PM</span>
  <div class="tracking-event-message">Out for delivery</div>
  <span class="tracking-event-location">Bogotá</span>
</div>
<div class="a-row">
  <span class="tracking-event-time">8:00 AM</span>
  <div class="tracking-event-message">Package arrived at a carrier facility</div>
</div>
</body></html>
"""

SIGN_IN_PAGE = '<html><head><title>Amazon Sign-In</title></head><body><form name="signIn"></form></body></html>'


class MemorySessionStore:
    def __init__(self, session: str | None = "session-id=abc"):
        self.session = session
        self.invalidated = False

    def get_session(self) -> str | None:
        return self.session

    def invalidate_session(self) -> None:
        self.session = None
        self.invalidated = True


def scraper(handler, store: MemorySessionStore) -> MerchantScraper:
    return MerchantScraper(store, client=mock_client(handler, follow_redirects=True), base_url=BASE_URL)


class TestParseTrackingPage:
    def test_generic_heading_is_refined_from_timeline(self):
        outcome = parse_tracking_page(TRACKING_PAGE, now=NOW)

        assert isinstance(outcome, Success)
        snapshot = outcome.snapshot
        assert snapshot.status == "En reparto"
        assert snapshot.sub_carrier == "Servientrega"
        assert snapshot.expected_delivery == datetime(2026, 1, 17, tzinfo=timezone.utc)
        first, second = snapshot.events
        assert first.timestamp == datetime(2026, 1, 15, 18, 10, tzinfo=timezone.utc)
        assert first.location == "Bogotá"
        assert second.timestamp == datetime(2026, 1, 15, 8, 0, tzinfo=timezone.utc)
        assert second.location is None

    def test_empty_page_is_no_data(self):
        outcome = parse_tracking_page("<html><head><title>Hi</title></head><body></body></html>", now=NOW)
        assert isinstance(outcome, NoData)
        assert "'Hi'" in outcome.diagnostic


class TestMerchantScraper:
    async def test_no_session_needs_login_without_requests(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        outcome = await scraper(handler, MemorySessionStore(None)).fetch("TBA123456789012")

        assert isinstance(outcome, LoginRequired)

    async def test_order_number_follows_track_link(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            assert request.headers["Cookie"] == "session-id=abc"
            if request.url.path == "/gp/your-account/order-details":
                return httpx.Response(200, text=ORDER_PAGE)
            return httpx.Response(200, text=TRACKING_PAGE)

        outcome = await scraper(handler, MemorySessionStore()).fetch("111-1234567-1234567")

        assert requested == ["/gp/your-account/order-details", "/gp/your-account/ship-track"]
        assert isinstance(outcome, Success)

    async def test_shipment_id_goes_to_package_tracker(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/progress-tracker/package"
            assert request.url.params["trackingId"] == "TBA123456789012"
            return httpx.Response(200, text=TRACKING_PAGE)

        assert isinstance(await scraper(handler, MemorySessionStore()).fetch("TBA123456789012"), Success)

    async def test_sign_in_page_invalidates_session(self):
        store = MemorySessionStore()
        outcome = await scraper(lambda r: httpx.Response(200, text=SIGN_IN_PAGE), store).fetch("TBA123456789012")

        assert isinstance(outcome, LoginRequired)
        assert store.invalidated

    async def test_sign_in_redirect_on_order_page(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/gp/your-account/order-details":
                return httpx.Response(302, headers={"Location": f"{BASE_URL}/ap/signin?openid=x"})
            return httpx.Response(200, text="<html><body>Welcome</body></html>")

        store = MemorySessionStore()
        outcome = await scraper(handler, store).fetch("111-1234567-1234567")

        assert isinstance(outcome, LoginRequired)
        assert store.invalidated

    async def test_http_error_is_transient(self):
        store = MemorySessionStore()
        outcome = await scraper(lambda r: httpx.Response(503), store).fetch("TBA123456789012")

        assert isinstance(outcome, TransientError)
        assert not store.invalidated


def test_file_session_store(tmp_path):
    store = FileSessionStore(tmp_path / "session.txt")
    assert store.get_session() is None

    store.save_session("session-id=abc\n")
    assert store.get_session() == "session-id=abc"

    store.invalidate_session()
    assert store.get_session() is None
