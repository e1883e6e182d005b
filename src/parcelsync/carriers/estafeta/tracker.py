"""Estafeta tracking implementation."""

import logging
import re
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from parcelsync.carriers.base import FetchOutcome, NoData, ensure_ok
from parcelsync.carriers.scraper import HtmlScraperCarrier

logger = logging.getLogger(__name__)

PORTLET_ID_RE = re.compile(r"p_p_id=([A-Za-z0-9_]+)")
P_AUTH_RE = re.compile(r"p_auth=([A-Za-z0-9_\-]+)")


class EstafetaCarrier(HtmlScraperCarrier):
    """Estafeta carrier adapter.

    The tracking tool is a Liferay portlet: the page is fetched first to learn
    the portlet namespace and the ``p_auth`` token, then the guide is posted
    to the portlet form and the result page is scraped like any other.
    The client keeps the session cookies between the two requests.
    """

    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        page_url = self.get_tracking_url(tracking_code)
        page = ensure_ok(await self.client.get(page_url))

        form = self.find_form(page.text, page_url)
        if form is None:
            return NoData(f"{self.id}: no rastreo portlet on the tracking page ({len(page.text)} chars)")
        action, namespace = form
        logger.debug("%s: portlet %s, posting to %s", self.id, namespace, action)

        response = ensure_ok(
            await self.client.post(
                action,
                data={
                    f"{namespace}_wayBillType": self.config.options.get("way_bill_type", "1"),
                    f"{namespace}_wayBillNumbers": tracking_code,
                },
                headers={"Origin": self.config.website, "Referer": page_url},
            )
        )
        return self.parse_page(response.text)

    @staticmethod
    def find_form(html: str, page_url: str) -> tuple[str, str] | None:
        """(action URL, portlet namespace) of the tracking form, if the page has one."""
        soup = BeautifulSoup(html, "lxml")
        form = soup.select_one('form[action*="p_p_id="]')
        if form is not None:
            action = urljoin(page_url, form["action"])
            namespace = parse_qs(urlparse(action).query).get("p_p_id", [None])[0]
            if namespace:
                return action, namespace

        match = PORTLET_ID_RE.search(html)
        if match is None:
            return None
        namespace = match.group(1)
        action = (
            f"{page_url}?p_p_id={namespace}&p_p_lifecycle=1&p_p_state=normal"
            "&p_p_mode=view&p_p_col_id=column-1&p_p_col_count=1"
        )
        p_auth = P_AUTH_RE.search(html)
        if p_auth:
            action += f"&p_auth={p_auth.group(1)}"
        return action, namespace
