"""Redpack tracking implementation."""

import logging
import re

from parcelsync.carriers.base import BaseCarrier, FetchOutcome, NoData, ensure_ok
from parcelsync.carriers.scraper import EVENTS_KEYS, STATUS_KEYS, first_value, rows_from_json

logger = logging.getLogger(__name__)

NONCE_RE = re.compile(r"""["']nonce["']\s*:\s*["']([^"']+)["']""")
ACTION_RE = re.compile(r"""["']action["']\s*:\s*["']([^"']+)["']""")


class RedpackCarrier(BaseCarrier):
    """Redpack carrier adapter.

    The tracking page is WordPress: its inline script carries a nonce and the
    AJAX action name, which are posted back to ``admin-ajax.php`` with the
    guide. The answer is JSON.
    """

    async def fetch_raw(self, tracking_code: str) -> FetchOutcome:
        page_url = self.get_tracking_url(tracking_code)
        page = ensure_ok(await self.client.get(page_url)).text

        nonce = NONCE_RE.search(page)
        action = ACTION_RE.search(page)
        logger.debug("%s: nonce found=%s action=%s", self.id, nonce is not None, action and action.group(1))

        data = {
            "action": action.group(1) if action else self.config.options.get("default_action", "redpack_rastreo"),
            "guia": tracking_code,
        }
        if nonce:
            # WordPress handlers read the nonce under any of these names
            for field in ("nonce", "security", "_ajax_nonce"):
                data[field] = nonce.group(1)

        response = ensure_ok(
            await self.client.post(
                self.config.options["ajax_url"],
                data=data,
                headers={
                    "Accept": "application/json, text/javascript, */*",
                    "X-Requested-With": "XMLHttpRequest",
                    "Origin": self.config.website,
                    "Referer": page_url,
                },
            )
        )
        root = response.json()
        if not isinstance(root, dict):
            raise ValueError(f"expected a JSON object, got {type(root).__name__}")

        status, rows = self.parse_result(root)
        if not status and not rows:
            return NoData(
                f"{self.id}: AJAX answer without status or events "
                f"(keys: {', '.join(sorted(root)[:10]) or 'none'})"
            )
        return self.snapshot(status, rows)

    @staticmethod
    def parse_result(root: dict) -> tuple[str | None, list]:
        # wp_send_json_success wraps the payload in "data", which may also be the events list
        data = root.get("data")
        nested = data if isinstance(data, dict) else {}

        status = first_value(root, STATUS_KEYS) or first_value(nested, STATUS_KEYS)
        events = first_value(root, EVENTS_KEYS) or first_value(nested, EVENTS_KEYS)
        if events is None and isinstance(data, list):
            events = data
        rows = rows_from_json(events) if isinstance(events, list) else []
        return (status if isinstance(status, str) else None), rows
