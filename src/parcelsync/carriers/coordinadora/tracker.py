"""Coordinadora tracking implementation."""

from parcelsync.carriers.scraper import HtmlScraperCarrier


class CoordinadoraCarrier(HtmlScraperCarrier):
    """Coordinadora carrier adapter.

    The public tracking page is a Next.js app; the server-rendered
    ``__NEXT_DATA__`` block usually carries the full tracking object and the
    HTML selectors are only a fallback.
    """
