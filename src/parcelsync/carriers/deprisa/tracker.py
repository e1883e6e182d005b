"""Deprisa tracking implementation."""

from parcelsync.carriers.scraper import HtmlScraperCarrier


class DeprisaCarrier(HtmlScraperCarrier):
    """Deprisa carrier adapter (Avianca's courier).

    Public page at ``/rastrear/?guia=``; embedded JSON first, then the
    events table or the novedad/evento blocks.
    """

    MAX_STATUS_LENGTH = 100
