"""TCC tracking implementation."""

from parcelsync.carriers.scraper import HtmlScraperCarrier


class TccCarrier(HtmlScraperCarrier):
    """TCC carrier adapter. Bootstrap-styled server-rendered page, no embedded JSON."""

    MAX_STATUS_LENGTH = 100
