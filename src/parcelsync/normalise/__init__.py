"""Pure normalisation helpers: carrier classification, dates and statuses."""

from parcelsync.normalise.carrier import classify, is_merchant_code
from parcelsync.normalise.dates import parse_date
from parcelsync.normalise.status import (
    ParcelStatus,
    categorise,
    is_delivered,
    is_important,
    normalise_message,
    normalise_tag,
)

__all__ = [
    "ParcelStatus",
    "categorise",
    "classify",
    "is_delivered",
    "is_important",
    "is_merchant_code",
    "normalise_message",
    "normalise_tag",
    "parse_date",
]
