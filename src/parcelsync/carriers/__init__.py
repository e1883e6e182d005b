"""Tracking sources: aggregator API, merchant scraper and direct carrier scrapers."""

from parcelsync.carriers.base import (
    BaseCarrier,
    CarrierConfig,
    FetchOutcome,
    LoginRequired,
    NoData,
    SourceAdapter,
    Success,
    TimelineEvent,
    TrackingSnapshot,
    TransientError,
)

__all__ = [
    "BaseCarrier",
    "CarrierConfig",
    "FetchOutcome",
    "LoginRequired",
    "NoData",
    "SourceAdapter",
    "Success",
    "TimelineEvent",
    "TrackingSnapshot",
    "TransientError",
]
