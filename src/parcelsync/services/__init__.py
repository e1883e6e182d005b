"""Services package."""

from parcelsync.services.carrier_loader import CarrierLoader
from parcelsync.services.resolver import CarrierResolver, FetchStrategy, StrategyKind
from parcelsync.services.sync import SyncEngine, SyncJob
from parcelsync.services.tracker import CandidateCode, TrackerService

__all__ = [
    "CandidateCode",
    "CarrierLoader",
    "CarrierResolver",
    "FetchStrategy",
    "StrategyKind",
    "SyncEngine",
    "SyncJob",
    "TrackerService",
]
