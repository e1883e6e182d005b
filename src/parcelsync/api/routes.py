"""API routes for tracked items."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from parcelsync.db.models import TrackedItem
from parcelsync.db.store import as_utc
from parcelsync.normalise.carrier import classify
from parcelsync.services.carrier_loader import carrier_loader
from parcelsync.services.resolver import display_name, lookup_slug
from parcelsync.services.sync import SyncJob
from parcelsync.services.tracker import CandidateCode, TrackerService

router = APIRouter(prefix="/api")


class ItemCreate(BaseModel):
    tracking_code: str
    carrier: str | None = None
    title: str | None = None


class ItemUpdate(BaseModel):
    title: str | None = None
    carrier: str | None = None


class CandidateIn(BaseModel):
    tracking_code: str
    carrier_hint: str | None = None
    title: str | None = None


def get_tracker(request: Request) -> TrackerService:
    return request.app.state.tracker


def get_sync_job(request: Request) -> SyncJob:
    return request.app.state.sync_job


def _isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def item_to_dict(item: TrackedItem, with_events: bool = False) -> dict:
    data = {
        "id": item.id,
        "tracking_code": item.tracking_code,
        "carrier": item.carrier,
        "carrier_name": display_name(item.carrier),
        "title": item.title,
        "status": item.status,
        "last_update": _isoformat(item.last_update),
        "estimated_delivery": _isoformat(item.estimated_delivery),
        "sub_carrier_name": item.sub_carrier_name,
        "is_archived": item.is_archived,
        "is_muted": item.is_muted,
    }
    if with_events:
        data["events"] = [
            {
                "timestamp": _isoformat(event.timestamp),
                "description": event.description,
                "location": event.location,
                "latitude": event.latitude,
                "longitude": event.longitude,
                "status": event.status,
            }
            for event in item.events
        ]
    return data


async def _get_or_404(tracker: TrackerService, item_id: str) -> TrackedItem:
    item = await tracker.store.get(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.get("/items")
async def list_items(archived: bool = False, tracker: TrackerService = Depends(get_tracker)):
    """Active items by default, archived ones with ``?archived=true``."""
    items = await tracker.store.list_items(archived=archived)
    return [item_to_dict(item) for item in items]


@router.post("/items", status_code=201)
async def add_item(body: ItemCreate, tracker: TrackerService = Depends(get_tracker)):
    code = body.tracking_code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="Tracking code is required")
    if await tracker.store.find_by_code(code):
        raise HTTPException(status_code=409, detail="Item already tracked")

    item = await tracker.add_item(code, body.carrier, body.title)
    return item_to_dict(item, with_events=True)


@router.post("/items/import")
async def import_candidates(body: list[CandidateIn], tracker: TrackerService = Depends(get_tracker)):
    """Bulk import codes found by a mailbox scanner."""
    added = await tracker.import_candidates(
        [CandidateCode(c.tracking_code, c.carrier_hint, c.title) for c in body]
    )
    return [item_to_dict(item) for item in added]


@router.get("/items/{item_id}")
async def get_item(item_id: str, tracker: TrackerService = Depends(get_tracker)):
    item = await _get_or_404(tracker, item_id)
    return item_to_dict(item, with_events=True)


@router.patch("/items/{item_id}")
async def update_item(item_id: str, body: ItemUpdate, tracker: TrackerService = Depends(get_tracker)):
    """Rename an item or change its carrier; a new carrier triggers a refetch."""
    await _get_or_404(tracker, item_id)
    if body.title is not None and body.title.strip():
        await tracker.store.rename(item_id, body.title.strip())
    if body.carrier is not None:
        await tracker.store.set_carrier(item_id, body.carrier.strip())
        await tracker.refresh_item(item_id)

    item = await _get_or_404(tracker, item_id)
    return item_to_dict(item, with_events=True)


@router.post("/items/{item_id}/refresh")
async def refresh_item(item_id: str, tracker: TrackerService = Depends(get_tracker)):
    result = await tracker.refresh_item(item_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Item not found")

    item = await _get_or_404(tracker, item_id)
    return {
        "changed": result.changed,
        "outcome": type(result.outcome).__name__ if result.outcome else None,
        "item": item_to_dict(item, with_events=True),
    }


async def _set_flag(tracker: TrackerService, item_id: str, archived: bool | None = None, muted: bool | None = None):
    if archived is not None:
        found = await tracker.store.set_archived(item_id, archived)
    else:
        found = await tracker.store.set_muted(item_id, muted)
    if not found:
        raise HTTPException(status_code=404, detail="Item not found")
    return item_to_dict(await _get_or_404(tracker, item_id))


@router.post("/items/{item_id}/archive")
async def archive_item(item_id: str, tracker: TrackerService = Depends(get_tracker)):
    return await _set_flag(tracker, item_id, archived=True)


@router.post("/items/{item_id}/unarchive")
async def unarchive_item(item_id: str, tracker: TrackerService = Depends(get_tracker)):
    return await _set_flag(tracker, item_id, archived=False)


@router.post("/items/{item_id}/mute")
async def mute_item(item_id: str, tracker: TrackerService = Depends(get_tracker)):
    return await _set_flag(tracker, item_id, muted=True)


@router.post("/items/{item_id}/unmute")
async def unmute_item(item_id: str, tracker: TrackerService = Depends(get_tracker)):
    return await _set_flag(tracker, item_id, muted=False)


@router.get("/detect-carrier")
async def detect_carrier(tracking_code: str):
    """Guess the carrier from the shape of a tracking code."""
    label = classify(tracking_code)
    slug = lookup_slug(label) if label else None
    return {
        "tracking_code": tracking_code.strip(),
        "carrier": label,
        "slug": slug,
        "name": display_name(slug) if slug else None,
    }


@router.get("/carriers")
async def list_carriers():
    """Carriers with a direct scraper."""
    return [
        {"id": c.id, "name": c.name, "website": c.website}
        for c in carrier_loader.list_carriers()
    ]


@router.post("/sync")
async def run_sync(job: SyncJob = Depends(get_sync_job)):
    """Run one sync cycle now."""
    result = await job.run()
    report = result.report
    return {
        "success": result.success,
        "attempts": result.attempts,
        "error": result.error,
        "refreshed": report.refreshed if report else 0,
        "failed": report.failed if report else 0,
        "changed": report.changed if report else 0,
        "notified": report.notified if report else 0,
        "reminders": report.reminders if report else 0,
    }
