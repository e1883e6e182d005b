"""Tests for the HTTP API."""

import httpx
import pytest
from conftest import FakeAdapter, FakeLoader, RecordingTransport
from fastapi import FastAPI

from parcelsync.api import router
from parcelsync.carriers.base import LoginRequired, Success, TrackingSnapshot
from parcelsync.services.resolver import CarrierResolver
from parcelsync.services.sync import SyncEngine, SyncJob
from parcelsync.services.tracker import TrackerService


@pytest.fixture
async def client(store):
    adapter = FakeAdapter(Success(TrackingSnapshot(status="En reparto")))
    tracker = TrackerService(store, CarrierResolver(FakeLoader({"tcc-co": adapter})), FakeAdapter(LoginRequired()))

    app = FastAPI()
    app.include_router(router)
    app.state.tracker = tracker
    app.state.sync_job = SyncJob(SyncEngine(tracker, RecordingTransport()), retry_delay=0)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def create(client, code="7123456789", **body) -> dict:
    response = await client.post("/api/items", json={"tracking_code": code, **body})
    assert response.status_code == 201
    return response.json()


async def test_add_item(client):
    item = await create(client, title="Libros")

    assert item["carrier"] == "tcc-co"
    assert item["carrier_name"] == "TCC"
    assert item["status"] == "En reparto"
    assert item["title"] == "Libros"
    assert item["events"] == []


async def test_add_rejects_blank_and_duplicate_codes(client):
    await create(client)

    assert (await client.post("/api/items", json={"tracking_code": " 7123456789 "})).status_code == 409
    assert (await client.post("/api/items", json={"tracking_code": "  "})).status_code == 400


async def test_archive_and_unarchive(client):
    item = await create(client)

    response = await client.post(f"/api/items/{item['id']}/archive")
    assert response.json()["is_archived"] is True
    assert (await client.get("/api/items")).json() == []
    assert [i["id"] for i in (await client.get("/api/items", params={"archived": "true"})).json()] == [item["id"]]

    await client.post(f"/api/items/{item['id']}/unarchive")
    assert len((await client.get("/api/items")).json()) == 1


async def test_mute_and_rename(client):
    item = await create(client)

    assert (await client.post(f"/api/items/{item['id']}/mute")).json()["is_muted"] is True
    response = await client.patch(f"/api/items/{item['id']}", json={"title": "Zapatos"})

    assert response.json()["title"] == "Zapatos"
    assert response.json()["is_muted"] is True


async def test_changing_the_carrier_refetches(client):
    item = await create(client, code="ZZ12345678")
    assert item["status"] == "Seguimiento manual"

    response = await client.patch(f"/api/items/{item['id']}", json={"carrier": "TCC"})

    assert response.json()["carrier"] == "tcc-co"
    assert response.json()["status"] == "En reparto"


async def test_refresh(client):
    item = await create(client)

    body = (await client.post(f"/api/items/{item['id']}/refresh")).json()

    assert body["changed"] is False
    assert body["outcome"] == "Success"


async def test_unknown_item(client):
    assert (await client.get("/api/items/missing")).status_code == 404
    assert (await client.post("/api/items/missing/refresh")).status_code == 404
    assert (await client.post("/api/items/missing/mute")).status_code == 404


async def test_import_candidates(client):
    response = await client.post(
        "/api/items/import",
        json=[{"tracking_code": "7123456789"}, {"tracking_code": "123"}, {"tracking_code": "7123456789"}],
    )

    assert [i["tracking_code"] for i in response.json()] == ["7123456789"]


async def test_detect_carrier(client):
    body = (await client.get("/api/detect-carrier", params={"tracking_code": "7123456789"})).json()
    assert (body["carrier"], body["slug"], body["name"]) == ("TCC", "tcc-co", "TCC")

    body = (await client.get("/api/detect-carrier", params={"tracking_code": "nope"})).json()
    assert body["carrier"] is None


async def test_sync(client):
    await create(client)

    body = (await client.post("/api/sync")).json()

    assert body["success"] is True
    assert body["refreshed"] == 1
    assert body["changed"] == 0
