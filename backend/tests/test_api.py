"""Tests for the operator API endpoints."""

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio
from jsonschema import validate

from catalog_ingest.dependencies import get_db, get_store
from catalog_ingest.main import app
from catalog_ingest.schemas import ApiResponse, HealthCheckResponse, ScrapeRunResponse, SweepSummaryResponse
from catalog_ingest.scrapers import factory as factory_module
from catalog_ingest.scrapers.factory import AdapterFactory

from helpers import native_record, static_adapter


@pytest_asyncio.fixture
async def client(session_factory, store):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


@pytest.fixture
def static_source(monkeypatch):
    factory = AdapterFactory()
    factory.register_adapter("static", static_adapter([native_record(i, f"Product {i}") for i in range(3)]))
    monkeypatch.setattr(factory_module, "adapter_factory", factory)
    return factory


class TestHealth:
    async def test_health_reports_database_and_scheduler(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        validate(body, HealthCheckResponse.model_json_schema())
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["scheduler"] == "disabled"

    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["health"] == "/api/v1/health"


class TestRuns:
    async def test_lists_runs_newest_first(self, client, store, make_brand):
        brand = await make_brand()
        first = await store.create_run(brand.id, datetime(2026, 1, 1, tzinfo=timezone.utc))
        await store.finish_run(first.id, status="success", products_added=2)
        await store.create_run(brand.id, datetime(2026, 1, 2, tzinfo=timezone.utc))

        response = await client.get("/api/v1/runs", params={"brand": "acme"})

        assert response.status_code == 200
        body = response.json()
        validate(body, ApiResponse[list[ScrapeRunResponse]].model_json_schema())
        assert [run["status"] for run in body["data"]] == ["running", "success"]
        assert body["data"][0]["brand_slug"] == "acme"

    async def test_limit_is_bounded(self, client):
        response = await client.get("/api/v1/runs", params={"limit": 0})
        assert response.status_code == 422


class TestSyncTrigger:
    async def test_sync_one_brand(self, client, make_brand, static_source):
        await make_brand(source_kind="static")

        response = await client.post("/api/v1/sync/acme")

        assert response.status_code == 200
        body = response.json()
        validate(body, ApiResponse[SweepSummaryResponse].model_json_schema())
        result = body["data"]["results"][0]
        assert result["status"] == "success"
        assert result["added"] == 3
        assert body["data"]["total_added"] == 3

    async def test_dry_run_leaves_no_run(self, client, store, make_brand, static_source):
        await make_brand(source_kind="static")

        response = await client.post("/api/v1/sync/acme", params={"dry_run": "true"})

        assert response.json()["data"]["results"][0]["dry_run"] is True
        assert await store.list_runs(brand_slug="acme") == []

    async def test_unknown_brand_is_404(self, client):
        response = await client.post("/api/v1/sync/nobody")

        assert response.status_code == 404
        assert "nobody" in response.json()["detail"]
