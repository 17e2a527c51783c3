"""Pytest configuration and shared fixtures."""

import os

# Must be set before catalog_ingest.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import Callable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog_ingest.config import settings
from catalog_ingest.db.seed import seed_categories
from catalog_ingest.db.store import SqlCatalogStore
from catalog_ingest.models import Base, Brand


# ============================================================================
# SETTINGS
# ============================================================================

@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No sleeping between pages, brands, retries or polls."""
    monkeypatch.setattr(settings, "PAGE_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "SITEMAP_REQUEST_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "SYNC_BRAND_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "HTTP_RETRY_MIN_WAIT", 0)
    monkeypatch.setattr(settings, "HTTP_RETRY_MAX_WAIT", 0)
    monkeypatch.setattr(settings, "REMOTE_POLL_INTERVAL_SECONDS", 0.01)
    monkeypatch.setattr(settings, "REMOTE_SCRAPER_TOKEN", "test-token")
    # A StaticPool shares one SQLite connection between sessions
    monkeypatch.setattr(settings, "SYNC_RECORD_CONCURRENCY", 1)
    return settings


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory) -> SqlCatalogStore:
    return SqlCatalogStore(session_factory)


@pytest_asyncio.fixture
async def seeded_categories(session_factory) -> int:
    return await seed_categories(session_factory)


@pytest_asyncio.fixture
async def make_brand(session_factory) -> Callable:
    """Factory fixture creating Brand rows."""

    async def _make_brand(
        slug: str = "acme",
        source_kind: Optional[str] = "native",
        source_config: Optional[dict] = None,
        website_url: str = "https://acme.example",
        is_active: bool = True,
    ) -> Brand:
        brand = Brand(
            slug=slug,
            name=slug.title(),
            website_url=website_url,
            source_kind=source_kind,
            source_config=source_config or {},
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(brand)
            await session.commit()
            await session.refresh(brand)
        return brand

    return _make_brand

