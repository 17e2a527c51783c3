"""FastAPI dependency injection providers."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_ingest.db.session import async_session_factory
from catalog_ingest.db.store import CatalogStore, SqlCatalogStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is committed on success or rolled back on error.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_store() -> CatalogStore:
    """Catalog store; each store operation opens its own session."""
    return SqlCatalogStore(async_session_factory)
