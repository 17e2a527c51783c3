"""Seed store-side categories from the static taxonomy tables.

Every classifier category gets a row, plus every ancestor node named in
its taxonomy path, so category association can link a product to its
whole ancestry. Existing rows (matched by taxonomy_id) are left alone.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_ingest.models import Category
from catalog_ingest.scrapers.utils.normalizer import slugify
from catalog_ingest.services.taxonomy import PATH_SEPARATOR, TAXONOMY_IDS, TAXONOMY_PATHS, ancestor_ids

logger = structlog.get_logger(__name__)


def taxonomy_category_nodes() -> dict[str, str]:
    """Map every taxonomy id (categories and their ancestors) to a display name."""
    nodes: dict[str, str] = {}
    for name, taxonomy_id in TAXONOMY_IDS.items():
        nodes[taxonomy_id] = name
        segments = TAXONOMY_PATHS.get(name, "").split(PATH_SEPARATOR)
        ids = ancestor_ids(taxonomy_id)
        if len(segments) != len(ids):
            continue
        for node_id, segment in zip(ids[1:], reversed(segments[:-1])):
            nodes.setdefault(node_id, segment)
    return nodes


async def seed_categories(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Insert missing taxonomy categories.

    Returns:
        Number of categories created
    """
    async with session_factory() as session:
        result = await session.execute(select(Category.taxonomy_id, Category.slug))
        rows = result.all()
        existing_ids = {row.taxonomy_id for row in rows}
        used_slugs = {row.slug for row in rows}

        created = 0
        for taxonomy_id, name in taxonomy_category_nodes().items():
            if taxonomy_id in existing_ids:
                continue
            slug = slugify(name, max_length=80)
            if slug in used_slugs:
                slug = f"{slug}-{taxonomy_id.rpartition('/')[2]}"
            used_slugs.add(slug)
            session.add(Category(slug=slug, name=name, taxonomy_id=taxonomy_id))
            created += 1

        await session.commit()

    logger.info("categories_seeded", created=created)
    return created
