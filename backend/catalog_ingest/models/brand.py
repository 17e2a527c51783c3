"""Brand model: one retail source the pipeline syncs from."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy import JSON as JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_ingest.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from catalog_ingest.models.product import Product
    from catalog_ingest.models.scrape_run import ScrapeRun


class Brand(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Retail brand with its source configuration.

    The pipeline treats brands as read-only except for last_synced_at.
    source_kind selects the adapter; source_config carries adapter options
    (job_id, run_id, start_urls, max_items, new_arrivals_path, listing_path,
    api_name).
    """

    __tablename__ = "brands"

    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    website_url: Mapped[str] = mapped_column(String(500), nullable=False)

    source_kind: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        comment="'native', 'remote-scrape', 'brand-api', 'generic-html' or NULL"
    )
    source_config: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    products: Mapped[list["Product"]] = relationship(back_populates="brand", cascade="all, delete-orphan")
    scrape_runs: Mapped[list["ScrapeRun"]] = relationship(back_populates="brand", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Brand(id={self.id}, slug='{self.slug}', source_kind='{self.source_kind}')>"
