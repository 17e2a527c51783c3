"""Scrape run log: one row per brand per sync invocation."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, ForeignKey, Integer, Numeric, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_ingest.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from catalog_ingest.models.brand import Brand


class ScrapeRun(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of a single brand sync.

    Created with status 'running'; the terminal status is written once
    when the run is finalized.
    """

    __tablename__ = "scrape_runs"

    brand_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("brands.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        index=True,
        comment="Status: 'running', 'success', 'partial', 'failed'"
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    execution_time_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    products_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    remote_dataset_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Dataset id of the remote scrape whose rows were imported"
    )

    brand: Mapped["Brand"] = relationship(back_populates="scrape_runs")

    def __repr__(self) -> str:
        return f"<ScrapeRun(id={self.id}, brand_id={self.brand_id}, status='{self.status}')>"
