"""Product model holding normalized, classified catalog entries."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, ForeignKey, Boolean, Numeric, DateTime, Integer, Index, UniqueConstraint
from sqlalchemy import JSON as JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_ingest.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from catalog_ingest.models.brand import Brand
    from catalog_ingest.models.category import ProductCategory


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Product ingested from a brand source.

    Each product is uniquely identified by the (brand_id, external_id) pair.
    Rows are never deleted by a sync, only inserted or updated.
    """

    __tablename__ = "products"

    brand_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("brands.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    external_id: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Product ID from the source, unique within a brand"
    )

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="USD")

    # Media and links
    image_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    additional_images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    product_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    variants: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Classification
    taxonomy_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    taxonomy_category_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    taxonomy_full_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    taxonomy_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    last_checked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last time a sync saw this product"
    )

    __table_args__ = (
        UniqueConstraint("brand_id", "external_id", name="uq_products_brand_external"),
        Index("idx_products_brand_name", "brand_id", "name"),
    )

    brand: Mapped["Brand"] = relationship(back_populates="products")
    category_links: Mapped[list["ProductCategory"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name[:50]}', brand_id={self.brand_id})>"
