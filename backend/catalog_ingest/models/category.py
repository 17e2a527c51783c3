"""Store-side categories and the product/category association."""

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_ingest.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from catalog_ingest.models.product import Product


class Category(UUIDPrimaryKeyMixin, Base):
    """Browsable category mapped onto a taxonomy node.

    Products are linked to every category whose taxonomy_id is the
    product's taxonomy node or one of its ancestors.
    """

    __tablename__ = "categories"

    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    taxonomy_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    product_links: Mapped[list["ProductCategory"]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Category(slug='{self.slug}', taxonomy_id='{self.taxonomy_id}')>"


class ProductCategory(Base):
    """Many-to-many link between products and categories."""

    __tablename__ = "product_categories"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True
    )

    product: Mapped["Product"] = relationship(back_populates="category_links")
    category: Mapped["Category"] = relationship(back_populates="product_links")
