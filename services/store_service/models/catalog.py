"""Store catalog models: categories, colors, sizes, products, variants."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship


class TranslatableNameMixin:
    """Entities whose display name has per-locale overrides.

    ``name_translations`` maps locale -> name, e.g. ``{"ar": "...", "fr": "..."}``.
    """

    def localized_name(self, locale: Optional[str] = None) -> str:
        translations = getattr(self, "name_translations", None) or {}
        if locale and translations.get(locale):
            return translations[locale]
        return self.name


class Category(TranslatableNameMixin, Base):
    """Product categories (e.g. 'T-Shirts', 'Hoodies')."""

    __tablename__ = "store_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name_translations: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category {self.name}>"


class Color(TranslatableNameMixin, Base):
    """Reusable color swatches shared by all products."""

    __tablename__ = "store_colors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    hex_code: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    name_translations: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    def __repr__(self):
        return f"<Color {self.name} {self.hex_code}>"


class Size(TranslatableNameMixin, Base):
    """Sizes, grouped by the kind of product they apply to (clothing, shoes...)."""

    __tablename__ = "store_sizes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    category_type: Mapped[str] = mapped_column(
        String(50), default="general", server_default="general"
    )
    name_translations: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("name", "category_type", name="unique_size_per_type"),
    )

    def __repr__(self):
        return f"<Size {self.name} ({self.category_type})>"


class Product(TranslatableNameMixin, Base):
    """Products. ``stock`` applies to products sold without variants."""

    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("store_categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name_translations: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description_translations: Mapped[Optional[dict]] = mapped_column(
        JSON, nullable=True
    )
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )
    # Donatable products can be bought on behalf of a beneficiary
    is_donatable: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("stock >= 0", name="product_stock_non_negative"),)

    category = relationship("Category", back_populates="products")
    variants = relationship(
        "ProductVariant", back_populates="product", cascade="all, delete-orphan"
    )

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def __repr__(self):
        return f"<Product {self.name}>"


class ProductVariant(Base):
    """A color/size combination of a product with its own stock and price delta."""

    __tablename__ = "store_product_variants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
    )
    color_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("store_colors.id", ondelete="SET NULL"), nullable=True
    )
    size_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("store_sizes.id", ondelete="SET NULL"), nullable=True
    )

    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    price_adjustment: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), server_default="0"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "product_id", "color_id", "size_id", name="unique_product_color_size"
        ),
        CheckConstraint("stock >= 0", name="variant_stock_non_negative"),
    )

    product = relationship("Product", back_populates="variants")
    color = relationship("Color")
    size = relationship("Size")

    @property
    def final_price(self) -> Decimal:
        """Base product price plus this variant's adjustment."""
        return Decimal(self.product.price) + Decimal(self.price_adjustment or 0)

    def __repr__(self):
        return f"<ProductVariant {self.sku} stock={self.stock}>"
