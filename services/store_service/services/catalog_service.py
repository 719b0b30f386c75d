"""Catalog operations: slugs, SKUs, variant mapping and storefront listings."""

import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Sequence

from libs.common.logging import get_logger
from services.store_service.errors import NotFoundError, StoreError
from services.store_service.models import (
    Category,
    Color,
    Product,
    ProductVariant,
    Size,
)
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

TEMP_ID_PREFIX = "temp_"
DEFAULT_SIZE_TYPE = "general"


def variant_final_price(variant: ProductVariant) -> Decimal:
    """Base product price plus the variant's adjustment."""
    return variant.final_price


def product_options():
    """Eager-load everything a product response touches."""
    return (
        selectinload(Product.category),
        selectinload(Product.variants).selectinload(ProductVariant.color),
        selectinload(Product.variants).selectinload(ProductVariant.size),
    )


# ---------------------------------------------------------------------------
# Slugs and SKUs
# ---------------------------------------------------------------------------


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "item"


async def generate_unique_slug(
    db: AsyncSession, name: str, ignore_id: Optional[uuid.UUID] = None
) -> str:
    base = slugify(name)
    slug = base
    counter = 1
    while True:
        query = select(Product.id).where(Product.slug == slug)
        if ignore_id is not None:
            query = query.where(Product.id != ignore_id)
        if (await db.execute(query)).first() is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def _code(name: Optional[str], length: int, fallback: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]", "", name or "")
    return cleaned[:length].upper() or fallback


async def generate_unique_sku(
    db: AsyncSession,
    product: Product,
    color: Optional[Color],
    size: Optional[Size],
    ignore_id: Optional[uuid.UUID] = None,
) -> str:
    """
    Build ``PRD-COL-SZ-<product short id>`` and suffix ``-01``, ``-02``... until
    no other variant uses it.
    """
    base = "-".join(
        [
            _code(product.name, 3, "PRD"),
            _code(color.name if color else None, 3, "COL"),
            _code(size.name if size else None, 2, "SZ"),
            product.id.hex[:8].upper(),
        ]
    )
    sku = base
    counter = 0
    while True:
        query = select(ProductVariant.id).where(ProductVariant.sku == sku)
        if ignore_id is not None:
            query = query.where(ProductVariant.id != ignore_id)
        if (await db.execute(query)).first() is None:
            return sku
        counter += 1
        sku = f"{base}-{counter:02d}"


# ---------------------------------------------------------------------------
# Variant mapping
# ---------------------------------------------------------------------------


@dataclass
class VariantMappingResult:
    color_ids: dict[str, uuid.UUID] = field(default_factory=dict)
    size_ids: dict[str, uuid.UUID] = field(default_factory=dict)
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0


def _is_temp(raw_id: Any) -> bool:
    return isinstance(raw_id, str) and raw_id.startswith(TEMP_ID_PREFIX)


async def _resolve_color(db: AsyncSession, data: dict) -> Optional[uuid.UUID]:
    raw_id = data.get("id")
    if raw_id and not _is_temp(raw_id):
        return uuid.UUID(str(raw_id))

    name = (data.get("name") or "").strip()
    if not name:
        return None
    result = await db.execute(select(Color).where(Color.name == name))
    color = result.scalar_one_or_none()
    if color is None:
        color = Color(
            name=name,
            hex_code=data.get("hex") or data.get("hex_code") or "#000000",
            is_active=True,
        )
        db.add(color)
        await db.flush()
        logger.info("Created color %s for temporary id %s", name, raw_id)
    return color.id


async def _resolve_size(db: AsyncSession, data: dict) -> Optional[uuid.UUID]:
    raw_id = data.get("id")
    if raw_id and not _is_temp(raw_id):
        return uuid.UUID(str(raw_id))

    name = (data.get("name") or "").strip()
    if not name:
        return None
    category_type = data.get("category_type") or DEFAULT_SIZE_TYPE
    result = await db.execute(
        select(Size).where(Size.name == name, Size.category_type == category_type)
    )
    size = result.scalar_one_or_none()
    if size is None:
        size = Size(name=name, category_type=category_type, is_active=True)
        db.add(size)
        await db.flush()
        logger.info("Created size %s (%s) for temporary id %s", name, category_type, raw_id)
    return size.id


async def apply_variant_mapping(
    db: AsyncSession,
    product: Product,
    colors: Sequence[dict],
    sizes: Sequence[dict],
    variants: Sequence[dict],
    *,
    prune: bool = False,
) -> VariantMappingResult:
    """
    Resolve client color/size ids (real UUIDs or ``temp_*``) and upsert the
    product's variants per (color, size).

    With ``prune`` set, existing variants absent from ``variants`` are deleted.
    Only flushes; the caller commits so the whole save is one transaction.
    """
    mapping = VariantMappingResult()
    for data in colors:
        resolved = await _resolve_color(db, data)
        if resolved is not None:
            mapping.color_ids[str(data.get("id") or data.get("name"))] = resolved
    for data in sizes:
        resolved = await _resolve_size(db, data)
        if resolved is not None:
            mapping.size_ids[str(data.get("id") or data.get("name"))] = resolved

    result = await db.execute(
        select(ProductVariant).where(ProductVariant.product_id == product.id)
    )
    existing = {(v.color_id, v.size_id): v for v in result.scalars().all()}
    kept: set[uuid.UUID] = set()

    for data in variants:
        color_id = mapping.color_ids.get(str(data.get("color_id")))
        size_id = mapping.size_ids.get(str(data.get("size_id")))
        if color_id is None or size_id is None:
            logger.warning(
                "Skipping variant with unmapped color/size",
                extra={"extra_fields": {
                    "product_id": str(product.id),
                    "color_id": data.get("color_id"),
                    "size_id": data.get("size_id"),
                }},
            )
            mapping.skipped += 1
            continue

        stock = int(data.get("stock") or 0)
        if stock < 0:
            raise StoreError("Variant stock cannot be negative")
        adjustment = Decimal(str(data.get("price_adjustment") or 0))
        is_active = bool(data.get("is_active", True))

        variant = existing.get((color_id, size_id))
        if variant is not None:
            variant.stock = stock
            variant.price_adjustment = adjustment
            variant.is_active = is_active
            mapping.updated += 1
        else:
            color = await db.get(Color, color_id)
            size = await db.get(Size, size_id)
            variant = ProductVariant(
                product_id=product.id,
                color_id=color_id,
                size_id=size_id,
                sku=await generate_unique_sku(db, product, color, size),
                stock=stock,
                price_adjustment=adjustment,
                is_active=is_active,
            )
            db.add(variant)
            await db.flush()
            existing[(color_id, size_id)] = variant
            mapping.created += 1
        kept.add(variant.id)

    if prune:
        for variant in list(existing.values()):
            if variant.id not in kept:
                await db.delete(variant)
                mapping.deleted += 1

    await db.flush()
    logger.info(
        "Variant mapping for product %s: created=%d updated=%d deleted=%d skipped=%d",
        product.id,
        mapping.created,
        mapping.updated,
        mapping.deleted,
        mapping.skipped,
    )
    return mapping


async def generate_variant_matrix(
    db: AsyncSession,
    product: Product,
    color_ids: Sequence[uuid.UUID],
    size_ids: Sequence[uuid.UUID],
    *,
    stock: int = 0,
) -> int:
    """Create a variant for every missing color x size pair. Returns how many."""
    result = await db.execute(
        select(ProductVariant.color_id, ProductVariant.size_id).where(
            ProductVariant.product_id == product.id
        )
    )
    existing = {(row.color_id, row.size_id) for row in result.all()}
    created = 0
    for color_id in color_ids:
        color = await db.get(Color, color_id)
        if color is None:
            raise NotFoundError("Color not found")
        for size_id in size_ids:
            if (color_id, size_id) in existing:
                continue
            size = await db.get(Size, size_id)
            if size is None:
                raise NotFoundError("Size not found")
            db.add(
                ProductVariant(
                    product_id=product.id,
                    color_id=color_id,
                    size_id=size_id,
                    sku=await generate_unique_sku(db, product, color, size),
                    stock=stock,
                )
            )
            await db.flush()
            created += 1
    return created


# ---------------------------------------------------------------------------
# Storefront reads
# ---------------------------------------------------------------------------


def product_summary(product: Product, locale: Optional[str] = None) -> dict[str, Any]:
    """Price range, stock and option lists of a product with loaded variants."""
    active = [v for v in product.variants if v.is_active]
    if active:
        prices = [v.final_price for v in active]
        min_price, max_price = min(prices), max(prices)
        total_stock = sum(v.stock for v in active)
    else:
        min_price = max_price = Decimal(product.price)
        total_stock = product.stock

    colors: dict[uuid.UUID, Color] = {}
    sizes: dict[uuid.UUID, Size] = {}
    for variant in active:
        if variant.color is not None and variant.stock > 0:
            colors[variant.color.id] = variant.color
        if variant.size is not None and variant.stock > 0:
            sizes[variant.size.id] = variant.size

    return {
        "name": product.localized_name(locale),
        "min_price": min_price,
        "max_price": max_price,
        "total_stock": total_stock,
        "in_stock": total_stock > 0,
        "available_colors": sorted(colors.values(), key=lambda c: (c.sort_order, c.name)),
        "available_sizes": sorted(sizes.values(), key=lambda s: (s.sort_order, s.name)),
    }


async def list_active_products(
    db: AsyncSession,
    *,
    category_slug: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: int = 12,
) -> tuple[list[Product], int]:
    query = select(Product).where(Product.is_active.is_(True))
    if category_slug:
        query = query.join(Category).where(Category.slug == category_slug)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        )

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()

    result = await db.execute(
        query.options(*product_options())
        .order_by(Product.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().unique().all()), total


async def get_product_by_slug(db: AsyncSession, slug: str) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.slug == slug, Product.is_active.is_(True))
        .options(*product_options())
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(*product_options())
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return product
