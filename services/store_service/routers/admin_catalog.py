"""Admin store catalog router: categories, colors, sizes, products and variants."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.models import (
    Category,
    Color,
    Product,
    ProductVariant,
    Size,
)
from services.store_service.schemas import (
    AdminProductListResponse,
    BulkStockUpdate,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ColorCreate,
    ColorResponse,
    ColorUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    SizeCreate,
    SizeResponse,
    SizeUpdate,
    VariantMatrixRequest,
    VariantResponse,
    VariantUpdate,
)
from services.store_service.services import catalog_service
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)

PRODUCT_FORM_FIELDS = {"colors", "sizes", "variants"}


async def _get_or_404(db: AsyncSession, model, entity_id: uuid.UUID, label: str):
    entity = await db.get(model, entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return entity


async def _variant_in_use(db: AsyncSession, column, entity_id: uuid.UUID) -> bool:
    count = (
        await db.execute(select(func.count(ProductVariant.id)).where(column == entity_id))
    ).scalar_one()
    return count > 0


# ============================================================================
# CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_all_categories(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List all categories (including inactive)."""
    result = await db.execute(select(Category).order_by(Category.sort_order, Category.name))
    return result.scalars().all()


@router.post(
    "/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED
)
async def create_category(
    category_in: CategoryCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a new category."""
    data = category_in.model_dump()
    data["slug"] = data["slug"] or catalog_service.slugify(category_in.name)

    existing = await db.execute(select(Category).where(Category.slug == data["slug"]))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=400, detail="Category with this slug already exists"
        )

    category = Category(**data)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    category_in: CategoryUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a category."""
    category = await _get_or_404(db, Category, category_id, "Category")
    for field, value in category_in.model_dump(exclude_unset=True).items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    return category


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a category; its products become uncategorized."""
    category = await _get_or_404(db, Category, category_id, "Category")
    result = await db.execute(select(Product).where(Product.category_id == category_id))
    for product in result.scalars().all():
        product.category_id = None
    await db.delete(category)
    await db.commit()
    return None


# ============================================================================
# COLORS & SIZES
# ============================================================================


@router.get("/colors", response_model=list[ColorResponse])
async def list_colors(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(select(Color).order_by(Color.sort_order, Color.name))
    return result.scalars().all()


@router.post("/colors", response_model=ColorResponse, status_code=status.HTTP_201_CREATED)
async def create_color(
    color_in: ColorCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    existing = await db.execute(select(Color).where(Color.name == color_in.name))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Color with this name already exists")
    color = Color(**color_in.model_dump())
    db.add(color)
    await db.commit()
    await db.refresh(color)
    return color


@router.patch("/colors/{color_id}", response_model=ColorResponse)
async def update_color(
    color_id: uuid.UUID,
    color_in: ColorUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    color = await _get_or_404(db, Color, color_id, "Color")
    for field, value in color_in.model_dump(exclude_unset=True).items():
        setattr(color, field, value)
    await db.commit()
    await db.refresh(color)
    return color


@router.delete("/colors/{color_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_color(
    color_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a color that no variant uses."""
    color = await _get_or_404(db, Color, color_id, "Color")
    if await _variant_in_use(db, ProductVariant.color_id, color_id):
        raise HTTPException(status_code=400, detail="Color is used by product variants")
    await db.delete(color)
    await db.commit()
    return None


@router.get("/sizes", response_model=list[SizeResponse])
async def list_sizes(
    category_type: Optional[str] = None,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Size).order_by(Size.category_type, Size.sort_order, Size.name)
    if category_type:
        query = query.where(Size.category_type == category_type)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/sizes", response_model=SizeResponse, status_code=status.HTTP_201_CREATED)
async def create_size(
    size_in: SizeCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    size = Size(**size_in.model_dump())
    db.add(size)
    await db.commit()
    await db.refresh(size)
    return size


@router.patch("/sizes/{size_id}", response_model=SizeResponse)
async def update_size(
    size_id: uuid.UUID,
    size_in: SizeUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    size = await _get_or_404(db, Size, size_id, "Size")
    for field, value in size_in.model_dump(exclude_unset=True).items():
        setattr(size, field, value)
    await db.commit()
    await db.refresh(size)
    return size


@router.delete("/sizes/{size_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_size(
    size_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    size = await _get_or_404(db, Size, size_id, "Size")
    if await _variant_in_use(db, ProductVariant.size_id, size_id):
        raise HTTPException(status_code=400, detail="Size is used by product variants")
    await db.delete(size)
    await db.commit()
    return None


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products", response_model=AdminProductListResponse)
async def list_all_products(
    search: Optional[str] = None,
    category_id: Optional[uuid.UUID] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List all products (including inactive)."""
    query = select(Product)
    if search:
        search_term = f"%{search}%"
        query = query.where(
            or_(Product.name.ilike(search_term), Product.slug.ilike(search_term))
        )
    if category_id:
        query = query.where(Product.category_id == category_id)
    if is_active is not None:
        query = query.where(Product.is_active.is_(is_active))

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await db.execute(
        query.options(*catalog_service.product_options())
        .order_by(Product.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return AdminProductListResponse(
        items=[ProductResponse.model_validate(p) for p in result.scalars().all()],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.get_product(db, product_id)


@router.post(
    "/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED
)
async def create_product(
    product_in: ProductCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a product together with its colors, sizes and variants."""
    data = product_in.model_dump(exclude=PRODUCT_FORM_FIELDS)
    data["slug"] = await catalog_service.generate_unique_slug(
        db, product_in.slug or product_in.name
    )
    product = Product(**data)
    db.add(product)
    await db.flush()

    await catalog_service.apply_variant_mapping(
        db,
        product,
        [c.model_dump() for c in product_in.colors],
        [s.model_dump() for s in product_in.sizes],
        [v.model_dump() for v in product_in.variants],
    )
    await db.commit()
    logger.info("Product %s created by %s", product.slug, current_user.user_id)
    return await catalog_service.get_product(db, product.id)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    product_in: ProductUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a product; a ``variants`` list replaces the variant set."""
    product = await _get_or_404(db, Product, product_id, "Product")
    update_data = product_in.model_dump(exclude_unset=True, exclude=PRODUCT_FORM_FIELDS)
    if "slug" in update_data and update_data["slug"]:
        update_data["slug"] = await catalog_service.generate_unique_slug(
            db, update_data["slug"], ignore_id=product.id
        )
    for field, value in update_data.items():
        setattr(product, field, value)

    if product_in.variants is not None:
        await catalog_service.apply_variant_mapping(
            db,
            product,
            [c.model_dump() for c in product_in.colors],
            [s.model_dump() for s in product_in.sizes],
            [v.model_dump() for v in product_in.variants],
            prune=True,
        )
    await db.commit()
    return await catalog_service.get_product(db, product.id)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Delete a product and its variants. Past order lines keep their snapshot."""
    product = await catalog_service.get_product(db, product_id)
    await db.delete(product)
    await db.commit()
    return None


# ============================================================================
# VARIANTS
# ============================================================================


@router.patch("/variants/{variant_id}", response_model=VariantResponse)
async def update_variant(
    variant_id: uuid.UUID,
    variant_in: VariantUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Update a variant's stock, price adjustment or availability."""
    result = await db.execute(
        select(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .options(
            selectinload(ProductVariant.product),
            selectinload(ProductVariant.color),
            selectinload(ProductVariant.size),
        )
    )
    variant = result.scalar_one_or_none()
    if variant is None:
        raise HTTPException(status_code=404, detail="Variant not found")

    for field, value in variant_in.model_dump(exclude_unset=True).items():
        setattr(variant, field, value)
    await db.commit()
    return variant


@router.post("/variants/bulk-stock")
async def bulk_update_stock(
    payload: BulkStockUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Set stock for several variants at once."""
    ids = [item.variant_id for item in payload.items]
    result = await db.execute(select(ProductVariant).where(ProductVariant.id.in_(ids)))
    variants = {v.id: v for v in result.scalars().all()}
    missing = [str(i) for i in ids if i not in variants]
    if missing:
        raise HTTPException(
            status_code=404, detail=f"Variants not found: {', '.join(missing)}"
        )

    for item in payload.items:
        variants[item.variant_id].stock = item.stock
    await db.commit()
    return {"updated": len(payload.items)}


@router.post("/products/{product_id}/variants/generate", response_model=ProductResponse)
async def generate_variants(
    product_id: uuid.UUID,
    payload: VariantMatrixRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Create the missing variants of a color x size matrix."""
    product = await _get_or_404(db, Product, product_id, "Product")
    created = await catalog_service.generate_variant_matrix(
        db, product, payload.color_ids, payload.size_ids, stock=payload.stock
    )
    await db.commit()
    logger.info("Generated %d variants for product %s", created, product.slug)
    return await catalog_service.get_product(db, product.id)
