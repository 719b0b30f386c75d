"""Store catalog router: categories, products and public shop settings."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from libs.db.session import get_async_db
from services.store_service.models import Category, Product
from services.store_service.schemas import (
    CategoryResponse,
    ProductDetail,
    ProductListItem,
    ProductListResponse,
)
from services.store_service.services import catalog_service, settings_store
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])


def _product_card(product: Product, locale: Optional[str]) -> dict[str, Any]:
    summary = catalog_service.product_summary(product, locale)
    return {
        "id": product.id,
        "slug": product.slug,
        "image_url": product.image_url,
        "price": product.price,
        "is_donatable": product.is_donatable,
        **summary,
    }


# ============================================================================
# CATALOG - CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    locale: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    """List all active categories."""
    result = await db.execute(
        select(Category)
        .where(Category.is_active.is_(True))
        .order_by(Category.sort_order, Category.name)
    )
    responses = []
    for category in result.scalars().all():
        resp = CategoryResponse.model_validate(category)
        resp.name = category.localized_name(locale)
        responses.append(resp)
    return responses


# ============================================================================
# CATALOG - PRODUCTS
# ============================================================================


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    category: Optional[str] = Query(None, description="Category slug"),
    search: Optional[str] = Query(None),
    locale: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
):
    """List active products with price ranges and available options."""
    products, total = await catalog_service.list_active_products(
        db, category_slug=category, search=search, page=page, per_page=per_page
    )
    return ProductListResponse(
        items=[
            ProductListItem.model_validate(_product_card(p, locale)) for p in products
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/products/{slug}", response_model=ProductDetail)
async def get_product(
    slug: str,
    locale: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Get product details by slug, including its active variants."""
    product = await catalog_service.get_product_by_slug(db, slug)
    card = _product_card(product, locale)
    card["description"] = (product.description_translations or {}).get(
        locale or "", product.description
    )
    card["category"] = product.category
    card["variants"] = [v for v in product.variants if v.is_active]
    return ProductDetail.model_validate(card)


# ============================================================================
# SETTINGS
# ============================================================================


@router.get("/settings")
async def public_settings(db: AsyncSession = Depends(get_async_db)):
    """Settings flagged public (shop name, contact details...)."""
    return await settings_store.get_public_settings(db)
