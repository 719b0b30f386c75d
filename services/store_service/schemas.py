"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from services.store_service.models import (
    DonationStatus,
    NotificationType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    SettingType,
)

# ============================================================================
# CATALOG SCHEMAS
# ============================================================================


class CategoryBase(BaseModel):
    name: str = Field(..., max_length=100)
    slug: Optional[str] = Field(None, max_length=100)
    name_translations: Optional[dict[str, str]] = None
    description: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    slug: Optional[str] = Field(None, max_length=100)
    name_translations: Optional[dict[str, str]] = None
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryResponse(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slug: str
    created_at: datetime


class ColorBase(BaseModel):
    name: str = Field(..., max_length=50)
    hex_code: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    name_translations: Optional[dict[str, str]] = None
    sort_order: int = 0
    is_active: bool = True


class ColorCreate(ColorBase):
    pass


class ColorUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    hex_code: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    name_translations: Optional[dict[str, str]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class ColorResponse(ColorBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID


class SizeBase(BaseModel):
    name: str = Field(..., max_length=50)
    category_type: str = Field("general", max_length=50)
    name_translations: Optional[dict[str, str]] = None
    sort_order: int = 0
    is_active: bool = True


class SizeCreate(SizeBase):
    pass


class SizeUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    category_type: Optional[str] = Field(None, max_length=50)
    name_translations: Optional[dict[str, str]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class SizeResponse(SizeBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID


class VariantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    color_id: Optional[uuid.UUID] = None
    size_id: Optional[uuid.UUID] = None
    sku: str
    stock: int
    price_adjustment: Decimal
    final_price: Decimal
    is_active: bool
    color: Optional[ColorResponse] = None
    size: Optional[SizeResponse] = None


class VariantUpdate(BaseModel):
    stock: Optional[int] = Field(None, ge=0)
    price_adjustment: Optional[Decimal] = None
    is_active: Optional[bool] = None


class BulkStockItem(BaseModel):
    variant_id: uuid.UUID
    stock: int = Field(..., ge=0)


class BulkStockUpdate(BaseModel):
    items: list[BulkStockItem] = Field(..., min_length=1)


class VariantMatrixRequest(BaseModel):
    color_ids: list[uuid.UUID] = Field(..., min_length=1)
    size_ids: list[uuid.UUID] = Field(..., min_length=1)
    stock: int = Field(0, ge=0)


class ColorInput(BaseModel):
    """Color reference in a product form; ``id`` may be a ``temp_*`` client id."""

    id: Optional[str] = None
    name: Optional[str] = None
    hex: Optional[str] = None


class SizeInput(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    category_type: Optional[str] = None


class VariantInput(BaseModel):
    color_id: str
    size_id: str
    stock: int = Field(0, ge=0)
    price_adjustment: Decimal = Decimal("0")
    is_active: bool = True


class ProductBase(BaseModel):
    name: str = Field(..., max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    category_id: Optional[uuid.UUID] = None
    name_translations: Optional[dict[str, str]] = None
    description: Optional[str] = None
    description_translations: Optional[dict[str, str]] = None
    image_url: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    is_active: bool = True
    is_donatable: bool = False


class ProductCreate(ProductBase):
    colors: list[ColorInput] = Field(default_factory=list)
    sizes: list[SizeInput] = Field(default_factory=list)
    variants: list[VariantInput] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    category_id: Optional[uuid.UUID] = None
    name_translations: Optional[dict[str, str]] = None
    description: Optional[str] = None
    description_translations: Optional[dict[str, str]] = None
    image_url: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_donatable: Optional[bool] = None
    # When ``variants`` is sent the product's variant set is replaced
    colors: list[ColorInput] = Field(default_factory=list)
    sizes: list[SizeInput] = Field(default_factory=list)
    variants: Optional[list[VariantInput]] = None


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slug: str
    created_at: datetime
    updated_at: datetime
    category: Optional[CategoryResponse] = None
    variants: list[VariantResponse] = []


class ProductListItem(BaseModel):
    """Storefront card: product plus price range and available options."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    image_url: Optional[str] = None
    price: Decimal
    is_donatable: bool
    min_price: Decimal
    max_price: Decimal
    total_stock: int
    in_stock: bool
    available_colors: list[ColorResponse] = []
    available_sizes: list[SizeResponse] = []


class ProductDetail(ProductListItem):
    description: Optional[str] = None
    category: Optional[CategoryResponse] = None
    variants: list[VariantResponse] = []


class ProductListResponse(BaseModel):
    items: list[ProductListItem]
    total: int
    page: int
    per_page: int


class AdminProductListResponse(BaseModel):
    items: list[ProductResponse]
    total: int
    page: int
    per_page: int


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemAdd(BaseModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(1, ge=1, le=99)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=99)


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    product_name: str
    sku: Optional[str] = None
    color: Optional[str] = None
    color_hex: Optional[str] = None
    size: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class CartResponse(BaseModel):
    id: Optional[uuid.UUID] = None
    items: list[CartItemResponse] = []
    subtotal: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    items_count: int = 0


# ============================================================================
# CHECKOUT / ORDER SCHEMAS
# ============================================================================


class CheckoutRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None

    is_donation: bool = False
    has_beneficiary: bool = False
    beneficiary_is_organization: bool = False
    beneficiary_first_name: Optional[str] = Field(None, max_length=255)
    beneficiary_last_name: Optional[str] = Field(None, max_length=255)
    beneficiary_phone: Optional[str] = Field(None, max_length=50)
    beneficiary_organization_name: Optional[str] = Field(None, max_length=255)
    beneficiary_special_instructions: Optional[str] = None

    # Accepted for form compatibility; the server always recomputes totals
    total: Optional[Decimal] = None


class CheckoutResponse(BaseModel):
    order_number: str
    redirect_url: str
    session_id: str


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    variant_id: Optional[uuid.UUID] = None
    product_name: str
    selected_color: Optional[str] = None
    selected_color_hex: Optional[str] = None
    selected_size: Optional[str] = None
    sku: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    gateway: PaymentMethod
    gateway_payment_id: Optional[str] = None
    amount: Decimal
    currency: str
    status: PaymentStatus
    error_message: Optional[str] = None
    created_at: datetime


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: Optional[str] = None
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class BeneficiaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    display_name: str
    phone: Optional[str] = None
    is_organization: bool
    special_instructions: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    status: OrderStatus
    is_donation: bool
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_error_message: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    items: list[OrderItemResponse] = []


class AdminOrderResponse(OrderResponse):
    payment_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    admin_notes: Optional[str] = None
    stock_shortfalls: Optional[list[dict[str, Any]]] = None
    payment_failed_at: Optional[datetime] = None
    customer: Optional[CustomerResponse] = None
    beneficiary: Optional[BeneficiaryResponse] = None
    payments: list[PaymentResponse] = []


class AdminOrderListResponse(BaseModel):
    items: list[AdminOrderResponse]
    total: int
    page: int
    per_page: int
    stats: dict[str, Any]


class AdminOrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    admin_notes: Optional[str] = None


class ReorderResponse(BaseModel):
    cart: CartResponse
    skipped: list[str] = []


class PaymentStatusResponse(BaseModel):
    """Browser return page state, read back from the order row."""

    order_number: Optional[str] = None
    donation_id: Optional[uuid.UUID] = None
    status: str
    paid: bool
    total: Optional[Decimal] = None


# ============================================================================
# DONATION SCHEMAS
# ============================================================================


class DonationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    value: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    message: Optional[str] = Field(None, max_length=2000)
    payment_method: Optional[PaymentMethod] = None


class DonationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    value: Decimal
    currency: str
    message: Optional[str] = None
    status: DonationStatus
    payment_method: PaymentMethod
    paid_at: Optional[datetime] = None
    created_at: datetime


class DonationCheckoutResponse(BaseModel):
    donation_id: uuid.UUID
    redirect_url: str
    session_id: str


class DonationPageResponse(BaseModel):
    donation_enable: bool
    donation_min_amount: float
    donation_page_title: Optional[str] = None
    donation_page_subtitle: Optional[str] = None
    donation_page_message: Optional[str] = None


class AdminDonationListResponse(BaseModel):
    items: list[DonationResponse]
    total: int
    page: int
    per_page: int
    stats: dict[str, Any]


class BulkIdsRequest(BaseModel):
    ids: list[uuid.UUID] = Field(..., min_length=1)


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    read_at: Optional[datetime] = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int
    page: int
    per_page: int
    unread_count: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    today: int
    this_week: int


# ============================================================================
# SETTINGS SCHEMAS
# ============================================================================


class SettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: Optional[str] = None
    type: SettingType
    is_public: bool


class SettingUpdateItem(BaseModel):
    key: str = Field(..., max_length=100)
    value: Any = None
    type: SettingType = SettingType.STRING
    is_public: bool = False


class SettingsBulkUpdate(BaseModel):
    settings: list[SettingUpdateItem] = Field(..., min_length=1)


# ============================================================================
# WEBHOOK SCHEMAS
# ============================================================================


class WebhookAck(BaseModel):
    received: bool = True
    status: str
    event_id: Optional[str] = None
