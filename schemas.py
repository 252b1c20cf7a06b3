"""
API Schemas for the storefront

Request and response bodies. Documents are stored with snake_case fields;
over the wire every model speaks camelCase and accepts either spelling on
input.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["credit_card", "paypal", "cash_on_delivery"]


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Pagination(APIModel):
    total: int
    page: int
    limit: int
    total_pages: int


# Users
class RegisterRequest(APIModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()


class LoginRequest(APIModel):
    email: Optional[str] = Field(None, description="Email address or username")
    username: Optional[str] = None
    password: str

    @model_validator(mode="after")
    def require_identifier(self):
        if not (self.email or self.username):
            raise ValueError("Email or username is required")
        return self


class ProfileUpdate(APIModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower() if v else v


class UserOut(APIModel):
    id: str
    username: str
    email: EmailStr
    role: str = "user"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthResponse(APIModel):
    user: UserOut
    token: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# Catalog
class CategoryCreate(APIModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = Field(None, description="URL-safe identifier, derived from name when omitted")
    icon: Optional[str] = None
    image_url: Optional[str] = None


class CategoryUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None


class CategoryOut(APIModel):
    id: str
    name: str
    slug: str
    icon: Optional[str] = None
    image_url: Optional[str] = None


class ProductCreate(APIModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: str = ""
    price: float = Field(..., ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: List[str] = []
    brand: Optional[str] = None
    stock: int = Field(0, ge=0)
    is_new: bool = False
    is_featured: bool = False
    is_on_sale: bool = False


class ProductUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: Optional[List[str]] = None
    brand: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    is_new: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_on_sale: Optional[bool] = None


class ProductOut(APIModel):
    id: str
    name: str
    slug: str
    description: str = ""
    price: float
    compare_at_price: Optional[float] = None
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: List[str] = []
    brand: Optional[str] = None
    stock: int = 0
    is_new: bool = False
    is_featured: bool = False
    is_on_sale: bool = False
    rating: float = 0.0
    review_count: int = 0
    created_at: Optional[datetime] = None


class ProductPage(APIModel):
    products: List[ProductOut]
    pagination: Pagination


class SearchSuggestion(APIModel):
    name: str
    slug: str


class ReviewCreate(APIModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ReviewOut(APIModel):
    id: str
    product_id: str
    user_id: str
    user_name: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


# Cart & wishlist
class CartItemCreate(APIModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartItemUpdate(APIModel):
    quantity: int = Field(..., ge=1)


class CartLine(APIModel):
    id: str
    product_id: str
    quantity: int
    product: ProductOut


class CartOut(APIModel):
    items: List[CartLine] = []
    total_items: int = 0
    subtotal: float = 0.0
    shipping: float = 0.0
    tax: float = 0.0
    total: float = 0.0


class LineItem(APIModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class QuoteRequest(APIModel):
    items: List[LineItem] = []


class WishlistItemCreate(APIModel):
    product_id: str


class WishlistLine(APIModel):
    id: str
    product_id: str
    product: ProductOut


class WishlistOut(APIModel):
    items: List[WishlistLine] = []


# Orders & payment
class CardDetails(APIModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    card_number: str = Field(..., min_length=1)
    card_name: str = Field(..., min_length=1)
    expiry_date: str = Field(..., min_length=1)
    cvv: str = Field(..., min_length=1)


class ShippingAddress(APIModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: Optional[str] = None


class OrderCreate(APIModel):
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    card_details: Optional[CardDetails] = None
    items: Optional[List[LineItem]] = None
    total: Optional[float] = Field(None, description="Ignored, totals are computed server-side")

    @model_validator(mode="after")
    def require_card_details(self):
        if self.payment_method == "credit_card" and self.card_details is None:
            raise ValueError("Card details are required for credit card payments")
        return self


class OrderItemOut(APIModel):
    id: str
    order_id: str
    product_id: str
    name: Optional[str] = None
    category_id: Optional[str] = None
    quantity: int
    price: float


class OrderOut(APIModel):
    id: str
    user_id: str
    status: OrderStatus
    payment_method: str
    payment_status: str
    payment_id: Optional[str] = None
    shipping_address: ShippingAddress
    subtotal: float
    shipping: float
    tax: float
    total: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


class OrderStatusUpdate(APIModel):
    status: OrderStatus


class OrderPage(APIModel):
    orders: List[OrderOut]
    pagination: Pagination


class PaymentRequest(APIModel):
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1)
    card_details: Optional[CardDetails] = None


class TransactionDetails(APIModel):
    amount: float
    currency: str
    payment_method: str
    timestamp: datetime
    status: str


class PaymentResult(APIModel):
    success: bool
    payment_id: str
    message: str
    transaction_details: TransactionDetails


# Admin reporting
class DashboardStats(APIModel):
    total_orders: int
    total_revenue: float
    total_products: int
    total_users: int
    total_customers: int
    orders_by_status: Dict[str, int]
    low_stock_products: List[ProductOut]
    recent_orders: List[OrderOut]


class RevenuePoint(APIModel):
    month: str
    revenue: float
    orders: int


class CategorySales(APIModel):
    category_id: Optional[str] = None
    category: str
    units_sold: int
    revenue: float


class CategoryInventory(APIModel):
    category_id: Optional[str] = None
    category: str
    products: int
    stock: int
