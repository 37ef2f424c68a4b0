"""Pydantic schemas for request/response validation.

Money fields are decimal strings on the wire.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from decimal import Decimal

from config import MAX_ITEM_QUANTITY
from models import OrderStatus


class ProductResponse(BaseModel):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    is_active: bool
    category_id: Optional[int] = None

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> str:
        return str(price)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str


class ProductPageResponse(BaseModel):
    """One page of the catalog plus the categories for the filter sidebar."""
    products: List[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    categories: List[CategoryResponse]


class StockUpdateRequest(BaseModel):
    """Schema for an absolute stock edit."""
    stock: int = Field(ge=0)


class AddToCartRequest(BaseModel):
    """Schema for add to cart request."""
    product_id: int = Field(gt=0)
    quantity: int = Field(ge=1, le=MAX_ITEM_QUANTITY)


class UpdateCartRequest(BaseModel):
    quantity: int = Field(ge=1, le=MAX_ITEM_QUANTITY)


class CartItemMutationResponse(BaseModel):
    """Schema for add/update cart response."""
    message: str
    cart_item_id: int
    product_name: str
    quantity: int


class CartItemResponse(BaseModel):
    """Schema for cart item in response."""
    id: int
    product_id: int
    product_name: str
    price: str
    stock: int
    is_active: bool
    quantity: int
    subtotal: str


class CartResponse(BaseModel):
    """Schema for cart response."""
    user_id: str
    items: List[CartItemResponse]
    total: str


class CartCountResponse(BaseModel):
    count: int


class AddressRequest(BaseModel):
    """Schema for creating or replacing an address."""
    name: str = Field(min_length=1, max_length=50)
    phone: str = Field(pattern=r"^1[3-9]\d{9}$")
    province: str = Field(min_length=1, max_length=50)
    city: str = Field(min_length=1, max_length=50)
    district: str = Field(min_length=1, max_length=50)
    detail: str = Field(min_length=1, max_length=200)
    is_default: bool = False


class AddressResponse(BaseModel):
    id: int
    name: str
    phone: str
    province: str
    city: str
    district: str
    detail: str
    is_default: bool


class CreateOrderRequest(BaseModel):
    """Schema for create order request."""
    address_id: int = Field(gt=0)


class PaymentRequest(BaseModel):
    """Schema for simulated payment request."""
    order_id: int = Field(gt=0)


class StatusUpdateRequest(BaseModel):
    """Schema for admin status transition request."""
    status: OrderStatus


class OrderItemResponse(BaseModel):
    """Schema for order item in response."""
    id: int
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    price: str


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: int
    order_no: str
    user_id: str
    total_amount: str
    status: OrderStatus
    address: Dict[str, str]
    created_at: str
    updated_at: str
    items: List[OrderItemResponse]


class OrdersListResponse(BaseModel):
    """Schema for orders list response."""
    orders: List[OrderResponse]


class MessageResponse(BaseModel):
    message: str
