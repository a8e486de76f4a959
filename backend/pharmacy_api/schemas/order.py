from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, List, Optional
from datetime import datetime

from pharmacy_api.models.order import OrderStatus, PaymentMethod


def _check_address(v: str) -> str:
    v = v.strip()
    if len(v) < 5:
        raise ValueError('Delivery address must be at least 5 characters')
    return v


DeliveryAddress = Annotated[str, AfterValidator(_check_address)]


class OrderItemIn(BaseModel):
    drug_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod


class CheckoutRequest(BaseModel):
    """Place an order from the caller's cart."""
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    id: int
    drug_id: int
    drug_name: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int
    price_at_purchase: float
    subtotal: float


class OrderResponse(BaseModel):
    id: int
    user_id: int
    status: str
    total_amount: float
    delivery_address: str
    payment_method: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class OrderSummary(BaseModel):
    id: int
    user_id: int
    status: str
    total_amount: float
    delivery_address: str
    payment_method: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    item_count: int
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None


class OrderEnvelope(BaseModel):
    message: str
    order: OrderResponse


class OrderListResponse(BaseModel):
    message: str
    count: int
    orders: List[OrderSummary]
