from pydantic import BaseModel, Field
from typing import List, Optional


class CartAdd(BaseModel):
    drug_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class CartUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartLine(BaseModel):
    id: int
    drug_id: int
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    requires_prescription: bool = False
    stock_quantity: int
    quantity: int
    subtotal: float


class CartResponse(BaseModel):
    cart: List[CartLine]
    total: float
