"""Shopping cart of the authenticated user."""
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from pharmacy_api.api.deps import get_current_customer, get_db
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.schemas.cart import CartAdd, CartResponse, CartUpdate
from pharmacy_api.services import cart_service

router = APIRouter()


@router.post("/add")
def add_to_cart(data: CartAdd, db: Session = Depends(get_db), claims: TokenClaims = Depends(get_current_customer)):
    item = cart_service.add_item(db, claims.id, data.drug_id, data.quantity)
    return {"message": "Item added to cart successfully", "cart_item_id": item.id, "quantity": item.quantity}


@router.get("", response_model=CartResponse)
def get_cart(db: Session = Depends(get_db), claims: TokenClaims = Depends(get_current_customer)):
    return cart_service.get_cart(db, claims.id)


@router.put("/{cart_item_id}")
def update_cart_item(
    data: CartUpdate,
    cart_item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_customer),
):
    cart_service.update_quantity(db, claims.id, cart_item_id, data.quantity)
    return {"message": "Cart item updated successfully"}


@router.delete("/{cart_item_id}")
def remove_cart_item(
    cart_item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_customer),
):
    cart_service.remove_item(db, claims.id, cart_item_id)
    return {"message": "Item removed from cart successfully"}


@router.delete("")
def clear_cart(db: Session = Depends(get_db), claims: TokenClaims = Depends(get_current_customer)):
    cart_service.clear_cart(db, claims.id)
    return {"message": "Cart cleared successfully"}
