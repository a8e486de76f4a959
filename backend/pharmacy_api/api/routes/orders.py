"""Orders of the authenticated user.

POST accepts an optional Idempotency-Key header. Replaying a request with a
key that already produced an order returns that order (200) instead of
placing a second one (201).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Path, Request, Response, status
from sqlalchemy.orm import Session

from pharmacy_api.api.deps import get_current_customer, get_current_user, get_db
from pharmacy_api.core.audit import AuditLog
from pharmacy_api.core.exceptions import Forbidden
from pharmacy_api.core.permissions import can_access_user_records
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.schemas.order import (
    CheckoutRequest,
    OrderCreate,
    OrderEnvelope,
    OrderListResponse,
)
from pharmacy_api.services import order_service

router = APIRouter()

IdempotencyKey = Header(None, alias="Idempotency-Key", min_length=1, max_length=64)


def _placed(order, created: bool, response: Response) -> dict:
    if created:
        response.status_code = status.HTTP_201_CREATED
        message = "Order created successfully"
    else:
        response.status_code = status.HTTP_200_OK
        message = "Order already exists for this idempotency key"
    return {"message": message, "order": order_service.order_detail(order)}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=OrderEnvelope)
def create_order(
    data: OrderCreate,
    response: Response,
    idempotency_key: Optional[str] = IdempotencyKey,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_customer),
):
    order, created = order_service.create_order(
        db,
        user_id=claims.id,
        items=data.items,
        delivery_address=data.delivery_address,
        payment_method=data.payment_method.value,
        idempotency_key=idempotency_key,
    )
    return _placed(order, created, response)


@router.post("/checkout", status_code=status.HTTP_201_CREATED, response_model=OrderEnvelope)
def checkout(
    data: CheckoutRequest,
    response: Response,
    idempotency_key: Optional[str] = IdempotencyKey,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_customer),
):
    """Place an order for everything in the cart and empty it."""
    order, created = order_service.checkout_cart(
        db,
        user_id=claims.id,
        delivery_address=data.delivery_address,
        payment_method=data.payment_method.value,
        idempotency_key=idempotency_key,
    )
    return _placed(order, created, response)


@router.get("", response_model=OrderListResponse)
def my_orders(db: Session = Depends(get_db), claims: TokenClaims = Depends(get_current_customer)):
    orders = order_service.list_user_orders(db, claims.id)
    return {"message": "User orders retrieved successfully", "count": len(orders), "orders": orders}


@router.get("/user/{user_id}", response_model=OrderListResponse)
def user_orders(
    request: Request,
    user_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_user),
):
    if not can_access_user_records(claims, user_id):
        AuditLog.log_access_denied("read", "orders", user_id, claims.id, "not the owner")
        raise Forbidden("You can only view your own orders")
    orders = order_service.list_user_orders(db, user_id)
    return {"message": "User orders retrieved successfully", "count": len(orders), "orders": orders}


@router.get("/{order_id}", response_model=OrderEnvelope)
def get_order(
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_user),
):
    order = order_service.get_order(db, order_id, claims)
    return {"message": "Order retrieved successfully", "order": order_service.order_detail(order)}


@router.post("/{order_id}/cancel", response_model=OrderEnvelope)
def cancel_order(
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_user),
):
    order = order_service.cancel_order(db, order_id, claims)
    AuditLog.log_action("cancel", "order", order.id, claims)
    return {"message": "Order cancelled successfully", "order": order_service.order_detail(order)}
