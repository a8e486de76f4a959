"""
Admin console API: catalog management, order fulfilment, users, dashboard.

Every route requires an admin token. Mutations are written to the audit log.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_api.api.deps import get_current_admin, get_db
from pharmacy_api.core.audit import AuditLog
from pharmacy_api.core.config import settings
from pharmacy_api.core.exceptions import Conflict, DrugNotFound, ValidationFailed
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.models.drug import Drug
from pharmacy_api.models.order import Order, OrderItem, OrderStatus
from pharmacy_api.models.user import User
from pharmacy_api.schemas.drug import DrugCreate, DrugResponse, DrugUpdate, LowStockItem
from pharmacy_api.schemas.order import OrderEnvelope, OrderListResponse, OrderStatusUpdate
from pharmacy_api.schemas.user import UserResponse
from pharmacy_api.services import inventory_service, order_service

router = APIRouter()


def _drug_fields(data, **dump_args) -> dict:
    fields = data.model_dump(**dump_args)
    if fields.get("image_url") is not None:
        fields["image_url"] = str(fields["image_url"])
    return fields


# ==============================================================================
# DRUGS
# ==============================================================================

@router.get("/drugs")
def list_drugs(db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    drugs = db.query(Drug).order_by(Drug.id).all()
    return {
        "message": "Drugs retrieved successfully",
        "count": len(drugs),
        "drugs": [DrugResponse.model_validate(d) for d in drugs],
    }


@router.get("/drugs/low-stock")
def low_stock(
    threshold: int = Query(settings.LOW_STOCK_THRESHOLD, ge=1, description="Stock threshold for low stock alert"),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    """Drugs below the threshold for the dashboard alert banner."""
    items = [
        LowStockItem(
            id=d.id,
            name=d.name,
            stock_quantity=d.stock_quantity,
            status="Out of Stock" if d.stock_quantity == 0 else "Low Stock",
        )
        for d in inventory_service.low_stock_drugs(db, threshold)
    ]
    return {"message": "Low stock drugs retrieved successfully", "count": len(items), "drugs": items}


@router.post("/drugs", status_code=status.HTTP_201_CREATED)
def create_drug(data: DrugCreate, db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    drug = Drug(**_drug_fields(data))
    db.add(drug)
    db.commit()
    db.refresh(drug)
    AuditLog.log_action("create", "drug", drug.id, admin, changes={"name": drug.name})
    return {"message": "Drug created successfully", "drug": DrugResponse.model_validate(drug)}


@router.put("/drugs/{drug_id}")
def update_drug(
    data: DrugUpdate,
    drug_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    """Only the columns on DrugUpdate can change; unknown body keys are ignored."""
    drug = db.query(Drug).filter(Drug.id == drug_id).first()
    if not drug:
        raise DrugNotFound("Drug not found")

    changes = _drug_fields(data, exclude_unset=True)
    # name/price/stock are NOT NULL
    for required in ("name", "price", "stock_quantity"):
        if required in changes and changes[required] is None:
            raise ValidationFailed(f"{required} cannot be null")
    if not changes:
        raise ValidationFailed("No valid fields to update")

    for field, value in changes.items():
        setattr(drug, field, value)
    db.commit()
    db.refresh(drug)
    AuditLog.log_action("update", "drug", drug.id, admin, changes=changes)
    return {"message": "Drug updated successfully", "drug": DrugResponse.model_validate(drug)}


@router.delete("/drugs/{drug_id}")
def delete_drug(
    drug_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    drug = db.query(Drug).filter(Drug.id == drug_id).first()
    if not drug:
        raise DrugNotFound("Drug not found")

    if db.query(OrderItem.id).filter(OrderItem.drug_id == drug_id).first():
        raise Conflict("Cannot delete drug that is in orders")

    db.delete(drug)
    try:
        db.commit()
    except IntegrityError:
        # An order referencing the drug was committed after our check
        db.rollback()
        raise Conflict("Cannot delete drug that is in orders")
    AuditLog.log_action("delete", "drug", drug_id, admin)
    return {"message": "Drug deleted successfully"}


# ==============================================================================
# ORDERS
# ==============================================================================

@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    orders = order_service.list_orders(db, order_status)
    return {"message": "Orders retrieved successfully", "count": len(orders), "orders": orders}


@router.put("/orders/{order_id}/status", response_model=OrderEnvelope)
def update_order_status(
    data: OrderStatusUpdate,
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    order = order_service.get_order(db, order_id, admin)
    previous = order.status
    order = order_service.update_status(db, order_id, data.status)
    AuditLog.log_action("status_change", "order", order.id, admin,
                        changes={"from": previous, "to": order.status})
    return {"message": "Order status updated successfully", "order": order_service.order_detail(order)}


# ==============================================================================
# USERS & DASHBOARD
# ==============================================================================

@router.get("/users")
def list_users(db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return {
        "message": "Users retrieved successfully",
        "count": len(users),
        "users": [UserResponse.model_validate(u) for u in users],
    }


@router.get("/dashboard/stats")
def dashboard_stats(db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    """Counts for the dashboard cards. Revenue only counts delivered orders."""
    by_status = dict(
        db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    revenue = (
        db.query(func.sum(Order.total_amount))
        .filter(Order.status == OrderStatus.DELIVERED.value)
        .scalar()
    )
    return {
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "total_drugs": db.query(func.count(Drug.id)).scalar() or 0,
        "total_orders": sum(by_status.values()),
        "orders_by_status": {s.value: by_status.get(s.value, 0) for s in OrderStatus},
        "total_revenue": float(revenue or 0),
        "low_stock_count": db.query(func.count(Drug.id))
        .filter(Drug.stock_quantity < settings.LOW_STOCK_THRESHOLD)
        .scalar() or 0,
    }
