"""
Order placement and lifecycle.

Placing an order is one database transaction:
  insert order -> per line conditional stock decrement -> insert order items -> commit.
Any refused decrement rolls the whole thing back, so a failed order leaves
stock, orders and order_items exactly as they were. Lock contention
(SQLite "database is locked") rolls back and retries the transaction.
"""
import logging
import time
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from pharmacy_api.core.config import settings
from pharmacy_api.core.exceptions import (
    DrugNotFound,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    PharmacyError,
    ValidationFailed,
)
from pharmacy_api.core.permissions import can_access_user_records
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.db.base import utcnow
from pharmacy_api.models.cart import CartItem
from pharmacy_api.models.drug import Drug
from pharmacy_api.models.order import Order, OrderItem, OrderStatus, can_transition
from pharmacy_api.models.user import User
from pharmacy_api.services import cart_service, inventory_service

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = 0.05


def _is_lock_error(exc: OperationalError) -> bool:
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    return "locked" in text or "busy" in text or "deadlock" in text or "serializ" in text


def _merge_lines(items: Iterable) -> "OrderedDict[int, int]":
    """Collapse repeated drug ids into one line with the summed quantity."""
    merged: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        merged[item.drug_id] = merged.get(item.drug_id, 0) + item.quantity
    return merged


def _find_by_key(db: Session, user_id: int, idempotency_key: Optional[str]) -> Optional[Order]:
    if not idempotency_key:
        return None
    return (
        db.query(Order)
        .filter(Order.user_id == user_id, Order.idempotency_key == idempotency_key)
        .first()
    )


def _load_drugs(db: Session, lines: Dict[int, int]) -> Dict[int, Drug]:
    """Fetch every drug on the order; fail fast on a missing drug or obviously short stock."""
    found = {d.id: d for d in db.query(Drug).filter(Drug.id.in_(list(lines))).all()}
    for drug_id, quantity in lines.items():
        drug = found.get(drug_id)
        if drug is None:
            raise DrugNotFound(f"Drug with ID {drug_id} not found")
        if drug.stock_quantity < quantity:
            raise InsufficientStock(f"Insufficient stock for drug ID {drug_id}")
    return found


def _write_order(
    db: Session,
    user_id: int,
    lines: Dict[int, int],
    delivery_address: str,
    payment_method: str,
    idempotency_key: Optional[str],
    clear_cart: bool,
) -> Order:
    drugs = _load_drugs(db, lines)
    total = sum((Decimal(str(drugs[d].price)) * q for d, q in lines.items()), Decimal("0"))

    now = utcnow()
    order = Order(
        user_id=user_id,
        status=OrderStatus.PENDING.value,
        total_amount=total,
        delivery_address=delivery_address,
        payment_method=payment_method,
        idempotency_key=idempotency_key,
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    db.flush()

    # Fixed lock order across concurrent orders
    for drug_id in sorted(lines):
        quantity = lines[drug_id]
        inventory_service.reserve_stock(db, drug_id, quantity)
        db.add(OrderItem(
            order_id=order.id,
            drug_id=drug_id,
            quantity=quantity,
            price_at_purchase=drugs[drug_id].price,
        ))

    if clear_cart:
        cart_service.clear_cart(db, user_id, commit=False)

    db.commit()
    db.refresh(order)
    return order


def _place(
    db: Session,
    user_id: int,
    read_lines,
    delivery_address: str,
    payment_method: str,
    idempotency_key: Optional[str],
    clear_cart: bool,
) -> Tuple[Order, bool]:
    """
    Run the order transaction with bounded retries.

    read_lines is called on every attempt so that a retry sees current data.

    Returns:
        (order, created) - created is False when an earlier order with the same
        idempotency key was returned instead
    """
    existing = _find_by_key(db, user_id, idempotency_key)
    if existing:
        logger.info(f"Idempotent replay: user_id={user_id} key={idempotency_key} order_id={existing.id}")
        return existing, False

    attempts = max(1, settings.ORDER_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            lines = read_lines()
            order = _write_order(db, user_id, lines, delivery_address, payment_method,
                                 idempotency_key, clear_cart)
            logger.info(f"Order {order.id} placed: user_id={user_id} lines={len(lines)} total={order.total_amount}")
            return order, True
        except PharmacyError:
            db.rollback()
            raise
        except IntegrityError:
            db.rollback()
            # Same key committed by a concurrent request
            existing = _find_by_key(db, user_id, idempotency_key)
            if existing:
                return existing, False
            raise
        except OperationalError as exc:
            db.rollback()
            if not _is_lock_error(exc) or attempt == attempts:
                raise
            logger.warning(f"Order transaction hit a lock (attempt {attempt}/{attempts}), retrying")
            time.sleep(RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1)))


def create_order(
    db: Session,
    user_id: int,
    items: List,
    delivery_address: str,
    payment_method: str,
    idempotency_key: Optional[str] = None,
) -> Tuple[Order, bool]:
    """
    Place an order from explicit lines (objects with drug_id and quantity).

    Raises:
        DrugNotFound: a drug id does not exist
        InsufficientStock: a line cannot be satisfied; nothing is written
    """
    if not items:
        raise ValidationFailed("Order must contain at least one item")
    lines = _merge_lines(items)
    return _place(db, user_id, lambda: lines, delivery_address, payment_method,
                  idempotency_key, clear_cart=False)


def checkout_cart(
    db: Session,
    user_id: int,
    delivery_address: str,
    payment_method: str,
    idempotency_key: Optional[str] = None,
) -> Tuple[Order, bool]:
    """Turn the user's cart into an order and empty the cart in the same transaction."""

    def read_cart() -> Dict[int, int]:
        cart = db.query(CartItem).filter(CartItem.user_id == user_id).order_by(CartItem.id).all()
        if not cart:
            raise ValidationFailed("Cart is empty")
        return _merge_lines(cart)

    return _place(db, user_id, read_cart, delivery_address, payment_method,
                  idempotency_key, clear_cart=True)


def _load_order(db: Session, order_id: int) -> Optional[Order]:
    return (
        db.query(Order)
        .options(joinedload(Order.items).joinedload(OrderItem.drug))
        .filter(Order.id == order_id)
        .first()
    )


def get_order(db: Session, order_id: int, requester: TokenClaims) -> Order:
    """Owner or admin only; anyone else gets the same 404 as a missing order."""
    order = _load_order(db, order_id)
    if not order or not can_access_user_records(requester, order.user_id):
        raise NotFound("Order not found")
    return order


def _summary_query(db: Session):
    item_count = func.count(OrderItem.id).label("item_count")
    return (
        db.query(Order, item_count, User.name, User.email)
        .outerjoin(OrderItem, OrderItem.order_id == Order.id)
        .join(User, User.id == Order.user_id)
        .group_by(Order.id, User.name, User.email)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )


def list_user_orders(db: Session, user_id: int) -> List[Dict]:
    rows = _summary_query(db).filter(Order.user_id == user_id).all()
    return [order_summary(o, count, name, email) for o, count, name, email in rows]


def list_orders(db: Session, status: Optional[OrderStatus] = None) -> List[Dict]:
    query = _summary_query(db)
    if status is not None:
        query = query.filter(Order.status == status.value)
    return [order_summary(o, count, name, email) for o, count, name, email in query.all()]


def _transition(db: Session, order: Order, target: OrderStatus) -> Order:
    current = OrderStatus(order.status)
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot change order status from {current.value} to {target.value}")

    try:
        if target is OrderStatus.CANCELLED:
            for item in order.items:
                inventory_service.release_stock(db, item.drug_id, item.quantity)
        order.status = target.value
        order.updated_at = utcnow()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(order)
    logger.info(f"Order {order.id} status {current.value} -> {target.value}")
    return order


def update_status(db: Session, order_id: int, new_status) -> Order:
    """
    Admin status change guarded by the allowed-transitions table.

    Raises:
        ValidationFailed: new_status is not an order status
        NotFound: no such order
        InvalidTransition: move not allowed from the current status
    """
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise ValidationFailed("Invalid status")
    order = _load_order(db, order_id)
    if not order:
        raise NotFound("Order not found")
    return _transition(db, order, target)


def cancel_order(db: Session, order_id: int, requester: TokenClaims) -> Order:
    """Customers may cancel their own order while it is still pending."""
    order = get_order(db, order_id, requester)
    if not requester.is_admin and order.status != OrderStatus.PENDING.value:
        raise InvalidTransition("Only pending orders can be cancelled")
    return _transition(db, order, OrderStatus.CANCELLED)


def order_detail(order: Order) -> Dict:
    items = []
    for item in order.items:
        price = Decimal(str(item.price_at_purchase))
        items.append({
            "id": item.id,
            "drug_id": item.drug_id,
            "drug_name": item.drug.name if item.drug else None,
            "image_url": item.drug.image_url if item.drug else None,
            "quantity": item.quantity,
            "price_at_purchase": float(price),
            "subtotal": float(price * item.quantity),
        })
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "total_amount": float(order.total_amount),
        "delivery_address": order.delivery_address,
        "payment_method": order.payment_method,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "items": items,
    }


def order_summary(order: Order, item_count: int, customer_name: Optional[str] = None,
                  customer_email: Optional[str] = None) -> Dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "total_amount": float(order.total_amount),
        "delivery_address": order.delivery_address,
        "payment_method": order.payment_method,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "item_count": item_count,
        "customer_name": customer_name,
        "customer_email": customer_email,
    }
