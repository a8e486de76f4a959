"""Cart: per-user line items keyed by (user, drug).

Stock is validated against the live Drug row on every write but is not
reserved; reservation happens only when an order is placed.
"""
import logging
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_api.core.exceptions import InsufficientStock, NotFound
from pharmacy_api.models.cart import CartItem
from pharmacy_api.models.drug import Drug

logger = logging.getLogger(__name__)


def add_item(db: Session, user_id: int, drug_id: int, quantity: int) -> CartItem:
    """
    Add quantity of a drug to the cart; additive if the line already exists.

    Raises:
        NotFound: drug does not exist
        InsufficientStock: stock_quantity < existing cart quantity + quantity
    """
    # Two attempts: a concurrent add may insert the (user, drug) row between our read and insert
    for attempt in range(2):
        drug = db.query(Drug).filter(Drug.id == drug_id).first()
        if not drug:
            raise NotFound("Drug not found")

        existing = (
            db.query(CartItem)
            .filter(CartItem.user_id == user_id, CartItem.drug_id == drug_id)
            .first()
        )
        new_quantity = quantity + (existing.quantity if existing else 0)
        if drug.stock_quantity < new_quantity:
            if existing:
                raise InsufficientStock("Insufficient stock for requested quantity")
            raise InsufficientStock("Insufficient stock")

        if existing:
            existing.quantity = new_quantity
            item = existing
        else:
            item = CartItem(user_id=user_id, drug_id=drug_id, quantity=quantity)
            db.add(item)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            # Only a lost race on (user, drug) is retried; any other violation propagates
            if attempt == 0 and not existing and _line_exists(db, user_id, drug_id):
                logger.info(f"Cart insert raced for user_id={user_id} drug_id={drug_id}, retrying as update")
                continue
            raise
        db.refresh(item)
        return item


def _line_exists(db: Session, user_id: int, drug_id: int) -> bool:
    return db.query(CartItem.id).filter(
        CartItem.user_id == user_id, CartItem.drug_id == drug_id
    ).first() is not None


def get_cart(db: Session, user_id: int) -> Dict:
    """Projection of the cart joined with live drug data. No mutation."""
    rows = (
        db.query(CartItem, Drug)
        .join(Drug, CartItem.drug_id == Drug.id)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )
    total = Decimal("0")
    lines: List[Dict] = []
    for item, drug in rows:
        price = Decimal(str(drug.price))
        subtotal = price * item.quantity
        total += subtotal
        lines.append({
            "id": item.id,
            "drug_id": drug.id,
            "name": drug.name,
            "description": drug.description,
            "price": float(price),
            "image_url": drug.image_url,
            "requires_prescription": bool(drug.requires_prescription),
            "stock_quantity": drug.stock_quantity,
            "quantity": item.quantity,
            "subtotal": float(subtotal),
        })
    return {"cart": lines, "total": float(total.quantize(Decimal("0.01")))}


def update_quantity(db: Session, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
    """
    Set the quantity of one of the user's cart lines.

    Raises:
        NotFound: the item does not exist or belongs to someone else
        InsufficientStock: quantity exceeds current stock (stored quantity unchanged)
    """
    row = (
        db.query(CartItem, Drug)
        .join(Drug, CartItem.drug_id == Drug.id)
        .filter(CartItem.id == cart_item_id, CartItem.user_id == user_id)
        .first()
    )
    if not row:
        raise NotFound("Cart item not found")
    item, drug = row

    if drug.stock_quantity < quantity:
        raise InsufficientStock("Insufficient stock")

    item.quantity = quantity
    db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, user_id: int, cart_item_id: int) -> None:
    deleted = (
        db.query(CartItem)
        .filter(CartItem.id == cart_item_id, CartItem.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted == 0:
        raise NotFound("Cart item not found")


def clear_cart(db: Session, user_id: int, commit: bool = True) -> int:
    """Delete every line of the user's cart. Returns the number of lines removed."""
    deleted = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id)
        .delete(synchronize_session=False)
    )
    if commit:
        db.commit()
    return deleted
