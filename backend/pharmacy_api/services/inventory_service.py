"""Stock reservation and release. Used by the order service inside its transaction.

Stock is consumed with a conditional UPDATE so that "check there is enough"
and "take it" happen in one statement; two orders racing for the last units
cannot both succeed.
"""
import logging
from typing import List

from sqlalchemy import update
from sqlalchemy.orm import Session

from pharmacy_api.core.exceptions import InsufficientStock
from pharmacy_api.models.drug import Drug

logger = logging.getLogger(__name__)


def reserve_stock(db: Session, drug_id: int, quantity: int) -> None:
    """
    Decrement stock by quantity if and only if enough is left.

    Does not commit: the caller owns the transaction and must roll back on failure.

    Raises:
        InsufficientStock: no row matched (stock_quantity < quantity)
    """
    result = db.execute(
        update(Drug)
        .where(Drug.id == drug_id, Drug.stock_quantity >= quantity)
        .values(stock_quantity=Drug.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(f"Stock reservation refused: drug_id={drug_id} quantity={quantity}")
        raise InsufficientStock(f"Insufficient stock for drug ID {drug_id}")


def release_stock(db: Session, drug_id: int, quantity: int) -> None:
    """Return previously reserved units (order cancellation). Does not commit."""
    db.execute(
        update(Drug)
        .where(Drug.id == drug_id)
        .values(stock_quantity=Drug.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )


def low_stock_drugs(db: Session, threshold: int, limit: int = 50) -> List[Drug]:
    """Drugs below the threshold, emptiest first."""
    return (
        db.query(Drug)
        .filter(Drug.stock_quantity < threshold)
        .order_by(Drug.stock_quantity.asc(), Drug.name)
        .limit(limit)
        .all()
    )
