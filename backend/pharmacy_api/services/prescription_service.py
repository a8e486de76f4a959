"""Prescription scans bound to orders. One per order."""
import logging

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_api.core.exceptions import Conflict, NotFound
from pharmacy_api.core.permissions import can_access_user_records
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.models.order import Order
from pharmacy_api.models.prescription import Prescription
from pharmacy_api.services import storage_service

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Prescription already uploaded for this order"


def upload(db: Session, order_id: int, file: UploadFile, requester: TokenClaims) -> Prescription:
    """
    Store the file and bind it to the order.

    Raises:
        NotFound: order absent or owned by someone else
        Conflict: the order already has a prescription
        InvalidFile: type or size rejected
    """
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order or not can_access_user_records(requester, order.user_id):
        raise NotFound("Order not found")

    if db.query(Prescription.id).filter(Prescription.order_id == order_id).first():
        raise Conflict(DUPLICATE_MESSAGE)

    path, url = storage_service.save_upload(file, "prescriptions", prefix="prescription")

    prescription = Prescription(order_id=order_id, image_url=url)
    db.add(prescription)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent upload for the same order
        db.rollback()
        storage_service.discard(path)
        raise Conflict(DUPLICATE_MESSAGE)
    except Exception:
        db.rollback()
        storage_service.discard(path)
        raise
    db.refresh(prescription)
    logger.info(f"Prescription {prescription.id} stored for order {order_id}")
    return prescription


def get_by_order(db: Session, order_id: int, requester: TokenClaims) -> Prescription:
    row = (
        db.query(Prescription, Order.user_id)
        .join(Order, Order.id == Prescription.order_id)
        .filter(Prescription.order_id == order_id)
        .first()
    )
    if not row or not can_access_user_records(requester, row[1]):
        raise NotFound("Prescription not found")
    return row[0]
