"""Prescription scans for orders (multipart upload, one per order)."""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile, status
from sqlalchemy.orm import Session

from pharmacy_api.api.deps import get_current_customer, get_current_user, get_db
from pharmacy_api.core.exceptions import ValidationFailed
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.schemas.prescription import PrescriptionResponse
from pharmacy_api.services import prescription_service

router = APIRouter()


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_prescription(
    prescription: Optional[UploadFile] = File(None),
    order_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_customer),
):
    """Form fields: `prescription` (JPEG/PNG/PDF, max 5MB) and `order_id`."""
    if prescription is None or not prescription.filename:
        raise ValidationFailed("No file uploaded")
    if order_id is None or order_id < 1:
        raise ValidationFailed("Order ID is required")

    record = prescription_service.upload(db, order_id, prescription, claims)
    return {
        "message": "Prescription uploaded successfully",
        "prescription": PrescriptionResponse.model_validate(record),
    }


@router.get("/{order_id}")
def get_prescription(
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_user),
):
    record = prescription_service.get_by_order(db, order_id, claims)
    return {
        "message": "Prescription retrieved successfully",
        "prescription": PrescriptionResponse.model_validate(record),
    }
