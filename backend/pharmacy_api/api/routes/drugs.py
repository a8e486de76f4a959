"""Public catalog: list, search and fetch drugs. No auth required."""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from pharmacy_api.api.deps import get_db
from pharmacy_api.core.exceptions import DrugNotFound, ValidationFailed
from pharmacy_api.models.drug import Drug
from pharmacy_api.schemas.drug import DrugResponse

router = APIRouter()


@router.get("")
def list_drugs(search: Optional[str] = Query(None, max_length=100), db: Session = Depends(get_db)):
    """All drugs, or those whose name or description contains `search`."""
    query = db.query(Drug)
    if search is not None:
        term = search.strip()
        if not term:
            raise ValidationFailed("Search term cannot be empty")
        pattern = f"%{term}%"
        query = query.filter(or_(Drug.name.ilike(pattern), Drug.description.ilike(pattern)))

    drugs = query.order_by(Drug.name).all()
    return {
        "message": "Drugs retrieved successfully",
        "count": len(drugs),
        "drugs": [DrugResponse.model_validate(d) for d in drugs],
    }


@router.get("/{drug_id}")
def get_drug(drug_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    drug = db.query(Drug).filter(Drug.id == drug_id).first()
    if not drug:
        raise DrugNotFound("Drug not found")
    return {"message": "Drug retrieved successfully", "drug": DrugResponse.model_validate(drug)}
