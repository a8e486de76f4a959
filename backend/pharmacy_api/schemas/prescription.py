from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class PrescriptionResponse(BaseModel):
    id: int
    order_id: int
    image_url: str
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True
