from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, CheckConstraint
from sqlalchemy.sql import func
from pharmacy_api.db.base import Base


class Drug(Base):
    """
    Pharmacy catalog entry.

    STOCK INVARIANT:
    - stock_quantity never goes negative; the CHECK constraint rejects any
      write that would, so application pre-checks are not the only guard
    - stock is consumed only by order placement (inventory_service.reserve_stock)
    """
    __tablename__ = "drugs"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_drugs_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_drugs_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    image_url = Column(String(1024), nullable=True)
    requires_prescription = Column(Boolean, default=False)  # Pharmacy compliance flag
    created_at = Column(DateTime(timezone=True), server_default=func.now())
