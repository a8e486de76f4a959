from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Boolean
from sqlalchemy.sql import func
from pharmacy_api.db.base import Base


class Allergy(Base):
    __tablename__ = "allergies"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    allergen = Column(String(100), nullable=False)
    allergy_type = Column(String(16), nullable=False)  # drug | food | environmental | other
    severity = Column(String(16), nullable=False)  # mild | moderate | severe
    reaction = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    diagnosed_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
