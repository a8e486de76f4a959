from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from pharmacy_api.db.base import Base


class ChronicCondition(Base):
    __tablename__ = "chronic_conditions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    condition_name = Column(String(200), nullable=False)
    icd10_code = Column(String(16), nullable=True)
    diagnosed_date = Column(Date, nullable=False)
    treating_doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True)
    severity = Column(String(16), default="moderate")  # mild | moderate | severe
    status = Column(String(16), default="active")  # active | controlled | resolved
    medications = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    last_checkup_date = Column(Date, nullable=True)
    next_checkup_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
