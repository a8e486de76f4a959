from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from pharmacy_api.db.base import Base


class VitalSign(Base):
    __tablename__ = "vital_signs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recorded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    record_type = Column(String(32), nullable=False)  # blood_pressure | heart_rate | temperature | weight | height | blood_sugar
    value = Column(JSON, nullable=False)  # {"systolic": 120, "diastolic": 80} or {"value": 72}
    unit = Column(String(16), nullable=False)
    recorded_date = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
