from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Text, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from pharmacy_api.db.base import Base

# Appointments in these states no longer occupy the doctor's slot
RELEASED_STATUSES = ("cancelled", "no_show")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    appointment_type = Column(String(32), nullable=False)  # consultation | follow_up | emergency
    purpose = Column(Text, nullable=False)
    appointment_date = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, default=30)
    status = Column(String(16), default="scheduled", index=True)  # scheduled | confirmed | completed | cancelled | no_show
    consultation_fee = Column(Numeric(10, 2), default=0)
    payment_status = Column(String(16), default="pending")  # pending | paid | refunded
    notes = Column(Text, nullable=True)
    symptoms = Column(JSON, nullable=True)
    reminder_sent = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor")
