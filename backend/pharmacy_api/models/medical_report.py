from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from pharmacy_api.db.base import Base


class MedicalReport(Base):
    __tablename__ = "medical_reports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    report_type = Column(String(32), nullable=False)  # consultation | lab_result | imaging | discharge_summary
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    symptoms = Column(JSON, nullable=True)  # list of strings
    treatment_plan = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    report_date = Column(Date, nullable=False, index=True)
    follow_up_date = Column(Date, nullable=True)
    severity_level = Column(String(16), default="moderate")  # mild | moderate | severe | critical
    status = Column(String(16), default="active")  # active | resolved | chronic
    attachments = Column(JSON, nullable=True)  # list of /uploads/medical/... URLs
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    doctor = relationship("Doctor")
