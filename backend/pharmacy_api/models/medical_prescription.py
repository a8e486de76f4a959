"""Doctor-issued prescriptions (medical documents), distinct from order prescription scans."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmacy_api.db.base import Base


class MedicalPrescription(Base):
    __tablename__ = "medical_prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    medical_report_id = Column(Integer, ForeignKey("medical_reports.id", ondelete="SET NULL"), nullable=True)
    prescription_number = Column(String(64), unique=True, nullable=False)
    diagnosis = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    prescribed_date = Column(Date, nullable=False, index=True)
    expiry_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    status = Column(String(16), default="active")  # active | completed | expired | cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor")
    drugs = relationship("PrescriptionDrug", back_populates="prescription", cascade="all, delete-orphan")


class PrescriptionDrug(Base):
    __tablename__ = "prescription_drugs"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("medical_prescriptions.id", ondelete="CASCADE"), nullable=False)
    drug_id = Column(Integer, ForeignKey("drugs.id", ondelete="CASCADE"), nullable=False)
    dosage = Column(String(64), nullable=False)  # "500mg"
    frequency = Column(String(64), nullable=False)  # "twice daily"
    duration = Column(String(64), nullable=False)  # "7 days"
    instructions = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    prescription = relationship("MedicalPrescription", back_populates="drugs")
    drug = relationship("Drug")
