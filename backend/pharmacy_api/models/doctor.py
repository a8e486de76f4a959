from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text
from sqlalchemy.sql import func
from pharmacy_api.db.base import Base


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(64), nullable=True)
    specialization = Column(String(128), nullable=False, index=True)
    license_number = Column(String(128), unique=True, nullable=False)
    hospital_clinic = Column(String(255), nullable=False)
    years_experience = Column(Integer, default=0)
    consultation_fee = Column(Numeric(10, 2), default=0)
    available_days = Column(String(255), nullable=True)  # e.g. "Mon,Wed,Fri"
    available_time_start = Column(String(5), nullable=True)  # HH:MM
    available_time_end = Column(String(5), nullable=True)  # HH:MM
    profile_image = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
