"""Request/response schemas for the medical-records surface.

Field bounds mirror what the patient app and admin console send: enumerated
types as Literal, free text with length limits, ISO dates.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

ReportType = Literal["consultation", "lab_result", "imaging", "discharge_summary"]
SeverityLevel = Literal["mild", "moderate", "severe", "critical"]
ReportStatus = Literal["active", "resolved", "chronic"]
PrescriptionStatus = Literal["active", "completed", "expired", "cancelled"]
AppointmentType = Literal["consultation", "follow_up", "emergency"]
AppointmentStatus = Literal["scheduled", "confirmed", "completed", "cancelled", "no_show"]
AllergyType = Literal["drug", "food", "environmental", "other"]
AllergySeverity = Literal["mild", "moderate", "severe"]
ConditionStatus = Literal["active", "controlled", "resolved"]
VitalType = Literal["blood_pressure", "heart_rate", "temperature", "weight", "height", "blood_sugar"]
BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


def _naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; aware input is converted so equality checks line up."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Doctors
# ---------------------------------------------------------------------------

class DoctorResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    specialization: str
    license_number: str
    hospital_clinic: str
    years_experience: Optional[int] = 0
    consultation_fee: Optional[float] = 0
    available_days: Optional[str] = None
    available_time_start: Optional[str] = None
    available_time_end: Optional[str] = None
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    specialization: str = Field(..., min_length=1, max_length=128)
    license_number: str = Field(..., min_length=1, max_length=128)
    hospital_clinic: str = Field(..., min_length=1, max_length=255)
    years_experience: int = Field(0, ge=0, le=80)
    consultation_fee: float = Field(0, ge=0)
    available_days: Optional[str] = Field(None, max_length=255)
    available_time_start: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    available_time_end: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    bio: Optional[str] = Field(None, max_length=2000)
    is_active: bool = True


class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    specialization: Optional[str] = Field(None, min_length=1, max_length=128)
    license_number: Optional[str] = Field(None, min_length=1, max_length=128)
    hospital_clinic: Optional[str] = Field(None, min_length=1, max_length=255)
    years_experience: Optional[int] = Field(None, ge=0, le=80)
    consultation_fee: Optional[float] = Field(None, ge=0)
    available_days: Optional[str] = Field(None, max_length=255)
    available_time_start: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    available_time_end: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    bio: Optional[str] = Field(None, max_length=2000)
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Medical reports
# ---------------------------------------------------------------------------

class ReportCreate(BaseModel):
    doctor_id: int = Field(..., ge=1)
    report_type: ReportType
    title: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    diagnosis: Optional[str] = Field(None, max_length=500)
    symptoms: Optional[List[str]] = None
    treatment_plan: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    report_date: date
    follow_up_date: Optional[date] = None
    severity_level: SeverityLevel
    status: ReportStatus

    @field_validator("title", "description", "diagnosis", "treatment_plan", "notes", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class AdminReportCreate(ReportCreate):
    user_id: int = Field(..., ge=1)


class ReportUpdate(BaseModel):
    doctor_id: Optional[int] = Field(None, ge=1)
    report_type: Optional[ReportType] = None
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    diagnosis: Optional[str] = Field(None, max_length=500)
    symptoms: Optional[List[str]] = None
    treatment_plan: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    report_date: Optional[date] = None
    follow_up_date: Optional[date] = None
    severity_level: Optional[SeverityLevel] = None
    status: Optional[ReportStatus] = None


class ReportResponse(BaseModel):
    id: int
    user_id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    specialization: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    report_type: str
    title: str
    description: Optional[str] = None
    diagnosis: Optional[str] = None
    symptoms: List[str] = []
    treatment_plan: Optional[str] = None
    notes: Optional[str] = None
    report_date: date
    follow_up_date: Optional[date] = None
    severity_level: Optional[str] = None
    status: Optional[str] = None
    attachments: List[str] = []
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Medical prescriptions
# ---------------------------------------------------------------------------

class PrescriptionDrugIn(BaseModel):
    drug_id: int = Field(..., ge=1)
    dosage: str = Field(..., min_length=1, max_length=64)
    frequency: str = Field(..., min_length=1, max_length=64)
    duration: str = Field(..., min_length=1, max_length=64)
    instructions: Optional[str] = Field(None, max_length=500)
    quantity: int = Field(..., ge=1)


class MedicalPrescriptionCreate(BaseModel):
    user_id: int = Field(..., ge=1)
    doctor_id: int = Field(..., ge=1)
    medical_report_id: Optional[int] = Field(None, ge=1)
    diagnosis: Optional[str] = Field(None, max_length=500)
    instructions: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    prescribed_date: date
    expiry_date: Optional[date] = None
    drugs: List[PrescriptionDrugIn] = Field(..., min_length=1)


class MedicalPrescriptionResponse(BaseModel):
    id: int
    user_id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    specialization: Optional[str] = None
    medical_report_id: Optional[int] = None
    prescription_number: str
    diagnosis: Optional[str] = None
    instructions: Optional[str] = None
    notes: Optional[str] = None
    prescribed_date: date
    expiry_date: Optional[date] = None
    status: Optional[str] = None
    drug_count: int = 0


class PrescriptionDrugResponse(BaseModel):
    id: int
    drug_id: int
    drug_name: Optional[str] = None
    drug_description: Optional[str] = None
    dosage: str
    frequency: str
    duration: str
    instructions: Optional[str] = None
    quantity: int


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------

class AppointmentCreate(BaseModel):
    doctor_id: int = Field(..., ge=1)
    appointment_type: AppointmentType
    purpose: str = Field(..., min_length=5, max_length=500)
    appointment_date: datetime
    duration_minutes: int = Field(30, ge=15, le=180)
    symptoms: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("purpose", "notes", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("appointment_date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return _naive_utc(v)


class AppointmentUpdate(BaseModel):
    """Patients may only cancel or annotate their own appointments."""
    status: Optional[Literal["cancelled"]] = None
    notes: Optional[str] = Field(None, max_length=1000)


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    specialization: Optional[str] = None
    appointment_type: str
    purpose: str
    appointment_date: datetime
    duration_minutes: int
    status: str
    consultation_fee: float = 0
    payment_status: Optional[str] = None
    notes: Optional[str] = None
    symptoms: List[str] = []


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

class SummaryUpdate(BaseModel):
    """Allow-list of summary columns a patient can edit."""
    blood_type: Optional[BloodType] = None
    emergency_contact_name: Optional[str] = Field(None, min_length=2, max_length=100)
    emergency_contact_phone: Optional[str] = Field(None, min_length=10, max_length=20)
    emergency_contact_relation: Optional[str] = Field(None, min_length=2, max_length=50)
    primary_doctor_id: Optional[int] = Field(None, ge=1)
    insurance_provider: Optional[str] = Field(None, max_length=100)
    insurance_policy_number: Optional[str] = Field(None, max_length=50)

    @field_validator(
        "emergency_contact_name", "emergency_contact_phone", "emergency_contact_relation",
        "insurance_provider", "insurance_policy_number", mode="before",
    )
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class SummaryStatistics(BaseModel):
    total_reports: int
    active_prescriptions: int
    upcoming_appointments: int
    active_allergies: int


class SummaryResponse(BaseModel):
    id: int
    user_id: int
    blood_type: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    primary_doctor_id: Optional[int] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    known_allergies: List[Any] = []
    chronic_medications: List[Any] = []
    last_updated: Optional[datetime] = None
    statistics: SummaryStatistics


# ---------------------------------------------------------------------------
# Allergies, chronic conditions, vital signs
# ---------------------------------------------------------------------------

class AllergyCreate(BaseModel):
    allergen: str = Field(..., min_length=2, max_length=100)
    allergy_type: AllergyType
    severity: AllergySeverity
    reaction: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    diagnosed_date: Optional[date] = None

    @field_validator("allergen", "reaction", "notes", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class AllergyResponse(BaseModel):
    id: int
    allergen: str
    allergy_type: str
    severity: str
    reaction: Optional[str] = None
    notes: Optional[str] = None
    diagnosed_date: Optional[date] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class ChronicConditionCreate(BaseModel):
    condition_name: str = Field(..., min_length=2, max_length=200)
    icd10_code: Optional[str] = Field(None, max_length=16)
    diagnosed_date: date
    treating_doctor_id: Optional[int] = Field(None, ge=1)
    severity: AllergySeverity = "moderate"
    status: ConditionStatus = "active"
    medications: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=1000)
    last_checkup_date: Optional[date] = None
    next_checkup_date: Optional[date] = None


class ChronicConditionResponse(BaseModel):
    id: int
    condition_name: str
    icd10_code: Optional[str] = None
    diagnosed_date: date
    treating_doctor_id: Optional[int] = None
    severity: Optional[str] = None
    status: Optional[str] = None
    medications: Optional[List[str]] = None
    notes: Optional[str] = None
    last_checkup_date: Optional[date] = None
    next_checkup_date: Optional[date] = None

    class Config:
        from_attributes = True


class VitalSignCreate(BaseModel):
    record_type: VitalType
    value: Dict[str, float] = Field(..., min_length=1)
    unit: str = Field(..., min_length=1, max_length=16)
    recorded_date: datetime
    notes: Optional[str] = Field(None, max_length=1000)
    appointment_id: Optional[int] = Field(None, ge=1)

    @field_validator("recorded_date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return _naive_utc(v)


class VitalSignResponse(BaseModel):
    id: int
    record_type: str
    value: Dict[str, float]
    unit: str
    recorded_date: datetime
    notes: Optional[str] = None
    appointment_id: Optional[int] = None

    class Config:
        from_attributes = True
