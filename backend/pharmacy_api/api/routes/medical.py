"""Patient medical records. Every query is scoped to the caller's own user id."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from pharmacy_api.api.deps import get_current_user, get_db
from pharmacy_api.core.exceptions import Forbidden, NotFound, ValidationFailed
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.db.base import utcnow
from pharmacy_api.models.allergy import Allergy
from pharmacy_api.models.appointment import Appointment
from pharmacy_api.models.chronic_condition import ChronicCondition
from pharmacy_api.models.doctor import Doctor
from pharmacy_api.models.medical_prescription import MedicalPrescription, PrescriptionDrug
from pharmacy_api.models.medical_report import MedicalReport
from pharmacy_api.models.vital_sign import VitalSign
from pharmacy_api.schemas.medical import (
    AllergyCreate,
    AllergyResponse,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    ChronicConditionCreate,
    ChronicConditionResponse,
    DoctorResponse,
    PrescriptionStatus,
    ReportCreate,
    ReportStatus,
    ReportType,
    SummaryResponse,
    SummaryUpdate,
    VitalSignCreate,
    VitalSignResponse,
    VitalType,
)
from pharmacy_api.services import medical_service

router = APIRouter()


def patient(claims: TokenClaims = Depends(get_current_user)) -> TokenClaims:
    """Medical records belong to customer accounts; admins use /api/admin/medical."""
    if claims.is_admin:
        raise Forbidden("Use the admin medical endpoints")
    return claims


# --- doctors -----------------------------------------------------------------

@router.get("/doctors")
def list_doctors(
    specialization: Optional[str] = Query(None, max_length=128),
    available: Optional[bool] = None,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_user),
):
    query = db.query(Doctor).filter(Doctor.is_active.is_(True))
    if specialization:
        query = query.filter(Doctor.specialization == specialization)
    if available:
        query = query.filter(Doctor.available_days.isnot(None))
    doctors = query.order_by(Doctor.name).all()
    return {
        "message": "Doctors retrieved successfully",
        "count": len(doctors),
        "doctors": [DoctorResponse.model_validate(d) for d in doctors],
    }


@router.get("/doctors/{doctor_id}")
def get_doctor(
    doctor_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(get_current_user),
):
    doctor = medical_service.get_active_doctor(db, doctor_id)
    return {"message": "Doctor retrieved successfully", "doctor": DoctorResponse.model_validate(doctor)}


# --- reports -----------------------------------------------------------------

@router.get("/reports")
def list_reports(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    report_type: Optional[ReportType] = None,
    report_status: Optional[ReportStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    query = (
        db.query(MedicalReport)
        .options(joinedload(MedicalReport.doctor))
        .filter(MedicalReport.user_id == claims.id)
    )
    if report_type:
        query = query.filter(MedicalReport.report_type == report_type)
    if report_status:
        query = query.filter(MedicalReport.status == report_status)
    reports = query.order_by(MedicalReport.report_date.desc(), MedicalReport.id.desc()).limit(limit).offset(offset).all()
    return {
        "message": "Medical reports retrieved successfully",
        "count": len(reports),
        "reports": [medical_service.report_to_dict(r) for r in reports],
    }


@router.post("/reports", status_code=status.HTTP_201_CREATED)
def create_report(data: ReportCreate, db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    report = medical_service.create_report(db, claims.id, data.model_dump())
    return {"message": "Medical report created successfully", "report": medical_service.report_to_dict(report)}


@router.post("/reports/{report_id}/attachments")
def upload_report_attachments(
    report_id: int = Path(..., ge=1),
    attachments: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    """Up to 5 files per report: JPEG, PNG, PDF, DOC or DOCX, 5MB each."""
    report = (
        db.query(MedicalReport)
        .filter(MedicalReport.id == report_id, MedicalReport.user_id == claims.id)
        .first()
    )
    if not report:
        raise NotFound("Medical report not found")
    report = medical_service.add_report_attachments(db, report, attachments)
    return {"message": "Attachments uploaded successfully", "report": medical_service.report_to_dict(report)}


# --- prescriptions -----------------------------------------------------------

@router.get("/prescriptions")
def list_prescriptions(
    prescription_status: Optional[PrescriptionStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    drug_count = func.count(PrescriptionDrug.id).label("drug_count")
    query = (
        db.query(MedicalPrescription, drug_count)
        .outerjoin(PrescriptionDrug, PrescriptionDrug.prescription_id == MedicalPrescription.id)
        .filter(MedicalPrescription.user_id == claims.id)
        .group_by(MedicalPrescription.id)
    )
    if prescription_status:
        query = query.filter(MedicalPrescription.status == prescription_status)
    rows = query.order_by(MedicalPrescription.prescribed_date.desc(), MedicalPrescription.id.desc()).all()
    return {
        "message": "Prescriptions retrieved successfully",
        "count": len(rows),
        "prescriptions": [medical_service.prescription_to_dict(p, count) for p, count in rows],
    }


@router.get("/prescriptions/{prescription_id}")
def get_prescription(
    prescription_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    prescription = (
        db.query(MedicalPrescription)
        .options(joinedload(MedicalPrescription.drugs).joinedload(PrescriptionDrug.drug))
        .filter(MedicalPrescription.id == prescription_id, MedicalPrescription.user_id == claims.id)
        .first()
    )
    if not prescription:
        raise NotFound("Prescription not found")
    return {
        "message": "Prescription retrieved successfully",
        "prescription": medical_service.prescription_to_dict(prescription),
        "drugs": medical_service.prescription_drugs(prescription),
    }


# --- appointments ------------------------------------------------------------

@router.get("/appointments")
def list_appointments(
    appointment_status: Optional[AppointmentStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    query = (
        db.query(Appointment)
        .options(joinedload(Appointment.doctor))
        .filter(Appointment.user_id == claims.id)
    )
    if appointment_status:
        query = query.filter(Appointment.status == appointment_status)
    if start_date:
        query = query.filter(Appointment.appointment_date >= start_date.replace(tzinfo=None))
    if end_date:
        query = query.filter(Appointment.appointment_date <= end_date.replace(tzinfo=None))
    appointments = query.order_by(Appointment.appointment_date.desc()).limit(limit).offset(offset).all()
    return {
        "message": "Appointments retrieved successfully",
        "count": len(appointments),
        "appointments": [medical_service.appointment_to_dict(a) for a in appointments],
    }


@router.post("/appointments", status_code=status.HTTP_201_CREATED)
def book_appointment(data: AppointmentCreate, db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    appointment = medical_service.book_appointment(db, claims.id, data.model_dump())
    return {
        "message": "Appointment booked successfully",
        "appointment": medical_service.appointment_to_dict(appointment),
    }


@router.put("/appointments/{appointment_id}")
def update_appointment(
    data: AppointmentUpdate,
    appointment_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationFailed("No fields to update")
    appointment = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id, Appointment.user_id == claims.id)
        .first()
    )
    if not appointment:
        raise NotFound("Appointment not found")
    if changes.get("status") == "cancelled" and appointment.status in ("completed", "cancelled", "no_show"):
        raise ValidationFailed(f"Cannot cancel an appointment that is {appointment.status}")
    for field, value in changes.items():
        setattr(appointment, field, value)
    appointment.updated_at = utcnow()
    db.commit()
    db.refresh(appointment)
    return {
        "message": "Appointment updated successfully",
        "appointment": medical_service.appointment_to_dict(appointment),
    }


# --- summary -----------------------------------------------------------------

@router.get("/summary")
def get_summary(db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    summary = medical_service.get_or_create_summary(db, claims.id)
    body = SummaryResponse(
        id=summary.id,
        user_id=summary.user_id,
        blood_type=summary.blood_type,
        emergency_contact_name=summary.emergency_contact_name,
        emergency_contact_phone=summary.emergency_contact_phone,
        emergency_contact_relation=summary.emergency_contact_relation,
        primary_doctor_id=summary.primary_doctor_id,
        insurance_provider=summary.insurance_provider,
        insurance_policy_number=summary.insurance_policy_number,
        known_allergies=summary.known_allergies or [],
        chronic_medications=summary.chronic_medications or [],
        last_updated=summary.last_updated,
        statistics=medical_service.summary_statistics(db, claims.id),
    )
    return {"message": "Medical summary retrieved successfully", "summary": body}


@router.put("/summary")
def update_summary(data: SummaryUpdate, db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    medical_service.update_summary(db, claims.id, data.model_dump(exclude_unset=True))
    return {"message": "Medical summary updated successfully"}


# --- allergies ---------------------------------------------------------------

@router.get("/allergies")
def list_allergies(db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    allergies = (
        db.query(Allergy)
        .filter(Allergy.user_id == claims.id, Allergy.is_active.is_(True))
        .order_by(Allergy.severity.desc(), Allergy.allergen)
        .all()
    )
    return {
        "message": "Allergies retrieved successfully",
        "count": len(allergies),
        "allergies": [AllergyResponse.model_validate(a) for a in allergies],
    }


@router.post("/allergies", status_code=status.HTTP_201_CREATED)
def add_allergy(data: AllergyCreate, db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    allergy = medical_service.add_allergy(db, claims.id, data.model_dump())
    return {"message": "Allergy added successfully", "allergy": AllergyResponse.model_validate(allergy)}


@router.delete("/allergies/{allergy_id}")
def remove_allergy(
    allergy_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    medical_service.deactivate_allergy(db, claims.id, allergy_id)
    return {"message": "Allergy removed successfully"}


# --- chronic conditions, vital signs ----------------------------------------

@router.get("/chronic-conditions")
def list_chronic_conditions(db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    conditions = (
        db.query(ChronicCondition)
        .filter(ChronicCondition.user_id == claims.id)
        .order_by(ChronicCondition.diagnosed_date.desc())
        .all()
    )
    return {
        "message": "Chronic conditions retrieved successfully",
        "count": len(conditions),
        "conditions": [ChronicConditionResponse.model_validate(c) for c in conditions],
    }


@router.post("/chronic-conditions", status_code=status.HTTP_201_CREATED)
def add_chronic_condition(
    data: ChronicConditionCreate,
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    fields = data.model_dump()
    if fields.get("treating_doctor_id") is not None:
        if not db.query(Doctor.id).filter(Doctor.id == fields["treating_doctor_id"]).first():
            raise NotFound("Doctor not found")
    condition = ChronicCondition(user_id=claims.id, **fields)
    db.add(condition)
    db.commit()
    db.refresh(condition)
    return {
        "message": "Chronic condition added successfully",
        "condition": ChronicConditionResponse.model_validate(condition),
    }


@router.get("/vital-signs")
def list_vital_signs(
    record_type: Optional[VitalType] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(patient),
):
    query = db.query(VitalSign).filter(VitalSign.user_id == claims.id)
    if record_type:
        query = query.filter(VitalSign.record_type == record_type)
    signs = query.order_by(VitalSign.recorded_date.desc()).limit(limit).all()
    return {
        "message": "Vital signs retrieved successfully",
        "count": len(signs),
        "vital_signs": [VitalSignResponse.model_validate(v) for v in signs],
    }


@router.post("/vital-signs", status_code=status.HTTP_201_CREATED)
def record_vital_sign(data: VitalSignCreate, db: Session = Depends(get_db), claims: TokenClaims = Depends(patient)):
    fields = data.model_dump()
    if fields.get("appointment_id") is not None:
        owned = (
            db.query(Appointment.id)
            .filter(Appointment.id == fields["appointment_id"], Appointment.user_id == claims.id)
            .first()
        )
        if not owned:
            raise NotFound("Appointment not found")
    sign = VitalSign(user_id=claims.id, recorded_by=claims.id, **fields)
    db.add(sign)
    db.commit()
    db.refresh(sign)
    return {"message": "Vital sign recorded successfully", "vital_sign": VitalSignResponse.model_validate(sign)}
