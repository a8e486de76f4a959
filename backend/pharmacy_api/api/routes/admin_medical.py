"""Admin side of medical records: doctors, reports across all patients, issuing prescriptions."""
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from pharmacy_api.api.deps import get_current_admin, get_db
from pharmacy_api.core.audit import AuditLog
from pharmacy_api.core.exceptions import Conflict, NotFound, ValidationFailed
from pharmacy_api.core.security import TokenClaims
from pharmacy_api.models.appointment import Appointment
from pharmacy_api.models.doctor import Doctor
from pharmacy_api.models.medical_prescription import MedicalPrescription
from pharmacy_api.models.medical_report import MedicalReport
from pharmacy_api.schemas.medical import (
    AdminReportCreate,
    DoctorCreate,
    DoctorResponse,
    DoctorUpdate,
    MedicalPrescriptionCreate,
    ReportUpdate,
)
from pharmacy_api.services import medical_service

router = APIRouter()

REPORT_REQUIRED = ("doctor_id", "report_type", "title", "report_date")


# ==============================================================================
# DOCTORS
# ==============================================================================

@router.get("/doctors")
def list_doctors(db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    """All doctors, active or not, with how many appointments each has."""
    appointment_count = func.count(Appointment.id).label("appointment_count")
    rows = (
        db.query(Doctor, appointment_count)
        .outerjoin(Appointment, Appointment.doctor_id == Doctor.id)
        .group_by(Doctor.id)
        .order_by(Doctor.name)
        .all()
    )
    doctors = [
        {**DoctorResponse.model_validate(doctor).model_dump(), "appointment_count": count}
        for doctor, count in rows
    ]
    return {"message": "Doctors retrieved successfully", "count": len(doctors), "doctors": doctors}


@router.post("/doctors", status_code=status.HTTP_201_CREATED)
def create_doctor(data: DoctorCreate, db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    fields = data.model_dump()
    fields["email"] = fields["email"].lower()
    doctor = medical_service.create_doctor(db, fields)
    AuditLog.log_action("create", "doctor", doctor.id, admin, changes={"name": doctor.name})
    return {"message": "Doctor added successfully", "doctor": DoctorResponse.model_validate(doctor)}


@router.put("/doctors/{doctor_id}")
def update_doctor(
    data: DoctorUpdate,
    doctor_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    changes = data.model_dump(exclude_unset=True)
    for required in ("name", "email", "specialization", "license_number", "hospital_clinic"):
        if required in changes and changes[required] is None:
            raise ValidationFailed(f"{required} cannot be null")
    if changes.get("email"):
        changes["email"] = changes["email"].lower()
    doctor = medical_service.update_doctor(db, doctor_id, changes)
    AuditLog.log_action("update", "doctor", doctor.id, admin, changes=changes)
    return {"message": "Doctor updated successfully", "doctor": DoctorResponse.model_validate(doctor)}


@router.delete("/doctors/{doctor_id}")
def delete_doctor(
    doctor_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    """Doctors referenced by patient records are deactivated through PUT instead of deleted."""
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFound("Doctor not found")
    referenced = (
        db.query(MedicalReport.id).filter(MedicalReport.doctor_id == doctor_id).first()
        or db.query(MedicalPrescription.id).filter(MedicalPrescription.doctor_id == doctor_id).first()
        or db.query(Appointment.id).filter(Appointment.doctor_id == doctor_id).first()
    )
    if referenced:
        raise Conflict("Doctor has patient records; set is_active to false instead")
    db.delete(doctor)
    db.commit()
    AuditLog.log_action("delete", "doctor", doctor_id, admin)
    return {"message": "Doctor deleted successfully"}


# ==============================================================================
# REPORTS
# ==============================================================================

@router.get("/reports")
def list_reports(db: Session = Depends(get_db), admin: TokenClaims = Depends(get_current_admin)):
    reports = (
        db.query(MedicalReport)
        .options(joinedload(MedicalReport.user), joinedload(MedicalReport.doctor))
        .order_by(MedicalReport.report_date.desc(), MedicalReport.id.desc())
        .all()
    )
    return {
        "message": "Medical reports retrieved successfully",
        "count": len(reports),
        "reports": [medical_service.report_to_dict(r) for r in reports],
    }


@router.post("/reports", status_code=status.HTTP_201_CREATED)
def create_report(
    data: AdminReportCreate,
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    fields = data.model_dump()
    user_id = fields.pop("user_id")
    report = medical_service.create_report(db, user_id, fields)
    AuditLog.log_action("create", "medical_report", report.id, admin, changes={"user_id": user_id})
    return {"message": "Medical report added successfully", "report": medical_service.report_to_dict(report)}


@router.put("/reports/{report_id}")
def update_report(
    data: ReportUpdate,
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No fields to update")
    for required in REPORT_REQUIRED:
        if required in changes and changes[required] is None:
            raise ValidationFailed(f"{required} cannot be null")

    report = db.query(MedicalReport).filter(MedicalReport.id == report_id).first()
    if not report:
        raise NotFound("Medical report not found")
    if "doctor_id" in changes and not db.query(Doctor.id).filter(Doctor.id == changes["doctor_id"]).first():
        raise NotFound("Doctor not found")

    for field, value in changes.items():
        setattr(report, field, value)
    db.commit()
    db.refresh(report)
    AuditLog.log_action("update", "medical_report", report.id, admin, changes=changes)
    return {"message": "Medical report updated successfully", "report": medical_service.report_to_dict(report)}


@router.delete("/reports/{report_id}")
def delete_report(
    report_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    report = db.query(MedicalReport).filter(MedicalReport.id == report_id).first()
    if not report:
        raise NotFound("Medical report not found")
    db.delete(report)
    db.commit()
    AuditLog.log_action("delete", "medical_report", report_id, admin)
    return {"message": "Medical report deleted successfully"}


# ==============================================================================
# PRESCRIPTIONS
# ==============================================================================

@router.post("/prescriptions", status_code=status.HTTP_201_CREATED)
def create_prescription(
    data: MedicalPrescriptionCreate,
    db: Session = Depends(get_db),
    admin: TokenClaims = Depends(get_current_admin),
):
    fields = data.model_dump()
    drugs = fields.pop("drugs")
    prescription = medical_service.create_prescription(db, fields, drugs)
    AuditLog.log_action("create", "prescription", prescription.id, admin,
                        changes={"prescription_number": prescription.prescription_number})
    return {
        "message": "Prescription created successfully",
        "prescription": medical_service.prescription_to_dict(prescription),
        "drugs": medical_service.prescription_drugs(prescription),
    }
