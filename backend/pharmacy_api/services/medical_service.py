"""Medical records shared by the patient surface and the admin console.

Everything here is scoped by user_id by the caller; this module does no
authorization of its own.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_api.core.exceptions import Conflict, NotFound, ValidationFailed
from pharmacy_api.db.base import utcnow
from pharmacy_api.models.allergy import Allergy
from pharmacy_api.models.appointment import Appointment, RELEASED_STATUSES
from pharmacy_api.models.doctor import Doctor
from pharmacy_api.models.drug import Drug
from pharmacy_api.models.medical_history import MedicalHistorySummary
from pharmacy_api.models.medical_prescription import MedicalPrescription, PrescriptionDrug
from pharmacy_api.models.medical_report import MedicalReport
from pharmacy_api.models.user import User
from pharmacy_api.services import storage_service

logger = logging.getLogger(__name__)

MAX_ATTACHMENTS = 5


def _money(value) -> float:
    return float(value) if value is not None else 0.0


# --- doctors -----------------------------------------------------------------

def get_active_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id, Doctor.is_active.is_(True)).first()
    if not doctor:
        raise NotFound("Doctor not found")
    return doctor


def create_doctor(db: Session, fields: Dict) -> Doctor:
    taken = (
        db.query(Doctor.id)
        .filter((Doctor.email == fields["email"]) | (Doctor.license_number == fields["license_number"]))
        .first()
    )
    if taken:
        raise Conflict("Doctor with this email or license number already exists")
    doctor = Doctor(**fields)
    db.add(doctor)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Doctor with this email or license number already exists")
    db.refresh(doctor)
    return doctor


def update_doctor(db: Session, doctor_id: int, changes: Dict) -> Doctor:
    if not changes:
        raise ValidationFailed("No fields to update")
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFound("Doctor not found")
    for field, value in changes.items():
        setattr(doctor, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Doctor with this email or license number already exists")
    db.refresh(doctor)
    return doctor


# --- reports -----------------------------------------------------------------

def report_to_dict(report: MedicalReport) -> Dict:
    return {
        "id": report.id,
        "user_id": report.user_id,
        "doctor_id": report.doctor_id,
        "doctor_name": report.doctor.name if report.doctor else None,
        "specialization": report.doctor.specialization if report.doctor else None,
        "user_name": report.user.name if report.user else None,
        "user_email": report.user.email if report.user else None,
        "report_type": report.report_type,
        "title": report.title,
        "description": report.description,
        "diagnosis": report.diagnosis,
        "symptoms": report.symptoms or [],
        "treatment_plan": report.treatment_plan,
        "notes": report.notes,
        "report_date": report.report_date,
        "follow_up_date": report.follow_up_date,
        "severity_level": report.severity_level,
        "status": report.status,
        "attachments": report.attachments or [],
        "created_at": report.created_at,
    }


def create_report(db: Session, user_id: int, fields: Dict) -> MedicalReport:
    if not db.query(User.id).filter(User.id == user_id).first():
        raise NotFound("User not found")
    if not db.query(Doctor.id).filter(Doctor.id == fields["doctor_id"]).first():
        raise NotFound("Doctor not found")
    report = MedicalReport(user_id=user_id, attachments=[], **fields)
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def add_report_attachments(db: Session, report: MedicalReport, files: List[UploadFile]) -> MedicalReport:
    """Store up to MAX_ATTACHMENTS documents in total on a report."""
    files = [f for f in files if f is not None and f.filename]
    if not files:
        raise ValidationFailed("No file uploaded")
    existing = list(report.attachments or [])
    if len(existing) + len(files) > MAX_ATTACHMENTS:
        raise ValidationFailed(f"A report can have at most {MAX_ATTACHMENTS} attachments")

    stored = []
    try:
        for upload in files:
            stored.append(storage_service.save_upload(
                upload, "medical", prefix="medical", allowed=storage_service.DOCUMENT_TYPES,
            ))
        # JSON column: assign a new list so the change is detected
        report.attachments = existing + [url for _, url in stored]
        db.commit()
    except Exception:
        db.rollback()
        for path, _ in stored:
            storage_service.discard(path)
        raise
    db.refresh(report)
    return report


# --- prescriptions -----------------------------------------------------------

def generate_prescription_number(db: Session) -> str:
    """RX-YYYYMMDD-XXXXXX, unique across all prescriptions."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    while True:
        number = f"RX-{stamp}-{secrets.token_hex(3).upper()}"
        if not db.query(MedicalPrescription.id).filter(MedicalPrescription.prescription_number == number).first():
            return number


def create_prescription(db: Session, fields: Dict, drugs: List[Dict]) -> MedicalPrescription:
    if not db.query(User.id).filter(User.id == fields["user_id"]).first():
        raise NotFound("User not found")
    if not db.query(Doctor.id).filter(Doctor.id == fields["doctor_id"]).first():
        raise NotFound("Doctor not found")
    report_id = fields.get("medical_report_id")
    if report_id is not None:
        report = db.query(MedicalReport).filter(MedicalReport.id == report_id).first()
        if not report or report.user_id != fields["user_id"]:
            raise NotFound("Medical report not found")

    drug_ids = {line["drug_id"] for line in drugs}
    known = {row[0] for row in db.query(Drug.id).filter(Drug.id.in_(drug_ids)).all()}
    missing = sorted(drug_ids - known)
    if missing:
        raise NotFound(f"Drug with ID {missing[0]} not found")

    prescription = MedicalPrescription(
        prescription_number=generate_prescription_number(db),
        status="active",
        is_active=True,
        **fields,
    )
    prescription.drugs = [PrescriptionDrug(**line) for line in drugs]
    db.add(prescription)
    db.commit()
    db.refresh(prescription)
    logger.info(f"Medical prescription {prescription.prescription_number} issued for user {prescription.user_id}")
    return prescription


def prescription_to_dict(prescription: MedicalPrescription, drug_count: Optional[int] = None) -> Dict:
    doctor = prescription.doctor
    return {
        "id": prescription.id,
        "user_id": prescription.user_id,
        "doctor_id": prescription.doctor_id,
        "doctor_name": doctor.name if doctor else None,
        "specialization": doctor.specialization if doctor else None,
        "medical_report_id": prescription.medical_report_id,
        "prescription_number": prescription.prescription_number,
        "diagnosis": prescription.diagnosis,
        "instructions": prescription.instructions,
        "notes": prescription.notes,
        "prescribed_date": prescription.prescribed_date,
        "expiry_date": prescription.expiry_date,
        "status": prescription.status,
        "drug_count": drug_count if drug_count is not None else len(prescription.drugs),
    }


def prescription_drugs(prescription: MedicalPrescription) -> List[Dict]:
    return [
        {
            "id": line.id,
            "drug_id": line.drug_id,
            "drug_name": line.drug.name if line.drug else None,
            "drug_description": line.drug.description if line.drug else None,
            "dosage": line.dosage,
            "frequency": line.frequency,
            "duration": line.duration,
            "instructions": line.instructions,
            "quantity": line.quantity,
        }
        for line in prescription.drugs
    ]


# --- appointments ------------------------------------------------------------

def appointment_to_dict(appointment: Appointment) -> Dict:
    doctor = appointment.doctor
    return {
        "id": appointment.id,
        "user_id": appointment.user_id,
        "doctor_id": appointment.doctor_id,
        "doctor_name": doctor.name if doctor else None,
        "specialization": doctor.specialization if doctor else None,
        "appointment_type": appointment.appointment_type,
        "purpose": appointment.purpose,
        "appointment_date": appointment.appointment_date,
        "duration_minutes": appointment.duration_minutes,
        "status": appointment.status,
        "consultation_fee": _money(appointment.consultation_fee),
        "payment_status": appointment.payment_status,
        "notes": appointment.notes,
        "symptoms": appointment.symptoms or [],
    }


def book_appointment(db: Session, user_id: int, fields: Dict) -> Appointment:
    """
    Raises:
        NotFound: doctor missing or inactive
        Conflict: the doctor already has a live appointment at exactly this time
    """
    doctor = db.query(Doctor).filter(Doctor.id == fields["doctor_id"], Doctor.is_active.is_(True)).first()
    if not doctor:
        raise NotFound("Doctor not found or inactive")

    clash = (
        db.query(Appointment.id)
        .filter(
            Appointment.doctor_id == doctor.id,
            Appointment.appointment_date == fields["appointment_date"],
            Appointment.status.notin_(RELEASED_STATUSES),
        )
        .first()
    )
    if clash:
        raise Conflict("Doctor not available at this time")

    appointment = Appointment(
        user_id=user_id,
        consultation_fee=doctor.consultation_fee,
        status="scheduled",
        payment_status="pending",
        **fields,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


# --- summary -----------------------------------------------------------------

def get_or_create_summary(db: Session, user_id: int) -> MedicalHistorySummary:
    summary = db.query(MedicalHistorySummary).filter(MedicalHistorySummary.user_id == user_id).first()
    if summary:
        return summary
    summary = MedicalHistorySummary(user_id=user_id, known_allergies=[], chronic_medications=[])
    db.add(summary)
    try:
        db.commit()
    except IntegrityError:
        # Created by a concurrent first read
        db.rollback()
        return db.query(MedicalHistorySummary).filter(MedicalHistorySummary.user_id == user_id).one()
    db.refresh(summary)
    return summary


def summary_statistics(db: Session, user_id: int) -> Dict[str, int]:
    now = utcnow().replace(tzinfo=None)
    return {
        "total_reports": db.query(func.count(MedicalReport.id))
        .filter(MedicalReport.user_id == user_id).scalar(),
        "active_prescriptions": db.query(func.count(MedicalPrescription.id))
        .filter(MedicalPrescription.user_id == user_id, MedicalPrescription.status == "active").scalar(),
        "upcoming_appointments": db.query(func.count(Appointment.id))
        .filter(
            Appointment.user_id == user_id,
            Appointment.appointment_date > now,
            Appointment.status.in_(("scheduled", "confirmed")),
        ).scalar(),
        "active_allergies": db.query(func.count(Allergy.id))
        .filter(Allergy.user_id == user_id, Allergy.is_active.is_(True)).scalar(),
    }


def update_summary(db: Session, user_id: int, changes: Dict) -> MedicalHistorySummary:
    if not changes:
        raise ValidationFailed("No valid fields to update")
    if changes.get("primary_doctor_id") is not None:
        if not db.query(Doctor.id).filter(Doctor.id == changes["primary_doctor_id"]).first():
            raise NotFound("Doctor not found")
    summary = get_or_create_summary(db, user_id)
    for field, value in changes.items():
        setattr(summary, field, value)
    summary.last_updated = utcnow()
    db.commit()
    db.refresh(summary)
    return summary


# --- allergies ---------------------------------------------------------------

def add_allergy(db: Session, user_id: int, fields: Dict) -> Allergy:
    duplicate = (
        db.query(Allergy.id)
        .filter(
            Allergy.user_id == user_id,
            func.lower(Allergy.allergen) == fields["allergen"].lower(),
            Allergy.is_active.is_(True),
        )
        .first()
    )
    if duplicate:
        raise Conflict("Allergy already recorded")
    allergy = Allergy(user_id=user_id, is_active=True, **fields)
    db.add(allergy)
    db.commit()
    db.refresh(allergy)
    return allergy


def deactivate_allergy(db: Session, user_id: int, allergy_id: int) -> Allergy:
    allergy = db.query(Allergy).filter(Allergy.id == allergy_id, Allergy.user_id == user_id).first()
    if not allergy or not allergy.is_active:
        raise NotFound("Allergy not found")
    allergy.is_active = False
    db.commit()
    db.refresh(allergy)
    return allergy
