"""Seed the drug catalog and a few doctors for local development.

Existing rows (matched by drug name / doctor email) are left alone, so the
script is safe to re-run against a database that already has orders.
"""
from decimal import Decimal

from pharmacy_api.db.init_db import init_db
from pharmacy_api.db.session import SessionLocal
from pharmacy_api.models.doctor import Doctor
from pharmacy_api.models.drug import Drug


def _placeholder(label: str, color: str = "4CAF50") -> str:
    return f"https://via.placeholder.com/200x200/{color}/FFFFFF?text={label}"


DRUGS = [
    ("Paracetamol 500mg", "Pain reliever and fever reducer", "15.99", 100, False, "Paracetamol"),
    ("Amoxicillin 500mg", "Antibiotic for bacterial infections", "45.50", 50, True, "Amoxicillin"),
    ("Ibuprofen 400mg", "Anti-inflammatory pain medication", "18.75", 75, False, "Ibuprofen"),
    ("Cetirizine 10mg", "Antihistamine for allergies", "22.30", 60, False, "Cetirizine"),
    ("Metformin 500mg", "Diabetes medication", "35.20", 40, True, "Metformin"),
    ("Lisinopril 10mg", "Blood pressure medication", "28.90", 55, True, "Lisinopril"),
    ("Omeprazole 20mg", "Acid reflux medication", "32.45", 45, False, "Omeprazole"),
    ("Simvastatin 20mg", "Cholesterol medication", "41.80", 35, True, "Simvastatin"),
    ("Aspirin 75mg", "Blood thinner and pain reliever", "12.99", 120, False, "Aspirin"),
    ("Azithromycin 250mg", "Antibiotic for infections", "52.30", 30, True, "Azithromycin"),
    ("Vitamin D3 1000IU", "Vitamin D supplement", "16.50", 200, False, "Vitamin+D3"),
    ("Prednisone 5mg", "Steroid medication", "38.75", 25, True, "Prednisone"),
    ("Gabapentin 300mg", "Nerve pain medication", "44.20", 40, True, "Gabapentin"),
    ("Hydrochlorothiazide 25mg", "Diuretic for blood pressure", "19.99", 65, True, "HCTZ"),
    ("Vitamin C 500mg", "Vitamin C supplement", "14.25", 150, False, "Vitamin+C"),
    ("Albuterol Inhaler", "Asthma inhaler", "28.50", 20, True, "Albuterol"),
    ("Warfarin 5mg", "Blood thinner", "36.80", 30, True, "Warfarin"),
    ("Calcium Carbonate 500mg", "Calcium supplement", "13.45", 180, False, "Calcium"),
    ("Levothyroxine 50mcg", "Thyroid medication", "42.60", 35, True, "Levothyroxine"),
    ("Multivitamin", "Daily multivitamin supplement", "24.99", 90, False, "MultiVitamin"),
]

DOCTORS = [
    {
        "name": "Dr. Sarah Johnson",
        "email": "sarah.johnson@hospital.com",
        "phone": "+12345678901",
        "specialization": "General Practitioner",
        "license_number": "MD123456",
        "hospital_clinic": "City General Hospital",
        "years_experience": 12,
        "consultation_fee": Decimal("150.00"),
        "available_days": "Mon,Tue,Wed,Thu,Fri",
        "available_time_start": "09:00",
        "available_time_end": "17:00",
        "bio": "General practitioner focused on family medicine and chronic disease management.",
    },
    {
        "name": "Dr. Michael Chen",
        "email": "michael.chen@hospital.com",
        "phone": "+12345678902",
        "specialization": "Cardiologist",
        "license_number": "MD789012",
        "hospital_clinic": "Heart Care Center",
        "years_experience": 15,
        "consultation_fee": Decimal("250.00"),
        "available_days": "Mon,Wed,Fri",
        "available_time_start": "10:00",
        "available_time_end": "16:00",
        "bio": "Cardiologist specialising in hypertension and arrhythmia.",
    },
    {
        "name": "Dr. Emily Rodriguez",
        "email": "emily.rodriguez@hospital.com",
        "phone": "+12345678903",
        "specialization": "Pediatrician",
        "license_number": "MD345678",
        "hospital_clinic": "Children's Medical Center",
        "years_experience": 8,
        "consultation_fee": Decimal("120.00"),
        "available_days": "Tue,Thu,Sat",
        "available_time_start": "08:00",
        "available_time_end": "14:00",
        "bio": "Pediatrician caring for newborns through adolescents.",
    },
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        known_drugs = {name for (name,) in db.query(Drug.name).all()}
        added_drugs = 0
        for name, description, price, stock, rx, label in DRUGS:
            if name in known_drugs:
                continue
            db.add(Drug(
                name=name,
                description=description,
                price=Decimal(price),
                stock_quantity=stock,
                requires_prescription=rx,
                image_url=_placeholder(label),
            ))
            added_drugs += 1

        known_doctors = {email for (email,) in db.query(Doctor.email).all()}
        added_doctors = 0
        for doctor in DOCTORS:
            if doctor["email"] in known_doctors:
                continue
            db.add(Doctor(is_active=True, **doctor))
            added_doctors += 1

        db.commit()
        print(f"\n[OK] Added {added_drugs} drugs ({len(DRUGS) - added_drugs} already present)")
        print(f"[OK] Added {added_doctors} doctors ({len(DOCTORS) - added_doctors} already present)\n")

        print("=" * 70)
        for name, _, price, stock, rx, _ in DRUGS:
            flag = " [Rx]" if rx else ""
            print(f"  {name:<28} ${price:>7} | stock {stock:>4}{flag}")
        print("=" * 70)
    finally:
        db.close()


if __name__ == "__main__":
    seed()
