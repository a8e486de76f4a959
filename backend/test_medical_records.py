"""Patient medical records and the admin medical console."""
from datetime import datetime, timedelta

ONE_PAGE_PDF = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF"


def report_body(doctor_id, **overrides):
    body = {
        "doctor_id": doctor_id,
        "report_type": "lab_result",
        "title": "Complete blood count",
        "diagnosis": "Mild anaemia",
        "symptoms": ["fatigue", "dizziness"],
        "report_date": "2026-03-14",
        "severity_level": "mild",
        "status": "active",
    }
    body.update(overrides)
    return body


def appointment_body(doctor_id, when, **overrides):
    body = {
        "doctor_id": doctor_id,
        "appointment_type": "consultation",
        "purpose": "Recurring headaches",
        "appointment_date": when.isoformat(),
    }
    body.update(overrides)
    return body


def next_week():
    return (datetime.utcnow() + timedelta(days=7)).replace(hour=10, minute=30, second=0, microsecond=0)


# --- doctors -----------------------------------------------------------------

def test_only_active_doctors_are_listed(client, user_headers, make_doctor):
    active = make_doctor("Dr. Sarah Johnson")
    retired = make_doctor("Dr. Michael Chen", is_active=False)

    body = client.get("/api/medical/doctors", headers=user_headers).json()

    assert [d["id"] for d in body["doctors"]] == [active.id]
    assert client.get(f"/api/medical/doctors/{retired.id}", headers=user_headers).status_code == 404


def test_admin_token_is_refused_on_patient_records(client, admin_headers):
    response = client.get("/api/medical/reports", headers=admin_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Use the admin medical endpoints"


# --- reports -----------------------------------------------------------------

def test_create_and_list_reports(client, user_headers, other_headers, make_doctor):
    doctor = make_doctor()

    response = client.post("/api/medical/reports", json=report_body(doctor.id), headers=user_headers)

    assert response.status_code == 201
    report = response.json()["report"]
    assert report["doctor_name"] == "Dr. Sarah Johnson"
    assert report["symptoms"] == ["fatigue", "dizziness"]
    assert report["attachments"] == []

    mine = client.get("/api/medical/reports", headers=user_headers).json()
    theirs = client.get("/api/medical/reports", headers=other_headers).json()
    assert mine["count"] == 1
    assert theirs["count"] == 0


def test_report_with_unknown_doctor(client, user_headers):
    response = client.post("/api/medical/reports", json=report_body(99), headers=user_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Doctor not found"


def test_report_rejects_unknown_type(client, user_headers, make_doctor):
    doctor = make_doctor()
    response = client.post("/api/medical/reports", json=report_body(doctor.id, report_type="x-ray"),
                           headers=user_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "report_type"


def test_report_attachments(client, user_headers, other_headers, make_doctor):
    doctor = make_doctor()
    report_id = client.post("/api/medical/reports", json=report_body(doctor.id),
                            headers=user_headers).json()["report"]["id"]
    url = f"/api/medical/reports/{report_id}/attachments"

    response = client.post(url, files=[
        ("attachments", ("cbc.pdf", ONE_PAGE_PDF, "application/pdf")),
        ("attachments", ("scan.png", b"\x89PNG\r\n\x1a\n", "image/png")),
    ], headers=user_headers)

    assert response.status_code == 200
    attachments = response.json()["report"]["attachments"]
    assert len(attachments) == 2
    assert all(a.startswith("/uploads/medical/medical-") for a in attachments)

    too_many = client.post(url, files=[
        ("attachments", (f"page{i}.pdf", ONE_PAGE_PDF, "application/pdf")) for i in range(4)
    ], headers=user_headers)
    assert too_many.status_code == 400
    assert too_many.json()["error"] == "A report can have at most 5 attachments"

    someone_else = client.post(url, files=[("attachments", ("x.pdf", ONE_PAGE_PDF, "application/pdf"))],
                               headers=other_headers)
    assert someone_else.status_code == 404


def test_attachment_type_is_checked(client, user_headers, make_doctor):
    doctor = make_doctor()
    report_id = client.post("/api/medical/reports", json=report_body(doctor.id),
                            headers=user_headers).json()["report"]["id"]

    response = client.post(
        f"/api/medical/reports/{report_id}/attachments",
        files=[("attachments", ("run.sh", b"#!/bin/sh", "application/x-sh"))],
        headers=user_headers,
    )

    assert response.status_code == 400
    report = client.get("/api/medical/reports", headers=user_headers).json()["reports"][0]
    assert report["attachments"] == []


# --- appointments ------------------------------------------------------------

def test_book_appointment_copies_fee(client, user_headers, make_doctor):
    doctor = make_doctor(fee="150.00")

    response = client.post("/api/medical/appointments", json=appointment_body(doctor.id, next_week()),
                           headers=user_headers)

    assert response.status_code == 201
    appointment = response.json()["appointment"]
    assert appointment["status"] == "scheduled"
    assert appointment["consultation_fee"] == 150.0
    assert appointment["duration_minutes"] == 30


def test_double_booking_conflicts_until_cancelled(client, user_headers, other_headers, make_doctor):
    doctor = make_doctor()
    when = next_week()
    first = client.post("/api/medical/appointments", json=appointment_body(doctor.id, when), headers=user_headers)

    clash = client.post("/api/medical/appointments", json=appointment_body(doctor.id, when), headers=other_headers)
    assert clash.status_code == 409
    assert clash.json()["error"] == "Doctor not available at this time"

    appointment_id = first.json()["appointment"]["id"]
    cancelled = client.put(f"/api/medical/appointments/{appointment_id}", json={"status": "cancelled"},
                           headers=user_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["appointment"]["status"] == "cancelled"

    retry = client.post("/api/medical/appointments", json=appointment_body(doctor.id, when), headers=other_headers)
    assert retry.status_code == 201


def test_booking_inactive_doctor(client, user_headers, make_doctor):
    doctor = make_doctor(is_active=False)
    response = client.post("/api/medical/appointments", json=appointment_body(doctor.id, next_week()),
                           headers=user_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Doctor not found or inactive"


def test_patient_cannot_confirm_own_appointment(client, user_headers, make_doctor):
    doctor = make_doctor()
    appointment_id = client.post("/api/medical/appointments", json=appointment_body(doctor.id, next_week()),
                                 headers=user_headers).json()["appointment"]["id"]

    response = client.put(f"/api/medical/appointments/{appointment_id}", json={"status": "confirmed"},
                          headers=user_headers)

    assert response.status_code == 400


# --- summary, allergies, conditions, vitals ---------------------------------

def test_summary_is_created_on_first_read(client, user_headers, make_doctor):
    doctor = make_doctor()
    client.post("/api/medical/appointments", json=appointment_body(doctor.id, next_week()), headers=user_headers)

    summary = client.get("/api/medical/summary", headers=user_headers).json()["summary"]

    assert summary["blood_type"] is None
    assert summary["statistics"] == {
        "total_reports": 0,
        "active_prescriptions": 0,
        "upcoming_appointments": 1,
        "active_allergies": 0,
    }


def test_update_summary(client, user_headers):
    response = client.put(
        "/api/medical/summary",
        json={"blood_type": "O+", "emergency_contact_name": "Jane Doe", "emergency_contact_phone": "+15550100999"},
        headers=user_headers,
    )
    assert response.status_code == 200

    summary = client.get("/api/medical/summary", headers=user_headers).json()["summary"]
    assert summary["blood_type"] == "O+"
    assert summary["emergency_contact_name"] == "Jane Doe"


def test_update_summary_rejects_bad_values(client, user_headers):
    assert client.put("/api/medical/summary", json={"blood_type": "Z"}, headers=user_headers).status_code == 400
    empty = client.put("/api/medical/summary", json={}, headers=user_headers)
    assert empty.status_code == 400
    assert empty.json()["error"] == "No valid fields to update"


def test_allergies(client, user_headers):
    body = {"allergen": "Penicillin", "allergy_type": "drug", "severity": "severe", "reaction": "Hives"}

    created = client.post("/api/medical/allergies", json=body, headers=user_headers)
    assert created.status_code == 201

    duplicate = client.post("/api/medical/allergies", json={**body, "allergen": "penicillin"}, headers=user_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Allergy already recorded"

    allergy_id = created.json()["allergy"]["id"]
    assert client.delete(f"/api/medical/allergies/{allergy_id}", headers=user_headers).status_code == 200
    assert client.get("/api/medical/allergies", headers=user_headers).json()["count"] == 0
    assert client.delete(f"/api/medical/allergies/{allergy_id}", headers=user_headers).status_code == 404

    # can be recorded again once removed
    assert client.post("/api/medical/allergies", json=body, headers=user_headers).status_code == 201


def test_chronic_conditions(client, user_headers, make_doctor):
    doctor = make_doctor()

    response = client.post(
        "/api/medical/chronic-conditions",
        json={"condition_name": "Type 2 diabetes", "icd10_code": "E11", "diagnosed_date": "2021-06-01",
              "treating_doctor_id": doctor.id, "medications": ["Metformin 500mg"]},
        headers=user_headers,
    )

    assert response.status_code == 201
    conditions = client.get("/api/medical/chronic-conditions", headers=user_headers).json()
    assert conditions["count"] == 1
    assert conditions["conditions"][0]["medications"] == ["Metformin 500mg"]


def test_vital_signs(client, user_headers):
    response = client.post(
        "/api/medical/vital-signs",
        json={"record_type": "blood_pressure", "value": {"systolic": 120, "diastolic": 80}, "unit": "mmHg",
              "recorded_date": "2026-03-14T08:00:00"},
        headers=user_headers,
    )
    assert response.status_code == 201

    client.post(
        "/api/medical/vital-signs",
        json={"record_type": "weight", "value": {"kg": 72.5}, "unit": "kg", "recorded_date": "2026-03-15T08:00:00"},
        headers=user_headers,
    )
    pressure = client.get("/api/medical/vital-signs", params={"record_type": "blood_pressure"},
                          headers=user_headers).json()
    assert pressure["count"] == 1
    assert pressure["vital_signs"][0]["value"] == {"systolic": 120.0, "diastolic": 80.0}


# --- admin console -----------------------------------------------------------

def doctor_body(**overrides):
    body = {
        "name": "Dr. Emily Rodriguez",
        "email": "emily.rodriguez@hospital.com",
        "specialization": "Pediatrics",
        "license_number": "MD345678",
        "hospital_clinic": "Children's Medical Center",
        "consultation_fee": 120.0,
    }
    body.update(overrides)
    return body


def test_admin_creates_doctor(client, admin_headers, user_headers):
    response = client.post("/api/admin/medical/doctors", json=doctor_body(), headers=admin_headers)

    assert response.status_code == 201
    assert client.get("/api/medical/doctors", headers=user_headers).json()["count"] == 1

    duplicate = client.post("/api/admin/medical/doctors", json=doctor_body(email="other@hospital.com"),
                            headers=admin_headers)
    assert duplicate.status_code == 409


def test_admin_doctor_routes_require_admin(client, user_headers):
    assert client.post("/api/admin/medical/doctors", json=doctor_body(), headers=user_headers).status_code == 403


def test_deactivated_doctor_disappears_for_patients(client, admin_headers, user_headers, make_doctor):
    doctor = make_doctor()

    response = client.put(f"/api/admin/medical/doctors/{doctor.id}", json={"is_active": False},
                          headers=admin_headers)

    assert response.status_code == 200
    assert client.get("/api/medical/doctors", headers=user_headers).json()["count"] == 0
    assert client.get("/api/admin/medical/doctors", headers=admin_headers).json()["count"] == 1


def test_doctor_with_records_cannot_be_deleted(client, admin_headers, user_headers, make_doctor):
    busy = make_doctor("Dr. Sarah Johnson")
    idle = make_doctor("Dr. Michael Chen")
    client.post("/api/medical/appointments", json=appointment_body(busy.id, next_week()), headers=user_headers)

    blocked = client.delete(f"/api/admin/medical/doctors/{busy.id}", headers=admin_headers)
    assert blocked.status_code == 409

    assert client.delete(f"/api/admin/medical/doctors/{idle.id}", headers=admin_headers).status_code == 200

    doctors = client.get("/api/admin/medical/doctors", headers=admin_headers).json()["doctors"]
    assert [(d["name"], d["appointment_count"]) for d in doctors] == [("Dr. Sarah Johnson", 1)]


def test_admin_manages_reports(client, admin_headers, user, user_headers, make_doctor):
    doctor = make_doctor()

    created = client.post("/api/admin/medical/reports", json={**report_body(doctor.id), "user_id": user.id},
                          headers=admin_headers)
    assert created.status_code == 201
    report_id = created.json()["report"]["id"]

    listed = client.get("/api/admin/medical/reports", headers=admin_headers).json()
    assert listed["reports"][0]["user_email"] == "alice@example.com"

    updated = client.put(f"/api/admin/medical/reports/{report_id}", json={"status": "resolved"},
                         headers=admin_headers)
    assert updated.json()["report"]["status"] == "resolved"
    assert client.get("/api/medical/reports", headers=user_headers).json()["reports"][0]["status"] == "resolved"

    assert client.delete(f"/api/admin/medical/reports/{report_id}", headers=admin_headers).status_code == 200
    assert client.get("/api/medical/reports", headers=user_headers).json()["count"] == 0


def test_issued_prescription_is_visible_to_patient(client, admin_headers, user, user_headers, other_headers,
                                                   make_doctor, make_drug):
    doctor = make_doctor()
    drug = make_drug("Amoxicillin 500mg")

    response = client.post(
        "/api/admin/medical/prescriptions",
        json={
            "user_id": user.id,
            "doctor_id": doctor.id,
            "diagnosis": "Strep throat",
            "prescribed_date": "2026-03-14",
            "drugs": [{"drug_id": drug.id, "dosage": "500mg", "frequency": "3 times daily",
                       "duration": "10 days", "quantity": 30}],
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    prescription = response.json()["prescription"]
    assert prescription["prescription_number"].startswith("RX-")
    assert len(prescription["prescription_number"]) == len("RX-20260314-ABCDEF")

    listed = client.get("/api/medical/prescriptions", headers=user_headers).json()
    assert listed["count"] == 1
    assert listed["prescriptions"][0]["drug_count"] == 1

    detail = client.get(f"/api/medical/prescriptions/{prescription['id']}", headers=user_headers).json()
    assert detail["drugs"][0]["drug_name"] == "Amoxicillin 500mg"

    assert client.get(f"/api/medical/prescriptions/{prescription['id']}", headers=other_headers).status_code == 404


def test_prescription_with_unknown_drug(client, admin_headers, user, make_doctor):
    doctor = make_doctor()
    response = client.post(
        "/api/admin/medical/prescriptions",
        json={"user_id": user.id, "doctor_id": doctor.id, "prescribed_date": "2026-03-14",
              "drugs": [{"drug_id": 404, "dosage": "1 tab", "frequency": "daily", "duration": "5 days",
                         "quantity": 5}]},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Drug with ID 404 not found"
