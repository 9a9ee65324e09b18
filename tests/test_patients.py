"""Patients: ownership, scoped listing, assignment, coordinator restrictions."""
from fastapi.testclient import TestClient
from sqlmodel import select

from medlens.models import Patient, PatientStatus, Role, TimelineEntry, TimelineType, User

PATIENT_BODY = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "date_of_birth": "1985-12-10",
    "gender": "female",
    "phone": "+15550100",
    "email": "Ada@Example.com",
    "symptoms": "headache",
}


def test_coordinator_creates_and_reads_patient(client: TestClient, make_user, headers, db):
    fd1 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)

    r = client.post("/api/patients", json=PATIENT_BODY, headers=headers(fd1))
    assert r.status_code == 201, r.text
    p1 = r.json()["data"]
    assert p1["created_by_id"] == fd1.id
    assert p1["patient_code"].startswith("PAT")
    assert p1["patient_code"] == p1["patient_code"].upper()
    assert p1["email"] == "ada@example.com"
    assert p1["full_name"] == "Ada Lovelace"

    r = client.get(f"/api/patients/{p1['id']}", headers=headers(fd1))
    assert r.status_code == 200

    r = client.get(f"/api/patients/{p1['id']}", headers=headers(c1))
    assert r.status_code == 403
    assert r.json()["success"] is False

    entries = db.exec(select(TimelineEntry).where(TimelineEntry.patient_id == p1["id"])).all()
    assert [e.entry_type for e in entries] == [TimelineType.registration]


def test_missing_patient_is_404_before_policy(client: TestClient, make_user, headers):
    c1 = make_user(Role.consulting_doctor)
    r = client.get("/api/patients/424242", headers=headers(c1))
    assert r.status_code == 404
    assert r.json()["message"] == "Patient not found"


def test_listing_is_scoped(client: TestClient, make_user, make_patient, headers):
    fd1 = make_user(Role.front_desk_coordinator)
    fd2 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)
    senior = make_user(Role.senior_doctor)
    mine = make_patient(created_by=fd1, first_name="Mine")
    assigned = make_patient(created_by=fd2, assigned_doctor=c1, first_name="Assigned")
    make_patient(created_by=fd2, first_name="Other")

    ids = lambda r: {p["id"] for p in r.json()["data"]}  # noqa: E731
    assert ids(client.get("/api/patients", headers=headers(fd1))) == {mine.id}
    assert ids(client.get("/api/patients", headers=headers(c1))) == {assigned.id}
    r = client.get("/api/patients", headers=headers(senior))
    assert r.json()["pagination"]["total_items"] == 3


def test_listing_search_and_pagination(client: TestClient, make_user, make_patient, headers):
    admin = make_user(Role.admin)
    for name in ("Alice", "Alina", "Bob"):
        make_patient(first_name=name)
    r = client.get("/api/patients", params={"search": "ali"}, headers=headers(admin))
    assert {p["first_name"] for p in r.json()["data"]} == {"Alice", "Alina"}
    r = client.get("/api/patients", params={"page": 2, "limit": 2}, headers=headers(admin))
    j = r.json()
    assert len(j["data"]) == 1
    assert j["pagination"] == {"current_page": 2, "total_pages": 2, "total_items": 3, "items_per_page": 2}


def test_coordinator_may_only_update_intake_fields(client: TestClient, make_user, make_patient, headers):
    fd1 = make_user(Role.front_desk_coordinator)
    patient = make_patient(created_by=fd1)
    r = client.put(f"/api/patients/{patient.id}", json={"phone": "+15550199"}, headers=headers(fd1))
    assert r.status_code == 200
    assert r.json()["data"]["phone"] == "+15550199"
    assert r.json()["data"]["updated_by_id"] == fd1.id
    r = client.put(f"/api/patients/{patient.id}", json={"symptoms": "dizzy"}, headers=headers(fd1))
    assert r.status_code == 200
    r = client.put(f"/api/patients/{patient.id}", json={"status": "discharged"}, headers=headers(fd1))
    assert r.status_code == 403


def test_assign_doctor_keeps_lists_consistent(client: TestClient, make_user, make_patient, headers, fresh):
    fd1 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)
    c2 = make_user(Role.consulting_doctor)
    patient = make_patient(created_by=fd1)

    r = client.put(f"/api/patients/{patient.id}/assign-doctor", json={"doctor_id": c1.id}, headers=headers(fd1))
    assert r.status_code == 200
    assert r.json()["data"]["assigned_doctor_id"] == c1.id
    assert fresh(User, c1.id).assigned_patients == [patient.id]
    assert client.get(f"/api/patients/{patient.id}", headers=headers(c1)).status_code == 200

    r = client.put(f"/api/patients/{patient.id}/assign-doctor", json={"doctor_id": c1.id}, headers=headers(fd1))
    assert r.status_code == 409

    r = client.put(f"/api/patients/{patient.id}/assign-doctor", json={"doctor_id": c2.id}, headers=headers(fd1))
    assert r.status_code == 200
    assert fresh(User, c1.id).assigned_patients == []
    assert fresh(User, c2.id).assigned_patients == [patient.id]
    assert client.get(f"/api/patients/{patient.id}", headers=headers(c1)).status_code == 403


def test_assign_doctor_validations(client: TestClient, make_user, make_patient, headers):
    admin = make_user(Role.admin)
    fd1 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)
    patient = make_patient(created_by=fd1, assigned_doctor=c1)

    r = client.put(f"/api/patients/{patient.id}/assign-doctor", json={"doctor_id": fd1.id}, headers=headers(admin))
    assert r.status_code == 400
    # consulting doctors do not reassign their own patients
    r = client.put(f"/api/patients/{patient.id}/assign-doctor", json={"doctor_id": admin.id}, headers=headers(c1))
    assert r.status_code == 403


def test_delete_is_admin_only_soft_deactivation(client: TestClient, make_user, make_patient, headers, fresh):
    admin = make_user(Role.admin)
    fd1 = make_user(Role.front_desk_coordinator)
    patient = make_patient(created_by=fd1)
    assert client.delete(f"/api/patients/{patient.id}", headers=headers(fd1)).status_code == 403
    r = client.delete(f"/api/patients/{patient.id}", headers=headers(admin))
    assert r.status_code == 200
    row = fresh(Patient, patient.id)
    assert row.status == PatientStatus.inactive
    assert row.is_active is False


def test_stats_overview(client: TestClient, make_user, make_patient, headers):
    senior = make_user(Role.senior_doctor)
    fd1 = make_user(Role.front_desk_coordinator)
    make_patient()
    make_patient(status=PatientStatus.discharged)
    r = client.get("/api/patients/stats/overview", headers=headers(senior))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["total_patients"] == 2
    assert data["discharged_patients"] == 1
    assert data["by_gender"] == {"female": 2}
    assert client.get("/api/patients/stats/overview", headers=headers(fd1)).status_code == 403


def test_coordinator_records_diagnosis_and_hands_to_senior(
    client: TestClient, make_user, make_patient, headers, fresh
):
    fd1 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)
    senior = make_user(Role.senior_doctor)
    patient = make_patient(created_by=fd1, assigned_doctor=c1, status=PatientStatus.inactive, is_active=False)

    r = client.put(
        f"/api/patients/{patient.id}/diagnosis",
        json={"initial_diagnosis": "suspected asthma", "observations": "wheezing", "assigned_senior_doctor_id": senior.id},
        headers=headers(fd1),
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["initial_diagnosis"] == "suspected asthma"
    assert data["observations"] == "wheezing"
    assert data["assigned_doctor_id"] == senior.id
    assert data["status"] == "active"
    assert data["is_active"] is True
    assert fresh(User, c1.id).assigned_patients == []
    assert fresh(User, senior.id).assigned_patients == [patient.id]


def test_diagnosis_keeps_values_not_given(client: TestClient, make_user, make_patient, headers, fresh):
    fd1 = make_user(Role.front_desk_coordinator)
    patient = make_patient(created_by=fd1, symptoms="cough", initial_diagnosis="cold")
    r = client.put(
        f"/api/patients/{patient.id}/diagnosis", json={"symptoms": "", "observations": "pale"}, headers=headers(fd1)
    )
    assert r.status_code == 200
    row = fresh(Patient, patient.id)
    assert (row.symptoms, row.initial_diagnosis, row.observations) == ("cough", "cold", "pale")
    assert row.assigned_doctor_id is None


def test_diagnosis_rejects_non_senior_and_doctors(client: TestClient, make_user, make_patient, headers, fresh):
    fd1 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)
    patient = make_patient(created_by=fd1)

    r = client.put(
        f"/api/patients/{patient.id}/diagnosis",
        json={"initial_diagnosis": "flu", "assigned_senior_doctor_id": c1.id},
        headers=headers(fd1),
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid senior doctor ID"
    assert fresh(Patient, patient.id).initial_diagnosis is None

    r = client.put(f"/api/patients/{patient.id}/diagnosis", json={"initial_diagnosis": "flu"}, headers=headers(c1))
    assert r.status_code == 403
    other = make_user(Role.front_desk_coordinator)
    r = client.put(f"/api/patients/{patient.id}/diagnosis", json={"initial_diagnosis": "flu"}, headers=headers(other))
    assert r.status_code == 403


def test_senior_doctor_listing(client: TestClient, make_user, headers):
    fd1 = make_user(Role.front_desk_coordinator)
    active = make_user(Role.senior_doctor)
    make_user(Role.senior_doctor, is_active=False)
    make_user(Role.consulting_doctor)

    r = client.get("/api/auth/senior-doctors", headers=headers(fd1))
    assert r.status_code == 200
    j = r.json()
    assert j["count"] == 1
    assert [d["id"] for d in j["data"]] == [active.id]
    assert "assigned_patients" not in j["data"][0]
    assert client.get("/api/auth/senior-doctors", headers=headers(active)).status_code == 403
