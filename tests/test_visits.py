"""Visits: doctor-only notes on an accessible patient, newest first."""
from fastapi.testclient import TestClient

from medlens.models import PatientVisit, Role


def test_doctor_adds_and_lists_visits(client: TestClient, make_user, make_patient, headers):
    c1 = make_user(Role.consulting_doctor)
    patient = make_patient(assigned_doctor=c1)

    r = client.post(
        f"/api/visits/patient/{patient.id}",
        json={"visit_date": "2024-03-01T09:00:00", "initial_diagnosis": "flu", "medications_given": ["paracetamol"]},
        headers=headers(c1),
    )
    assert r.status_code == 201, r.text
    first = r.json()["data"]
    assert first["initial_diagnosis"] == "flu"
    assert first["summary"] == ""
    assert first["medications_given"] == ["paracetamol"]
    assert first["recorded_by_id"] == c1.id
    assert first["visit_date"].startswith("2024-03-01T09:00:00")

    client.post(f"/api/visits/patient/{patient.id}", json={"visit_date": "2024-04-01T09:00:00+02:00"}, headers=headers(c1))

    r = client.get(f"/api/visits/patient/{patient.id}", headers=headers(c1))
    assert r.status_code == 200
    j = r.json()
    assert j["count"] == 2
    assert [v["visit_date"][:10] for v in j["data"]] == ["2024-04-01", "2024-03-01"]


def test_visit_date_is_required(client: TestClient, make_user, make_patient, headers):
    c1 = make_user(Role.consulting_doctor)
    patient = make_patient(assigned_doctor=c1)
    r = client.post(f"/api/visits/patient/{patient.id}", json={"summary": "no date"}, headers=headers(c1))
    assert r.status_code == 422
    assert r.json()["success"] is False


def test_update_changes_only_given_fields(client: TestClient, make_user, make_patient, headers, fresh):
    c1 = make_user(Role.consulting_doctor)
    patient = make_patient(assigned_doctor=c1)
    visit = client.post(
        f"/api/visits/patient/{patient.id}",
        json={"visit_date": "2024-03-01T09:00:00Z", "summary": "stable", "medications_given": ["ibuprofen"]},
        headers=headers(c1),
    ).json()["data"]

    r = client.put(
        f"/api/visits/{patient.id}/{visit['id']}",
        json={"updates": "fever down", "medications_given": []},
        headers=headers(c1),
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["updates"] == "fever down"
    assert data["summary"] == "stable"
    assert data["medications_given"] == []
    assert fresh(PatientVisit, visit["id"]).updates == "fever down"


def test_visit_must_belong_to_patient(client: TestClient, make_user, make_patient, headers):
    admin = make_user(Role.admin)
    p1 = make_patient()
    p2 = make_patient()
    visit = client.post(
        f"/api/visits/patient/{p1.id}", json={"visit_date": "2024-03-01T09:00:00Z"}, headers=headers(admin)
    ).json()["data"]
    r = client.put(f"/api/visits/{p2.id}/{visit['id']}", json={"summary": "x"}, headers=headers(admin))
    assert r.status_code == 404
    assert r.json()["message"] == "Visit not found"
    assert client.put(f"/api/visits/{p1.id}/9999", json={}, headers=headers(admin)).status_code == 404


def test_visits_follow_patient_access(client: TestClient, make_user, make_patient, headers):
    fd1 = make_user(Role.front_desk_coordinator)
    c1 = make_user(Role.consulting_doctor)
    c2 = make_user(Role.consulting_doctor)
    senior = make_user(Role.senior_doctor)
    patient = make_patient(created_by=fd1, assigned_doctor=c1)
    body = {"visit_date": "2024-03-01T09:00:00Z"}

    assert client.get(f"/api/visits/patient/{patient.id}", headers=headers(fd1)).status_code == 403
    assert client.post(f"/api/visits/patient/{patient.id}", json=body, headers=headers(c2)).status_code == 403
    assert client.post(f"/api/visits/patient/{patient.id}", json=body, headers=headers(senior)).status_code == 201
    assert client.get("/api/visits/patient/424242", headers=headers(senior)).status_code == 404
