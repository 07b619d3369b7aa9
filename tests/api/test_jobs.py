from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.repos.pg_jobs import SqlMasterDataRepo

client = TestClient(app)

DIAGNOSIS = {
    "labor_charges": "40",
    "products": [{"description": "Hydraulic filter", "unit_price": "100", "quantity": 2, "discount": "10"}],
    "services": [{"description": "Oil change", "unit_price": "50"}],
}

STAGE_PAYLOADS = {
    "Inspection": {"entries": [{"description": "Leaking hydraulic hose"}]},
    "Diagnosis": DIAGNOSIS,
    "RepairInProgress": {"details": "Replaced hose and filter"},
    "Testing": None,
    "Handover": None,
    "Completed": {"notes": "Customer collected the machine"},
}


@pytest.fixture
def seeded(jobs_test_engine):
    master = SqlMasterDataRepo(jobs_test_engine)
    master.add_customer("c-1", {"firstname": "Alice", "lastname": "Moreau", "phone": "0501234567"})
    master.add_machine("m-1", {"vehicle_name": "Volvo EC220", "plate_number": "AUH-9"})
    master.add_technician("t-1", {"first_name": "Sara", "last_name": "Khan"})
    return jobs_test_engine


def _create(**overrides):
    body = {"customer_id": "c-1", "machine_id": "m-1", **overrides}
    response = client.post("/jobs", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _advance(job_id: str, target: str, payload=None):
    return client.post(f"/jobs/{job_id}/transition", json={"target": target, "payload": payload})


def _walk_to(job_id: str, final: str) -> dict:
    body = {}
    for stage, payload in STAGE_PAYLOADS.items():
        response = _advance(job_id, stage, payload)
        assert response.status_code == 200, response.text
        body = response.json()
        if stage == final:
            break
    return body


def test_create_job_resolves_linked_records(seeded) -> None:
    body = _create()
    assert body["status"] == "Intake"
    assert body["job_number"] == "JOB-00001"
    assert body["display"]["customer_name"] == "Alice Moreau"
    assert body["display"]["machine_name"] == "Volvo EC220"
    assert body["display"]["plate_number"] == "AUH-9"
    assert body["display"]["technician_name"] == "Unassigned"
    assert body["display"]["status_label"] == "Started IN"
    assert body["display"]["customer_contact"]["phone"] == "0501234567"
    assert body["available_actions"] == ["editJob"]


def test_create_job_with_manual_customer(seeded) -> None:
    body = _create(customer_mode="manual", customer={"firstname": "Bob"}, customer_id="c-1")
    assert body["customer"] == {"mode": "manual", "data": {"firstname": "Bob"}}
    assert body["display"]["customer_name"] == "Bob"


def test_create_job_rejects_empty_manual_customer(seeded) -> None:
    response = client.post("/jobs", json={"customer_mode": "manual", "customer": {}, "machine_id": "m-1"})
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "ValidationError"


def test_get_unknown_job_is_404(seeded) -> None:
    response = client.get("/jobs/missing")
    assert response.status_code == 404


def test_full_walk_snapshots_diagnosis_costs(seeded) -> None:
    job_id = _create()["job_id"]
    body = _walk_to(job_id, "Diagnosis")
    summary = body["stages"]["diagnosis"]["summary"]
    assert Decimal(summary["grand_total"]) == Decimal("294")
    assert body["available_actions"] == ["createQuotation", "editJob"]

    body = _walk_to_rest(job_id)
    assert body["status"] == "Completed"
    assert body["stages"]["completion_notes"] == {"notes": "Customer collected the machine"}
    assert body["available_actions"] == ["createInvoice"]


def _walk_to_rest(job_id: str) -> dict:
    body = {}
    for stage in ("RepairInProgress", "Testing", "Handover", "Completed"):
        response = _advance(job_id, stage, STAGE_PAYLOADS[stage])
        assert response.status_code == 200, response.text
        body = response.json()
    return body


def test_skipping_a_stage_is_a_conflict(seeded) -> None:
    job_id = _create()["job_id"]
    response = _advance(job_id, "Diagnosis", DIAGNOSIS)
    assert response.status_code == 409
    assert client.get(f"/jobs/{job_id}").json()["status"] == "Intake"


def test_missing_stage_payload_names_the_field(seeded) -> None:
    job_id = _create()["job_id"]
    response = _advance(job_id, "Inspection")
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "inspection"


def test_stale_expected_status_is_rejected(seeded) -> None:
    job_id = _create()["job_id"]
    _walk_to(job_id, "Inspection")
    response = client.post(
        f"/jobs/{job_id}/transition",
        json={"target": "Diagnosis", "expected_status": "Intake", "payload": DIAGNOSIS},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "StaleJobError"


def test_update_stage_recomputes_diagnosis(seeded) -> None:
    job_id = _create()["job_id"]
    _walk_to(job_id, "Diagnosis")
    payload = {**DIAGNOSIS, "labor_charges": "60"}
    response = client.put(f"/jobs/{job_id}/stage", json={"payload": payload})
    assert response.status_code == 200, response.text
    summary = response.json()["stages"]["diagnosis"]["summary"]
    assert Decimal(summary["grand_total"]) == Decimal("315")


def test_cancel_records_reason_and_closes_job(seeded) -> None:
    job_id = _create()["job_id"]
    response = client.post(f"/jobs/{job_id}/transition", json={"target": "Cancelled", "reason": "Customer withdrew"})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Cancelled"
    assert body["cancellation_reason"] == "Customer withdrew"
    assert body["available_actions"] == []
    assert _advance(job_id, "Inspection", STAGE_PAYLOADS["Inspection"]).status_code == 409


def test_assign_and_clear_technician(seeded) -> None:
    job_id = _create()["job_id"]
    response = client.put(f"/jobs/{job_id}/technician", json={"technician_id": "t-1"})
    assert response.status_code == 200
    assert response.json()["display"]["technician_name"] == "Sara Khan"

    both = client.put(
        f"/jobs/{job_id}/technician",
        json={"technician_id": "t-1", "manual_technician": {"name": "Omar"}},
    )
    assert both.status_code == 422

    cleared = client.put(f"/jobs/{job_id}/technician", json={"clear": True})
    assert cleared.json()["technician"] == {"mode": "unassigned"}


def test_quotation_is_created_once(seeded) -> None:
    job_id = _create()["job_id"]
    _walk_to(job_id, "Diagnosis")
    response = client.post(f"/jobs/{job_id}/quotation", json={"document_id": "Q-100"})
    assert response.status_code == 201, response.text
    body = response.json()
    assert Decimal(body["summary"]["grand_total"]) == Decimal("294.00")
    assert body["job"]["quotation_id"] == "Q-100"
    assert body["job"]["available_actions"] == ["editJob", "viewQuotation"]

    again = client.post(f"/jobs/{job_id}/quotation", json={"document_id": "Q-101"})
    assert again.status_code == 409


def test_invoice_requires_completed_job(seeded) -> None:
    job_id = _create()["job_id"]
    _walk_to(job_id, "Diagnosis")
    response = client.post(f"/jobs/{job_id}/invoice", json={"document_id": "INV-1"})
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "PreconditionError"


def test_invoice_applies_payment(seeded) -> None:
    job_id = _create()["job_id"]
    _walk_to(job_id, "Diagnosis")
    _walk_to_rest(job_id)
    response = client.post(
        f"/jobs/{job_id}/invoice",
        json={"document_id": "INV-1", "paid_amount": "100", "due_date": "2024-06-01", "today": "2024-05-20"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["settlement"]["payment_status"] == "Partially Paid"
    assert Decimal(body["settlement"]["balance"]) == Decimal("194")
    assert body["job"]["available_actions"] == ["viewInvoice"]


def test_list_jobs_searches_and_paginates(seeded) -> None:
    first = _create()
    _create(customer_mode="manual", customer={"firstname": "Bob"}, technician_id="t-1")
    _create(customer_mode="manual", customer={"firstname": "Carl"})

    response = client.get("/jobs", params={"q": "volvo", "sort_by": "job_number", "sort_order": "asc", "page_size": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert [item["job_number"] for item in body["items"]] == ["JOB-00001", "JOB-00002"]

    alice = client.get("/jobs", params={"q": "alice"}).json()
    assert [item["job_id"] for item in alice["items"]] == [first["job_id"]]

    assigned = client.get("/jobs", params={"assignment": "assigned"}).json()
    assert [item["technician_name"] for item in assigned["items"]] == ["Sara Khan"]


def test_list_jobs_filters_by_status(seeded) -> None:
    job_id = _create()["job_id"]
    _create()
    _walk_to(job_id, "Inspection")
    body = client.get("/jobs", params={"status": "Inspection"}).json()
    assert [item["job_id"] for item in body["items"]] == [job_id]


@pytest.mark.parametrize(
    "params",
    [
        {"page_size": 1000},
        {"page_size": 0},
        {"page": 0},
        {"sort_by": "colour"},
        {"assignment": "maybe"},
    ],
)
def test_list_jobs_rejects_bad_parameters(seeded, params) -> None:
    response = client.get("/jobs", params=params)
    assert response.status_code == 422


def test_inspection_entries_must_be_objects(seeded) -> None:
    job_id = _create()["job_id"]
    response = _advance(job_id, "Inspection", {"entries": ["Leaking hose"]})
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "inspection"
    assert client.get(f"/jobs/{job_id}").json()["status"] == "Intake"


def test_duplicate_job_number_is_a_conflict(seeded) -> None:
    _create(job_number="J-9")
    response = client.post("/jobs", json={"customer_id": "c-1", "machine_id": "m-1", "job_number": "J-9"})
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "DuplicateJobError"


def test_clear_technician_cannot_also_assign(seeded) -> None:
    job_id = _create(technician_id="t-1")["job_id"]
    response = client.put(f"/jobs/{job_id}/technician", json={"clear": True, "technician_id": "t-1"})
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "technician"
    assert client.get(f"/jobs/{job_id}").json()["technician"] == {"mode": "linked", "id": "t-1"}


def test_each_write_bumps_revision(seeded) -> None:
    body = _create()
    assert body["revision"] == 0
    moved = _advance(body["job_id"], "Inspection", STAGE_PAYLOADS["Inspection"]).json()
    assert moved["revision"] == 1
