from __future__ import annotations

from decimal import Decimal

import pytest

from fleet_core.costing import LineItem, LineKind
from fleet_core.errors import InvalidTransitionError, ValidationError
from fleet_core.lifecycle import (
    STAGE_ORDER,
    CompletionPayload,
    DiagnosisPayload,
    InspectionEntry,
    InspectionPayload,
    Job,
    JobStatus,
    RepairPayload,
    advance,
    cancel,
    new_job,
    next_status,
    transition,
    update_stage,
)
from fleet_core.resolver import LinkedReference


def _diagnosis(labor: str = "40") -> DiagnosisPayload:
    return DiagnosisPayload(
        labor_charges=Decimal(labor),
        products=[LineItem(id="p1", description="Filter", unit_price=Decimal("100"), quantity=2, discount=Decimal("10"))],
        services=[LineItem(id="s1", description="Flush", unit_price=Decimal("50"), kind=LineKind.SERVICE)],
    )


PAYLOADS = {
    JobStatus.INSPECTION: InspectionPayload([InspectionEntry(description="Leaking hose", attachment_ref="files/1.jpg")]),
    JobStatus.DIAGNOSIS: _diagnosis(),
    JobStatus.REPAIR_IN_PROGRESS: RepairPayload("Replace hose and flush system"),
    JobStatus.COMPLETED: CompletionPayload("Tested under load, returned to site"),
}


def _walk(job: Job, until: JobStatus) -> Job:
    while job.status is not until:
        target = next_status(job.status)
        job = advance(job, target, PAYLOADS.get(target), tax_rate=Decimal("0.05"))
    return job


def test_new_job_starts_at_intake(make_job) -> None:
    job = make_job()
    assert job.status is JobStatus.INTAKE
    assert job.quotation_id is None and job.invoice_id is None


def test_new_job_requires_customer_and_machine() -> None:
    with pytest.raises(ValidationError) as excinfo:
        new_job("j-1", "J-1", None, LinkedReference("m-1"))  # type: ignore[arg-type]
    assert excinfo.value.field == "customer"


def test_full_walk_passes_every_stage(make_job) -> None:
    job = make_job()
    seen = [job.status]
    while job.status is not JobStatus.COMPLETED:
        target = next_status(job.status)
        job = advance(job, target, PAYLOADS.get(target))
        seen.append(job.status)
    assert tuple(seen) == STAGE_ORDER
    assert job.stage_payloads.completion_notes.notes == "Tested under load, returned to site"


def test_skip_ahead_is_rejected(make_job) -> None:
    job = make_job()
    with pytest.raises(InvalidTransitionError, match="skipped"):
        advance(job, JobStatus.DIAGNOSIS, PAYLOADS[JobStatus.DIAGNOSIS])


def test_backward_move_is_rejected(make_job) -> None:
    job = _walk(make_job(), JobStatus.DIAGNOSIS)
    with pytest.raises(InvalidTransitionError, match="backward"):
        advance(job, JobStatus.INSPECTION, PAYLOADS[JobStatus.INSPECTION])


def test_completed_job_cannot_return_to_diagnosis(make_job) -> None:
    job = _walk(make_job(), JobStatus.COMPLETED)
    snapshot = job
    with pytest.raises(InvalidTransitionError):
        advance(job, "Diagnosis", PAYLOADS[JobStatus.DIAGNOSIS])
    assert job == snapshot
    assert job.status is JobStatus.COMPLETED


def test_missing_payload_names_the_field(make_job) -> None:
    job = make_job()
    with pytest.raises(ValidationError) as excinfo:
        advance(job, JobStatus.INSPECTION)
    assert excinfo.value.field == "inspection"
    assert job.status is JobStatus.INTAKE


def test_wrong_payload_type_is_rejected(make_job) -> None:
    job = _walk(make_job(), JobStatus.DIAGNOSIS)
    with pytest.raises(ValidationError):
        advance(job, JobStatus.REPAIR_IN_PROGRESS, CompletionPayload("done"))
    assert job.stage_payloads.repair_details is None


def test_testing_and_handover_take_no_payload(make_job) -> None:
    job = _walk(make_job(), JobStatus.REPAIR_IN_PROGRESS)
    with pytest.raises(ValidationError):
        advance(job, JobStatus.TESTING, RepairPayload("more"))
    job = advance(job, JobStatus.TESTING)
    assert advance(job, "Handover").status is JobStatus.HANDOVER


def test_diagnosis_stores_cost_snapshot(make_job) -> None:
    job = _walk(make_job(), JobStatus.DIAGNOSIS)
    record = job.stage_payloads.diagnosis
    assert record is not None
    assert record.summary.grand_total == Decimal("294")


def test_update_stage_reruns_aggregation_without_status_change(make_job) -> None:
    job = _walk(make_job(), JobStatus.DIAGNOSIS)
    updated = update_stage(job, _diagnosis(labor="60"), tax_rate=Decimal("0.05"))
    assert updated.status is JobStatus.DIAGNOSIS
    assert updated.stage_payloads.diagnosis.summary.grand_total == Decimal("315")
    assert job.stage_payloads.diagnosis.summary.grand_total == Decimal("294")


def test_update_stage_rejects_other_stage_payload(make_job) -> None:
    job = _walk(make_job(), JobStatus.DIAGNOSIS)
    with pytest.raises(ValidationError):
        update_stage(job, PAYLOADS[JobStatus.INSPECTION])
    with pytest.raises(ValidationError):
        update_stage(make_job(), PAYLOADS[JobStatus.INSPECTION])


def test_update_stage_rejects_closed_job(make_job) -> None:
    job = _walk(make_job(), JobStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError):
        update_stage(job, CompletionPayload("edited"))


def test_cancel_from_any_open_stage(make_job) -> None:
    for status in STAGE_ORDER[:-1]:
        job = _walk(make_job(), status)
        cancelled = transition(job, "Cancelled", reason=" customer withdrew ")
        assert cancelled.status is JobStatus.CANCELLED
        assert cancelled.cancellation_reason == "customer withdrew"


def test_cancelled_is_terminal(make_job) -> None:
    job = cancel(make_job())
    with pytest.raises(InvalidTransitionError):
        cancel(job)
    with pytest.raises(InvalidTransitionError):
        advance(job, JobStatus.INSPECTION, PAYLOADS[JobStatus.INSPECTION])


@pytest.mark.parametrize(
    "build",
    [
        lambda: InspectionPayload([]),
        lambda: InspectionEntry(description=" ", attachment_ref=None),
        lambda: DiagnosisPayload(labor_charges=Decimal("0")),
        lambda: DiagnosisPayload(labor_charges=Decimal("-1"), products=[]),
        lambda: RepairPayload("   "),
        lambda: CompletionPayload(""),
    ],
)
def test_stage_payloads_validate_on_construction(build) -> None:
    with pytest.raises(ValidationError):
        build()


def test_status_parse_accepts_both_vocabularies() -> None:
    assert JobStatus.parse("Started IN") is JobStatus.INTAKE
    assert JobStatus.parse("Repair") is JobStatus.REPAIR_IN_PROGRESS
    assert JobStatus.parse("repair in progress") is JobStatus.REPAIR_IN_PROGRESS
    assert JobStatus.REPAIR_IN_PROGRESS.label == "Repair In Progress"
    with pytest.raises(ValidationError):
        JobStatus.parse("Invoiced")
