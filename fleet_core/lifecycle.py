"""Repair job state machine and the stage data each transition requires."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Sequence, Union

from .costing import ZERO, CostSummary, LineItem, aggregate, to_decimal
from .errors import InvalidTransitionError, ValidationError
from .resolver import UNASSIGNED, ResolvedReference, TechnicianReference, TechnicianState


class JobStatus(str, Enum):
    INTAKE = "Intake"
    INSPECTION = "Inspection"
    DIAGNOSIS = "Diagnosis"
    REPAIR_IN_PROGRESS = "RepairInProgress"
    TESTING = "Testing"
    HANDOVER = "Handover"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def label(self) -> str:
        return _LABELS.get(self, self.value)

    @classmethod
    def parse(cls, value: "JobStatus | str") -> "JobStatus":
        """Read a status from either vocabulary the front ends use."""

        if isinstance(value, JobStatus):
            return value
        key = str(value or "").strip().lower()
        status = _ALIASES.get(key)
        if status is None:
            raise ValidationError(f"Unknown job status: {value!r}", field="status")
        return status


_LABELS = {
    JobStatus.INTAKE: "Started IN",
    JobStatus.REPAIR_IN_PROGRESS: "Repair In Progress",
}

_ALIASES = {status.value.lower(): status for status in JobStatus}
_ALIASES.update({label.lower(): status for status, label in _LABELS.items()})
_ALIASES["repair"] = JobStatus.REPAIR_IN_PROGRESS

STAGE_ORDER: tuple[JobStatus, ...] = (
    JobStatus.INTAKE,
    JobStatus.INSPECTION,
    JobStatus.DIAGNOSIS,
    JobStatus.REPAIR_IN_PROGRESS,
    JobStatus.TESTING,
    JobStatus.HANDOVER,
    JobStatus.COMPLETED,
)
TERMINAL = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})


def _blank(text: str | None) -> bool:
    return text is None or not str(text).strip()


@dataclass(frozen=True)
class InspectionEntry:
    description: str | None = None
    attachment_ref: str | None = None

    def __post_init__(self) -> None:
        if _blank(self.description) and _blank(self.attachment_ref):
            raise ValidationError(
                "Each inspection entry needs an attachment or a description",
                field="inspection",
            )


@dataclass(frozen=True)
class InspectionPayload:
    entries: Sequence[InspectionEntry]

    def __post_init__(self) -> None:
        entries = tuple(self.entries)
        if not entries:
            raise ValidationError("Inspection data is required for Inspection status", field="inspection")
        object.__setattr__(self, "entries", entries)


@dataclass(frozen=True)
class DiagnosisPayload:
    labor_charges: Decimal = ZERO
    products: Sequence[LineItem] = ()
    services: Sequence[LineItem] = ()

    def __post_init__(self) -> None:
        labor = to_decimal(self.labor_charges, "labor_charges")
        if labor < ZERO:
            raise ValidationError("Labor charges must be non-negative", field="labor_charges")
        products = tuple(self.products)
        services = tuple(self.services)
        for item in (*products, *services):
            if not isinstance(item, LineItem):
                raise ValidationError("Diagnosis lines must be line items", field="diagnosis")
        if labor == ZERO and not products and not services:
            raise ValidationError("Diagnosis data is required for Diagnosis status", field="diagnosis")
        object.__setattr__(self, "labor_charges", labor)
        object.__setattr__(self, "products", products)
        object.__setattr__(self, "services", services)


@dataclass(frozen=True)
class RepairPayload:
    details: str

    def __post_init__(self) -> None:
        if _blank(self.details):
            raise ValidationError(
                "Repair details are required for Repair In Progress status",
                field="repair_details",
            )
        object.__setattr__(self, "details", self.details.strip())


@dataclass(frozen=True)
class CompletionPayload:
    notes: str

    def __post_init__(self) -> None:
        if _blank(self.notes):
            raise ValidationError(
                "Completion notes are required for Completed status",
                field="completion_notes",
            )
        object.__setattr__(self, "notes", self.notes.strip())


StagePayload = Union[InspectionPayload, DiagnosisPayload, RepairPayload, CompletionPayload]


@dataclass(frozen=True)
class DiagnosisRecord:
    """Diagnosis stage data together with the cost snapshot computed from it."""

    payload: DiagnosisPayload
    summary: CostSummary


@dataclass(frozen=True)
class StagePayloads:
    inspection: InspectionPayload | None = None
    diagnosis: DiagnosisRecord | None = None
    repair_details: RepairPayload | None = None
    completion_notes: CompletionPayload | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    """Immutable snapshot of a repair job."""

    job_id: str
    job_number: str
    status: JobStatus
    customer: ResolvedReference
    machine: ResolvedReference
    technician: TechnicianReference = UNASSIGNED
    stage_payloads: StagePayloads = field(default_factory=StagePayloads)
    quotation_id: str | None = None
    invoice_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    description: str | None = None
    comments: str | None = None
    cancellation_reason: str | None = None
    # Bumped by the store on every write; 0 for a job that was never saved.
    revision: int = 0


_REQUIRED: dict[JobStatus, type] = {
    JobStatus.INSPECTION: InspectionPayload,
    JobStatus.DIAGNOSIS: DiagnosisPayload,
    JobStatus.REPAIR_IN_PROGRESS: RepairPayload,
    JobStatus.COMPLETED: CompletionPayload,
}

_MISSING = {
    JobStatus.INSPECTION: ("Inspection data is required for Inspection status", "inspection"),
    JobStatus.DIAGNOSIS: ("Diagnosis data is required for Diagnosis status", "diagnosis"),
    JobStatus.REPAIR_IN_PROGRESS: (
        "Repair details are required for Repair In Progress status",
        "repair_details",
    ),
    JobStatus.COMPLETED: ("Completion notes are required for Completed status", "completion_notes"),
}


def new_job(
    job_id: str,
    job_number: str,
    customer: ResolvedReference,
    machine: ResolvedReference,
    technician: TechnicianReference = UNASSIGNED,
    *,
    created_at: datetime | None = None,
    description: str | None = None,
    comments: str | None = None,
) -> Job:
    """Open a job in the first stage."""

    if _blank(job_id):
        raise ValidationError("Job id is required", field="job_id")
    if customer is None or isinstance(customer, TechnicianState):
        raise ValidationError("Customer information is required", field="customer")
    if machine is None or isinstance(machine, TechnicianState):
        raise ValidationError("Machine information is required", field="machine")
    return Job(
        job_id=job_id,
        job_number=job_number or job_id,
        status=STAGE_ORDER[0],
        customer=customer,
        machine=machine,
        technician=technician if technician is not None else UNASSIGNED,
        created_at=created_at or _utcnow(),
        description=description,
        comments=comments,
    )


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL


def next_status(status: JobStatus) -> JobStatus | None:
    if is_terminal(status):
        return None
    index = STAGE_ORDER.index(status)
    return STAGE_ORDER[index + 1]


def required_payload(status: JobStatus) -> type | None:
    return _REQUIRED.get(status)


def _check_payload(target: JobStatus, payload: StagePayload | None) -> None:
    expected = required_payload(target)
    if expected is None:
        if payload is not None:
            raise ValidationError(f"{target.label} does not take stage data", field="payload")
        return
    if payload is None:
        message, field_name = _MISSING[target]
        raise ValidationError(message, field=field_name)
    if not isinstance(payload, expected):
        raise ValidationError(
            f"{target.label} requires {expected.__name__}, got {type(payload).__name__}",
            field="payload",
        )


def _store(
    stages: StagePayloads,
    status: JobStatus,
    payload: StagePayload,
    tax_rate: Decimal,
) -> StagePayloads:
    if isinstance(payload, InspectionPayload):
        return replace(stages, inspection=payload)
    if isinstance(payload, DiagnosisPayload):
        summary = aggregate(payload.products, payload.services, payload.labor_charges, tax_rate)
        return replace(stages, diagnosis=DiagnosisRecord(payload=payload, summary=summary))
    if isinstance(payload, RepairPayload):
        return replace(stages, repair_details=payload)
    if isinstance(payload, CompletionPayload):
        return replace(stages, completion_notes=payload)
    raise ValidationError(f"{status.label} does not take stage data", field="payload")


def advance(
    job: Job,
    target: JobStatus | str,
    payload: StagePayload | None = None,
    *,
    tax_rate: Decimal | str | int = ZERO,
) -> Job:
    """Move ``job`` forward by exactly one stage.

    The payload is validated and, for Diagnosis, costed before anything is
    applied; any failure leaves ``job`` as it was.
    """

    target = JobStatus.parse(target)
    if is_terminal(job.status):
        raise InvalidTransitionError(job.status, target, "the job is closed")
    if target is JobStatus.CANCELLED:
        return cancel(job)
    if target is job.status:
        raise InvalidTransitionError(job.status, target, "already in this stage; update the stage instead")
    expected = next_status(job.status)
    if target is not expected:
        backward = STAGE_ORDER.index(target) < STAGE_ORDER.index(job.status)
        raise InvalidTransitionError(
            job.status,
            target,
            "stages cannot move backward" if backward else "stages cannot be skipped",
        )
    _check_payload(target, payload)
    stages = job.stage_payloads
    if payload is not None:
        stages = _store(stages, target, payload, tax_rate)
    return replace(job, status=target, stage_payloads=stages)


def cancel(job: Job, reason: str | None = None) -> Job:
    if is_terminal(job.status):
        raise InvalidTransitionError(job.status, JobStatus.CANCELLED, "the job is closed")
    cleaned = None if _blank(reason) else str(reason).strip()
    return replace(job, status=JobStatus.CANCELLED, cancellation_reason=cleaned)


def transition(
    job: Job,
    target: JobStatus | str,
    payload: StagePayload | None = None,
    *,
    tax_rate: Decimal | str | int = ZERO,
    reason: str | None = None,
) -> Job:
    target = JobStatus.parse(target)
    if target is JobStatus.CANCELLED:
        return cancel(job, reason)
    return advance(job, target, payload, tax_rate=tax_rate)


def update_stage(
    job: Job,
    payload: StagePayload,
    *,
    tax_rate: Decimal | str | int = ZERO,
) -> Job:
    """Replace the data of the stage the job is currently in without changing status."""

    if is_terminal(job.status):
        raise InvalidTransitionError(job.status, job.status, "closed jobs cannot be edited")
    expected = required_payload(job.status)
    if expected is None:
        raise ValidationError(f"{job.status.label} has no stage data to update", field="payload")
    _check_payload(job.status, payload)
    return replace(job, stage_payloads=_store(job.stage_payloads, job.status, payload, tax_rate))


__all__ = [
    "STAGE_ORDER",
    "CompletionPayload",
    "DiagnosisPayload",
    "DiagnosisRecord",
    "InspectionEntry",
    "InspectionPayload",
    "Job",
    "JobStatus",
    "RepairPayload",
    "StagePayload",
    "StagePayloads",
    "advance",
    "cancel",
    "is_terminal",
    "new_job",
    "next_status",
    "required_payload",
    "transition",
    "update_stage",
]
