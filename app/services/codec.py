"""Translate between job snapshots and JSON-safe documents / request payloads."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

from fleet_core.costing import CostSummary, InvoiceSummary, LineItem, LineKind, to_decimal
from fleet_core.errors import ValidationError
from fleet_core.lifecycle import (
    CompletionPayload,
    DiagnosisPayload,
    DiagnosisRecord,
    InspectionEntry,
    InspectionPayload,
    Job,
    JobStatus,
    RepairPayload,
    StagePayload,
    StagePayloads,
)
from fleet_core.resolver import (
    CUSTOMER,
    MACHINE,
    TECHNICIAN,
    UNASSIGNED,
    EntityKind,
    LinkedReference,
    ManualReference,
    TechnicianReference,
    assign_technician,
    populated_fields,
    resolve,
)


def _money(value: Decimal) -> str:
    return format(value, "f")


# References ---------------------------------------------------------------
def reference_to_dict(ref: TechnicianReference) -> Dict[str, Any]:
    if isinstance(ref, LinkedReference):
        return {"mode": "linked", "id": ref.id}
    if isinstance(ref, ManualReference):
        return {"mode": "manual", "data": populated_fields(ref.data)}
    return {"mode": "unassigned"}


def reference_from_dict(data: Mapping[str, Any] | None, kind: EntityKind) -> TechnicianReference:
    if not data or data.get("mode") == "unassigned":
        if kind is TECHNICIAN:
            return UNASSIGNED
        raise ValidationError(f"{kind.name} reference is required", field=kind.name)
    return resolve(data.get("mode", ""), data.get("id"), data.get("data"), kind=kind)


def parse_selection(data: Mapping[str, Any], kind: EntityKind) -> TechnicianReference:
    """Read ``<kind>_mode`` / ``<kind>_id`` / ``<kind>`` form fields into a reference."""

    mode = data.get(f"{kind.name}_mode") or "linked"
    linked = data.get(f"{kind.name}_id")
    manual = data.get(kind.name)
    return resolve(mode, linked, manual, kind=kind)


def parse_technician(data: Mapping[str, Any]) -> TechnicianReference:
    technician_id = data.get("technician_id")
    manual = data.get("manual_technician")
    if not technician_id and not manual:
        return UNASSIGNED
    return assign_technician(technician_id=technician_id, manual=manual or None)


# Line items ---------------------------------------------------------------
def line_item_to_dict(item: LineItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "description": item.description,
        "unit_price": _money(item.unit_price),
        "quantity": _money(item.quantity),
        "discount": _money(item.discount),
        "kind": item.kind.value,
        "sub_total": _money(item.sub_total),
    }


def parse_line_items(items: Iterable[Mapping[str, Any]] | None, kind: LineKind) -> List[LineItem]:
    parsed: List[LineItem] = []
    for index, item in enumerate(items or ()):
        if not isinstance(item, Mapping):
            raise ValidationError(f"{kind.value} lines must be objects", field=f"{kind.value}s")
        parsed.append(
            LineItem(
                id=str(item.get("id") or f"{kind.value}-{index + 1}"),
                description=str(item.get("description") or ""),
                unit_price=to_decimal(item.get("unit_price"), "unit_price"),
                quantity=to_decimal(item.get("quantity", 1), "quantity"),
                discount=to_decimal(item.get("discount"), "discount"),
                kind=kind,
            )
        )
    return parsed


# Cost summaries -----------------------------------------------------------
_SUMMARY_FIELDS = tuple(CostSummary.__dataclass_fields__)


def summary_to_dict(summary: CostSummary) -> Dict[str, str]:
    return {key: _money(value) for key, value in asdict(summary).items()}


def summary_from_dict(data: Mapping[str, Any]) -> CostSummary:
    return CostSummary(**{key: Decimal(str(data[key])) for key in _SUMMARY_FIELDS})


def settlement_to_dict(settlement: InvoiceSummary) -> Dict[str, Any]:
    return {
        "paid_amount": _money(settlement.paid_amount),
        "balance": _money(settlement.balance),
        "payment_status": settlement.payment_status.value,
        "due_date": settlement.due_date.isoformat() if settlement.due_date else None,
    }


# Stage payloads -----------------------------------------------------------
def _diagnosis_payload(data: Mapping[str, Any]) -> DiagnosisPayload:
    return DiagnosisPayload(
        labor_charges=to_decimal(data.get("labor_charges"), "labor_charges"),
        products=parse_line_items(data.get("products"), LineKind.PRODUCT),
        services=parse_line_items(data.get("services"), LineKind.SERVICE),
    )


def _inspection_payload(data: Any) -> InspectionPayload:
    entries = data.get("entries") if isinstance(data, Mapping) else data
    if not isinstance(entries, (list, tuple)):
        raise ValidationError("Inspection data is required for Inspection status", field="inspection")
    parsed: List[InspectionEntry] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ValidationError("Inspection entries must be objects", field="inspection")
        parsed.append(
            InspectionEntry(
                description=entry.get("description"),
                attachment_ref=entry.get("attachment_ref"),
            )
        )
    return InspectionPayload(parsed)


def _text(data: Any, *keys: str) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, Mapping):
        for key in keys:
            if data.get(key):
                return str(data[key])
    return ""


def parse_stage_payload(status: JobStatus, data: Any) -> StagePayload | None:
    """Build the typed payload the given stage expects from request data."""

    if data is None:
        return None
    if status is JobStatus.INSPECTION:
        return _inspection_payload(data)
    if status is JobStatus.DIAGNOSIS:
        if not isinstance(data, Mapping):
            raise ValidationError("Diagnosis data is required for Diagnosis status", field="diagnosis")
        return _diagnosis_payload(data)
    if status is JobStatus.REPAIR_IN_PROGRESS:
        return RepairPayload(_text(data, "details", "repair_details"))
    if status is JobStatus.COMPLETED:
        return CompletionPayload(_text(data, "notes", "completion_notes"))
    raise ValidationError(f"{status.label} does not take stage data", field="payload")


def stages_to_dict(stages: StagePayloads) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if stages.inspection is not None:
        out["inspection"] = {
            "entries": [
                {"description": entry.description, "attachment_ref": entry.attachment_ref}
                for entry in stages.inspection.entries
            ]
        }
    if stages.diagnosis is not None:
        payload = stages.diagnosis.payload
        out["diagnosis"] = {
            "labor_charges": _money(payload.labor_charges),
            "products": [line_item_to_dict(item) for item in payload.products],
            "services": [line_item_to_dict(item) for item in payload.services],
            "summary": summary_to_dict(stages.diagnosis.summary),
        }
    if stages.repair_details is not None:
        out["repair_details"] = {"details": stages.repair_details.details}
    if stages.completion_notes is not None:
        out["completion_notes"] = {"notes": stages.completion_notes.notes}
    return out


def stages_from_dict(data: Mapping[str, Any] | None) -> StagePayloads:
    data = data or {}
    diagnosis = None
    if data.get("diagnosis"):
        raw = data["diagnosis"]
        # The stored snapshot is kept as computed, not recomputed on load.
        diagnosis = DiagnosisRecord(payload=_diagnosis_payload(raw), summary=summary_from_dict(raw["summary"]))
    return StagePayloads(
        inspection=_inspection_payload(data["inspection"]) if data.get("inspection") else None,
        diagnosis=diagnosis,
        repair_details=RepairPayload(data["repair_details"]["details"]) if data.get("repair_details") else None,
        completion_notes=(
            CompletionPayload(data["completion_notes"]["notes"]) if data.get("completion_notes") else None
        ),
    )


# Jobs ---------------------------------------------------------------------
def job_to_document(job: Job) -> Dict[str, Any]:
    return {
        "job_id": job.job_id,
        "job_number": job.job_number,
        "status": job.status.value,
        "customer": reference_to_dict(job.customer),
        "machine": reference_to_dict(job.machine),
        "technician": reference_to_dict(job.technician),
        "stages": stages_to_dict(job.stage_payloads),
        "quotation_id": job.quotation_id,
        "invoice_id": job.invoice_id,
        "created_at": job.created_at.isoformat(),
        "description": job.description,
        "comments": job.comments,
        "cancellation_reason": job.cancellation_reason,
    }


def job_from_document(data: Mapping[str, Any]) -> Job:
    return Job(
        job_id=data["job_id"],
        job_number=data["job_number"],
        status=JobStatus.parse(data["status"]),
        customer=reference_from_dict(data.get("customer"), CUSTOMER),
        machine=reference_from_dict(data.get("machine"), MACHINE),
        technician=reference_from_dict(data.get("technician"), TECHNICIAN),
        stage_payloads=stages_from_dict(data.get("stages")),
        quotation_id=data.get("quotation_id"),
        invoice_id=data.get("invoice_id"),
        created_at=datetime.fromisoformat(data["created_at"]),
        description=data.get("description"),
        comments=data.get("comments"),
        cancellation_reason=data.get("cancellation_reason"),
    )


def parse_date(value: Any, field: str) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO date", field=field) from exc


__all__ = [
    "job_from_document",
    "job_to_document",
    "line_item_to_dict",
    "parse_date",
    "parse_line_items",
    "parse_selection",
    "parse_stage_payload",
    "parse_technician",
    "reference_from_dict",
    "reference_to_dict",
    "settlement_to_dict",
    "summary_to_dict",
]
