"""Job workflows: read a snapshot, apply a core operation, write it back conditionally."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping
from uuid import uuid4

from app.db import get_engine
from app.dependencies import get_settings
from app.repos import StaleJobError
from app.repos.pg_jobs import SqlJobsRepo, SqlMasterDataRepo
from fleet_core.actions import Action, available_actions, link_invoice, link_quotation, require_action
from fleet_core.costing import LineKind, aggregate, settle, tax_rate_from_percent, to_decimal
from fleet_core.documents import draft_invoice, draft_quotation
from fleet_core.errors import ValidationError
from fleet_core.lifecycle import Job, JobStatus, new_job, transition, update_stage
from fleet_core.query import (
    AssignmentFilter,
    JobFilters,
    JobListing,
    Lookups,
    build_listing,
    build_listings,
    query_jobs,
)
from fleet_core.resolver import (
    CUSTOMER,
    MACHINE,
    assign_technician,
    clear_technician,
    contact_details,
)

from . import codec

logger = logging.getLogger(__name__)


def _engine():
    return get_engine()


def _jobs_repo() -> SqlJobsRepo:
    return SqlJobsRepo(_engine())


def _master_repo() -> SqlMasterDataRepo:
    return SqlMasterDataRepo(_engine())


def _lookups() -> Lookups:
    master = _master_repo()
    # One cache per call so a list page does not refetch the same record.
    return Lookups(
        customer=lru_cache(maxsize=None)(master.customer),
        machine=lru_cache(maxsize=None)(master.machine),
        technician=lru_cache(maxsize=None)(master.technician),
    )


def _tax_rate(data: Mapping[str, Any] | None = None):
    data = data or {}
    if data.get("tax_rate") is not None:
        return to_decimal(data["tax_rate"], "tax_rate")
    if data.get("tax_percent") is not None:
        return tax_rate_from_percent(data["tax_percent"])
    return get_settings().default_tax_rate


def _today(data: Mapping[str, Any]) -> date:
    return codec.parse_date(data.get("today"), "today") or date.today()


def _listing_to_dict(listing: JobListing) -> Dict[str, Any]:
    job = listing.job
    return {
        "job_id": job.job_id,
        "job_number": listing.job_number,
        "status": job.status.value,
        "status_label": listing.status_label,
        "customer_name": listing.customer_name,
        "machine_name": listing.machine_name,
        "plate_number": listing.plate_number,
        "technician_name": listing.technician_name,
        "created_at": job.created_at.isoformat(),
        "quotation_id": job.quotation_id,
        "invoice_id": job.invoice_id,
    }


def present_job(job: Job, lookups: Lookups | None = None) -> Dict[str, Any]:
    """Job document plus resolved display fields and the actions it currently offers."""

    lookups = lookups or _lookups()
    listing = build_listing(job, lookups)
    out = codec.job_to_document(job)
    out["display"] = {
        key: value
        for key, value in _listing_to_dict(listing).items()
        if key.endswith("_name") or key in ("plate_number", "status_label")
    }
    out["display"]["customer_contact"] = contact_details(job.customer, lookups.customer)
    out["revision"] = job.revision
    out["available_actions"] = sorted(action.value for action in available_actions(job))
    return out


def create_job(data: Mapping[str, Any]) -> Job:
    customer = codec.parse_selection(data, CUSTOMER)
    machine = codec.parse_selection(data, MACHINE)
    technician = codec.parse_technician(data)
    repo = _jobs_repo()
    job = new_job(
        str(data.get("job_id") or uuid4().hex),
        str(data.get("job_number") or repo.next_job_number()),
        customer,
        machine,
        technician,
        description=data.get("description"),
        comments=data.get("comments"),
    )
    job = repo.insert(job)
    logger.info("Created job %s (%s)", job.job_id, job.job_number)
    return job


def get_job(job_id: str) -> Job:
    return _jobs_repo().get(job_id)


def _parse_statuses(values: Iterable[str] | None) -> frozenset:
    return frozenset(JobStatus.parse(value) for value in values or () if value)


def list_jobs(
    query: str | None = None,
    statuses: Iterable[str] | None = None,
    assignment: str = "all",
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    page_size: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> Dict[str, Any]:
    settings = get_settings()
    size = settings.default_page_size if page_size is None else page_size
    if size > settings.max_page_size:
        raise ValidationError(f"Page size may not exceed {settings.max_page_size}", field="page_size")
    try:
        assignment_filter = AssignmentFilter(assignment)
    except ValueError as exc:
        raise ValidationError(f"Unknown assignment filter: {assignment!r}", field="assignment") from exc
    filters = JobFilters(
        statuses=_parse_statuses(statuses),
        assignment=assignment_filter,
        date_from=codec.parse_date(date_from, "date_from"),
        date_to=codec.parse_date(date_to, "date_to"),
    )
    listings = build_listings(_jobs_repo().list_all(), _lookups())
    result = query_jobs(listings, query, filters, sort_by, sort_order, page, size)
    return {
        "items": [_listing_to_dict(listing) for listing in result.items],
        "page": result.page,
        "page_size": result.page_size,
        "total": result.total,
        "total_pages": result.total_pages,
    }


def _check_expected(job: Job, expected_status: str | None) -> None:
    if expected_status and JobStatus.parse(expected_status) is not job.status:
        raise StaleJobError(job.job_id, JobStatus.parse(expected_status), job.status)


def transition_job(job_id: str, data: Mapping[str, Any]) -> Job:
    """Advance or cancel a job.

    ``expected_status`` is the status the caller last saw; the write is
    rejected if the stored job has moved on since.
    """

    repo = _jobs_repo()
    job = repo.get(job_id)
    _check_expected(job, data.get("expected_status"))
    target = JobStatus.parse(data.get("target") or "")
    payload = None
    if target is not JobStatus.CANCELLED:
        payload = codec.parse_stage_payload(target, data.get("payload"))
    updated = transition(job, target, payload, tax_rate=_tax_rate(data), reason=data.get("reason"))
    updated = repo.save(updated, expected_status=job.status)
    logger.info("Job %s moved %s -> %s", job.job_id, job.status.value, updated.status.value)
    return updated


def update_job_stage(job_id: str, data: Mapping[str, Any]) -> Job:
    repo = _jobs_repo()
    job = repo.get(job_id)
    _check_expected(job, data.get("expected_status"))
    payload = codec.parse_stage_payload(job.status, data.get("payload"))
    if payload is None:
        raise ValidationError("Stage data is required", field="payload")
    updated = update_stage(job, payload, tax_rate=_tax_rate(data))
    updated = repo.save(updated, expected_status=job.status)
    logger.info("Updated %s stage data for job %s", job.status.value, job.job_id)
    return updated


def set_technician(job_id: str, data: Mapping[str, Any]) -> Job:
    repo = _jobs_repo()
    job = repo.get(job_id)
    require_action(job, Action.EDIT_JOB)
    if data.get("clear"):
        if data.get("technician_id") or data.get("manual_technician"):
            raise ValidationError(
                "clear the technician or assign one, not both",
                field="technician",
            )
        technician = clear_technician()
    else:
        technician = assign_technician(
            technician_id=data.get("technician_id"),
            manual=data.get("manual_technician") or None,
        )
    updated = replace(job, technician=technician)
    updated = repo.save(updated, expected_status=job.status)
    logger.info("Technician for job %s set to %s", job.job_id, codec.reference_to_dict(technician)["mode"])
    return updated


def create_quotation(job_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Price the diagnosis as a quotation and record the id of the created document."""

    repo = _jobs_repo()
    job = repo.get(job_id)
    draft = draft_quotation(job, _tax_rate(data))
    linked = link_quotation(job, data.get("document_id") or "")
    linked = repo.save(linked, expected_status=job.status)
    logger.info("Linked quotation %s to job %s", linked.quotation_id, job.job_id)
    return {
        "job": present_job(linked),
        "products": [codec.line_item_to_dict(item) for item in draft.products],
        "services": [codec.line_item_to_dict(item) for item in draft.services],
        "summary": codec.summary_to_dict(draft.summary.rounded()),
    }


def create_invoice(job_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    repo = _jobs_repo()
    job = repo.get(job_id)
    draft = draft_invoice(
        job,
        _tax_rate(data),
        paid_amount=data.get("paid_amount"),
        due_date=codec.parse_date(data.get("due_date"), "due_date"),
        today=_today(data),
    )
    linked = link_invoice(job, data.get("document_id") or "")
    linked = repo.save(linked, expected_status=job.status)
    logger.info("Linked invoice %s to job %s", linked.invoice_id, job.job_id)
    return {
        "job": present_job(linked),
        "products": [codec.line_item_to_dict(item) for item in draft.products],
        "services": [codec.line_item_to_dict(item) for item in draft.services],
        "summary": codec.summary_to_dict(draft.summary.rounded()),
        "settlement": codec.settlement_to_dict(draft.settlement.rounded()),
    }


def cost_summary(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Aggregate ad hoc line items, optionally applying a payment."""

    summary = aggregate(
        codec.parse_line_items(data.get("products"), LineKind.PRODUCT),
        codec.parse_line_items(data.get("services"), LineKind.SERVICE),
        to_decimal(data.get("labor_charges"), "labor_charges"),
        _tax_rate(data),
    )
    out: Dict[str, Any] = {"summary": codec.summary_to_dict(summary.rounded())}
    if data.get("paid_amount") is not None:
        settlement = settle(
            summary,
            data["paid_amount"],
            due_date=codec.parse_date(data.get("due_date"), "due_date"),
            today=_today(data),
        )
        out["settlement"] = codec.settlement_to_dict(settlement.rounded())
    return out


__all__: List[str] = [
    "cost_summary",
    "create_invoice",
    "create_job",
    "create_quotation",
    "get_job",
    "list_jobs",
    "present_job",
    "set_technician",
    "transition_job",
    "update_job_stage",
]
