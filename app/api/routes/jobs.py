from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from app.repos import DuplicateJobError, JobNotFoundError, StaleJobError
from app.services import jobs as jobs_service
from fleet_core.errors import InvalidTransitionError, JobError, PreconditionError, ValidationError

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _http_error(exc: JobError) -> HTTPException:
    if isinstance(exc, JobNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (InvalidTransitionError, PreconditionError, StaleJobError, DuplicateJobError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail: Dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ValidationError) and exc.field:
        detail["field"] = exc.field
    return HTTPException(status_code=code, detail=detail)


class TaxInput(BaseModel):
    tax_rate: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = None


class CreateJobRequest(BaseModel):
    customer_mode: str = "linked"
    customer_id: Optional[str] = None
    customer: Optional[Dict[str, Any]] = None
    machine_mode: str = "linked"
    machine_id: Optional[str] = None
    machine: Optional[Dict[str, Any]] = None
    technician_id: Optional[str] = None
    manual_technician: Optional[Dict[str, Any]] = None
    job_number: Optional[str] = None
    description: Optional[str] = None
    comments: Optional[str] = None


class TransitionRequest(TaxInput):
    target: str
    expected_status: Optional[str] = None
    payload: Any = None
    reason: Optional[str] = None


class StageUpdateRequest(TaxInput):
    payload: Any = None
    expected_status: Optional[str] = None


class TechnicianRequest(BaseModel):
    technician_id: Optional[str] = None
    manual_technician: Optional[Dict[str, Any]] = None
    clear: bool = False


class QuotationRequest(TaxInput):
    document_id: str


class InvoiceRequest(TaxInput):
    document_id: str
    paid_amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    today: Optional[date] = None


@router.post("", status_code=status.HTTP_201_CREATED)
def post_job(payload: CreateJobRequest):
    try:
        job = jobs_service.create_job(payload.model_dump())
        return jobs_service.present_job(job)
    except JobError as exc:
        raise _http_error(exc) from exc


@router.get("")
def get_jobs(
    q: Optional[str] = Query(default=None),
    job_status: Optional[List[str]] = Query(default=None, alias="status"),
    assignment: str = Query(default="all"),
    sort_by: str = Query(default="date"),
    sort_order: str = Query(default="desc"),
    page: int = Query(default=1),
    page_size: Optional[int] = Query(default=None),
    date_from: Optional[str] = Query(default=None),
    date_to: Optional[str] = Query(default=None),
):
    try:
        return jobs_service.list_jobs(
            query=q,
            statuses=job_status,
            assignment=assignment,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
            date_from=date_from,
            date_to=date_to,
        )
    except JobError as exc:
        raise _http_error(exc) from exc


@router.get("/{job_id}")
def get_job(job_id: str):
    try:
        return jobs_service.present_job(jobs_service.get_job(job_id))
    except JobError as exc:
        raise _http_error(exc) from exc


@router.post("/{job_id}/transition")
def post_transition(job_id: str, payload: TransitionRequest):
    try:
        job = jobs_service.transition_job(job_id, payload.model_dump())
        return jobs_service.present_job(job)
    except JobError as exc:
        raise _http_error(exc) from exc


@router.put("/{job_id}/stage")
def put_stage(job_id: str, payload: StageUpdateRequest):
    try:
        job = jobs_service.update_job_stage(job_id, payload.model_dump())
        return jobs_service.present_job(job)
    except JobError as exc:
        raise _http_error(exc) from exc


@router.put("/{job_id}/technician")
def put_technician(job_id: str, payload: TechnicianRequest):
    try:
        job = jobs_service.set_technician(job_id, payload.model_dump())
        return jobs_service.present_job(job)
    except JobError as exc:
        raise _http_error(exc) from exc


@router.post("/{job_id}/quotation", status_code=status.HTTP_201_CREATED)
def post_quotation(job_id: str, payload: QuotationRequest):
    try:
        return jobs_service.create_quotation(job_id, payload.model_dump())
    except JobError as exc:
        raise _http_error(exc) from exc


@router.post("/{job_id}/invoice", status_code=status.HTTP_201_CREATED)
def post_invoice(job_id: str, payload: InvoiceRequest):
    try:
        return jobs_service.create_invoice(job_id, payload.model_dump())
    except JobError as exc:
        raise _http_error(exc) from exc
