"""Which follow-up actions a job currently offers."""

from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import FrozenSet

from .errors import PreconditionError, ValidationError
from .lifecycle import Job, JobStatus


class Action(str, Enum):
    EDIT_JOB = "editJob"
    CREATE_QUOTATION = "createQuotation"
    VIEW_QUOTATION = "viewQuotation"
    CREATE_INVOICE = "createInvoice"
    VIEW_INVOICE = "viewInvoice"


QUOTABLE = frozenset({JobStatus.DIAGNOSIS, JobStatus.REPAIR_IN_PROGRESS})
CLOSED = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})


def actions_for(
    status: JobStatus,
    quotation_id: str | None = None,
    invoice_id: str | None = None,
) -> FrozenSet[Action]:
    actions: set[Action] = set()
    if status not in CLOSED:
        actions.add(Action.EDIT_JOB)
    if quotation_id:
        actions.add(Action.VIEW_QUOTATION)
    elif status in QUOTABLE:
        actions.add(Action.CREATE_QUOTATION)
    if invoice_id:
        actions.add(Action.VIEW_INVOICE)
    elif status is JobStatus.COMPLETED:
        actions.add(Action.CREATE_INVOICE)
    return frozenset(actions)


def available_actions(job: Job) -> FrozenSet[Action]:
    return actions_for(job.status, job.quotation_id, job.invoice_id)


def require_action(job: Job, action: Action) -> None:
    if action not in available_actions(job):
        raise PreconditionError(action, job.job_id)


def _document_id(value: str | None, field: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text


def link_quotation(job: Job, quotation_id: str) -> Job:
    """Record the quotation created for ``job``. A job gets at most one."""

    require_action(job, Action.CREATE_QUOTATION)
    return replace(job, quotation_id=_document_id(quotation_id, "quotation_id"))


def link_invoice(job: Job, invoice_id: str) -> Job:
    """Record the invoice created for ``job``. A job gets at most one."""

    require_action(job, Action.CREATE_INVOICE)
    return replace(job, invoice_id=_document_id(invoice_id, "invoice_id"))


__all__ = [
    "Action",
    "actions_for",
    "available_actions",
    "link_invoice",
    "link_quotation",
    "require_action",
]
