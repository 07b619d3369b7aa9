"""Quotation and invoice drafts derived from a job's diagnosis."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence

from .actions import Action, require_action
from .costing import ZERO, CostSummary, InvoiceSummary, LineItem, aggregate, settle
from .errors import ValidationError
from .lifecycle import DiagnosisRecord, Job


@dataclass(frozen=True)
class QuotationDraft:
    job_id: str
    products: Sequence[LineItem]
    services: Sequence[LineItem]
    summary: CostSummary


@dataclass(frozen=True)
class InvoiceDraft:
    job_id: str
    products: Sequence[LineItem]
    services: Sequence[LineItem]
    summary: CostSummary
    settlement: InvoiceSummary


def _diagnosis(job: Job) -> DiagnosisRecord:
    record = job.stage_payloads.diagnosis
    if record is None:
        raise ValidationError("Job has no diagnosis to price", field="diagnosis")
    return record


def draft_quotation(job: Job, tax_rate: Decimal | str | int = ZERO) -> QuotationDraft:
    require_action(job, Action.CREATE_QUOTATION)
    payload = _diagnosis(job).payload
    summary = aggregate(payload.products, payload.services, payload.labor_charges, tax_rate)
    return QuotationDraft(
        job_id=job.job_id,
        products=payload.products,
        services=payload.services,
        summary=summary,
    )


def draft_invoice(
    job: Job,
    tax_rate: Decimal | str | int = ZERO,
    paid_amount: Decimal | str | int = ZERO,
    due_date: date | None = None,
    today: date | None = None,
) -> InvoiceDraft:
    require_action(job, Action.CREATE_INVOICE)
    payload = _diagnosis(job).payload
    summary = aggregate(payload.products, payload.services, payload.labor_charges, tax_rate)
    return InvoiceDraft(
        job_id=job.job_id,
        products=payload.products,
        services=payload.services,
        summary=summary,
        settlement=settle(summary, paid_amount, due_date=due_date, today=today),
    )


__all__ = ["InvoiceDraft", "QuotationDraft", "draft_invoice", "draft_quotation"]
