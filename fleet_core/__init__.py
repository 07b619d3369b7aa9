"""Stateless core for repair job tracking."""

from .actions import Action, available_actions, link_invoice, link_quotation, require_action
from .costing import CostSummary, InvoiceSummary, LineItem, PaymentStatus, aggregate, settle
from .documents import InvoiceDraft, QuotationDraft, draft_invoice, draft_quotation
from .errors import InvalidTransitionError, JobError, PreconditionError, ValidationError
from .lifecycle import (
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
    transition,
    update_stage,
)
from .query import JobFilters, JobListing, Lookups, Page, build_listing, paginate, query_jobs, search, sort
from .resolver import (
    UNASSIGNED,
    LinkedReference,
    ManualReference,
    SelectionMode,
    assign_technician,
    display_name,
    resolve,
    switch_mode,
)

__all__ = [
    "Action",
    "available_actions",
    "link_invoice",
    "link_quotation",
    "require_action",
    "CostSummary",
    "InvoiceSummary",
    "LineItem",
    "PaymentStatus",
    "aggregate",
    "settle",
    "InvoiceDraft",
    "QuotationDraft",
    "draft_invoice",
    "draft_quotation",
    "InvalidTransitionError",
    "JobError",
    "PreconditionError",
    "ValidationError",
    "CompletionPayload",
    "DiagnosisPayload",
    "InspectionEntry",
    "InspectionPayload",
    "Job",
    "JobStatus",
    "RepairPayload",
    "advance",
    "cancel",
    "new_job",
    "transition",
    "update_stage",
    "JobFilters",
    "JobListing",
    "Lookups",
    "Page",
    "build_listing",
    "paginate",
    "query_jobs",
    "search",
    "sort",
    "UNASSIGNED",
    "LinkedReference",
    "ManualReference",
    "SelectionMode",
    "assign_technician",
    "display_name",
    "resolve",
    "switch_mode",
]
