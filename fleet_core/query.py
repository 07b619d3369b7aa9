"""Search, filter, sort and paginate jobs by their resolved display fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from math import ceil
from typing import Any, Callable, Dict, FrozenSet, Generic, Iterable, List, Sequence, TypeVar

from .errors import ValidationError
from .lifecycle import STAGE_ORDER, Job, JobStatus
from .resolver import (
    CUSTOMER,
    MACHINE,
    TECHNICIAN,
    Lookup,
    display_name,
    is_assigned,
    linked_id,
    plate_number,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Lookups:
    """Master-data lookups used to turn references into display strings."""

    customer: Lookup | None = None
    machine: Lookup | None = None
    technician: Lookup | None = None


@dataclass(frozen=True)
class JobListing:
    job: Job
    job_number: str
    customer_name: str
    machine_name: str
    plate_number: str
    technician_name: str
    status_label: str

    def search_fields(self) -> tuple[str, ...]:
        return (
            self.job_number,
            self.customer_name,
            self.machine_name,
            self.plate_number,
            self.technician_name,
            self.status_label,
        )


def build_listing(job: Job, lookups: Lookups | None = None) -> JobListing:
    lookups = lookups or Lookups()
    return JobListing(
        job=job,
        job_number=job.job_number or "",
        customer_name=display_name(job.customer, lookups.customer, CUSTOMER),
        machine_name=display_name(job.machine, lookups.machine, MACHINE),
        plate_number=plate_number(job.machine, lookups.machine),
        technician_name=display_name(job.technician, lookups.technician, TECHNICIAN),
        status_label=job.status.label,
    )


def build_listings(jobs: Iterable[Job], lookups: Lookups | None = None) -> List[JobListing]:
    return [build_listing(job, lookups) for job in jobs]


def search(listings: Iterable[JobListing], query: str | None) -> List[JobListing]:
    """Case-insensitive substring match against any display field."""

    needle = (query or "").strip().lower()
    if not needle:
        return list(listings)
    return [
        listing
        for listing in listings
        if any(needle in value.lower() for value in listing.search_fields())
    ]


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


_STATUS_RANK = {status: index for index, status in enumerate(STAGE_ORDER)}
_STATUS_RANK[JobStatus.CANCELLED] = len(STAGE_ORDER)

SORT_KEYS: Dict[str, Callable[[JobListing], Any]] = {
    "date": lambda listing: listing.job.created_at,
    "job_number": lambda listing: listing.job_number.lower(),
    "status": lambda listing: _STATUS_RANK[listing.job.status],
    "customer": lambda listing: listing.customer_name.lower(),
    "machine": lambda listing: listing.machine_name.lower(),
    "technician": lambda listing: listing.technician_name.lower(),
}
SORT_KEYS["created_at"] = SORT_KEYS["date"]


def sort(
    listings: Iterable[JobListing],
    field: str = "date",
    direction: SortDirection | str = SortDirection.DESC,
) -> List[JobListing]:
    """Stable sort; equal keys keep their incoming order in either direction."""

    key = SORT_KEYS.get(field)
    if key is None:
        raise ValidationError(f"Cannot sort jobs by {field!r}", field="sort_by")
    try:
        order = SortDirection(str(getattr(direction, "value", direction)).lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown sort direction: {direction!r}", field="sort_order") from exc
    return sorted(listings, key=key, reverse=order is SortDirection.DESC)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T]
    page: int
    page_size: int
    total: int
    total_pages: int


def paginate(items: Sequence[T], page: int = 1, page_size: int = 10) -> Page[T]:
    """1-indexed pagination; pages past the end are empty rather than an error."""

    if page_size <= 0:
        raise ValidationError("Page size must be at least 1", field="page_size")
    if page < 1:
        raise ValidationError("Page must be at least 1", field="page")
    items = list(items)
    total = len(items)
    start = (page - 1) * page_size
    return Page(
        items=items[start : start + page_size],
        page=page,
        page_size=page_size,
        total=total,
        total_pages=ceil(total / page_size),
    )


class AssignmentFilter(str, Enum):
    ALL = "all"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class JobFilters:
    statuses: FrozenSet[JobStatus] = field(default_factory=frozenset)
    assignment: AssignmentFilter = AssignmentFilter.ALL
    customer_id: str | None = None
    machine_id: str | None = None
    technician_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None


def _day(value: datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _matches(job: Job, filters: JobFilters) -> bool:
    if filters.statuses and job.status not in filters.statuses:
        return False
    if filters.assignment is AssignmentFilter.ASSIGNED and not is_assigned(job.technician):
        return False
    if filters.assignment is AssignmentFilter.UNASSIGNED and is_assigned(job.technician):
        return False
    if filters.customer_id and linked_id(job.customer) != filters.customer_id:
        return False
    if filters.machine_id and linked_id(job.machine) != filters.machine_id:
        return False
    if filters.technician_id and linked_id(job.technician) != filters.technician_id:
        return False
    created = _day(job.created_at)
    if filters.date_from and created < filters.date_from:
        return False
    if filters.date_to and created > filters.date_to:
        return False
    return True


def apply_filters(listings: Iterable[JobListing], filters: JobFilters | None) -> List[JobListing]:
    if filters is None:
        return list(listings)
    return [listing for listing in listings if _matches(listing.job, filters)]


def query_jobs(
    listings: Iterable[JobListing],
    query: str | None = None,
    filters: JobFilters | None = None,
    sort_by: str = "date",
    direction: SortDirection | str = SortDirection.DESC,
    page: int = 1,
    page_size: int = 10,
) -> Page[JobListing]:
    """Filter, search, sort and paginate in one pass, as the job list screen does."""

    matched = search(apply_filters(listings, filters), query)
    return paginate(sort(matched, sort_by, direction), page, page_size)


__all__ = [
    "AssignmentFilter",
    "JobFilters",
    "JobListing",
    "Lookups",
    "Page",
    "SORT_KEYS",
    "SortDirection",
    "apply_filters",
    "build_listing",
    "build_listings",
    "paginate",
    "query_jobs",
    "search",
    "sort",
]
