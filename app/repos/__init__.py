"""Repository interfaces for job persistence (testable via fakes).

Concrete implementations live under app/repos/pg_* and use SQLAlchemy.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from fleet_core.errors import JobError
from fleet_core.lifecycle import Job, JobStatus


class JobNotFoundError(JobError):
    """Raised when no job exists for the requested id."""


class DuplicateJobError(JobError):
    """Raised when a job id or job number is already taken."""

    def __init__(self, job_id: str, job_number: str) -> None:
        self.job_id = job_id
        self.job_number = job_number
        super().__init__(f"Job {job_id} or job number {job_number} already exists")


class StaleJobError(JobError):
    """Raised when a conditional write finds the job changed since it was read."""

    def __init__(self, job_id: str, expected: JobStatus, actual: JobStatus | None = None) -> None:
        self.job_id = job_id
        self.expected = expected
        self.actual = actual
        found = f", now {actual.value}" if actual is not None else ""
        super().__init__(f"Job {job_id} changed since it was read in {expected.value}{found}")


class JobsRepo(Protocol):
    def get(self, job_id: str) -> Job: ...
    def list_all(self) -> Sequence[Job]: ...
    def insert(self, job: Job) -> Job: ...
    def save(self, job: Job, expected_status: JobStatus) -> Job: ...
    def next_job_number(self) -> str: ...


class MasterDataRepo(Protocol):
    def customer(self, customer_id: str) -> Mapping[str, Any] | None: ...
    def machine(self, machine_id: str) -> Mapping[str, Any] | None: ...
    def technician(self, user_id: str) -> Mapping[str, Any] | None: ...


__all__ = ["DuplicateJobError", "JobNotFoundError", "JobsRepo", "MasterDataRepo", "StaleJobError"]
