"""SQLAlchemy-backed job and master-data repositories."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, List, Mapping

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from app.services.codec import job_from_document, job_to_document
from fleet_core.lifecycle import Job, JobStatus

from . import DuplicateJobError, JobNotFoundError, StaleJobError
from .tables import customers, jobs, machines, technicians

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _job_from_row(row: Any) -> Job:
    return replace(job_from_document(row[0]), revision=int(row[1]))


class SqlJobsRepo:
    """Stores each job as a JSON snapshot keyed by id, with status mirrored in a column."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, job_id: str) -> Job:
        with self._engine.connect() as conn:
            row = conn.execute(
                sa.select(jobs.c.document, jobs.c.revision).where(jobs.c.job_id == job_id)
            ).fetchone()
        if row is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return _job_from_row(row)

    def list_all(self) -> List[Job]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                sa.select(jobs.c.document, jobs.c.revision).order_by(jobs.c.created_at)
            ).fetchall()
        return [_job_from_row(row) for row in rows]

    def insert(self, job: Job) -> Job:
        now = _now()
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    jobs.insert().values(
                        job_id=job.job_id,
                        job_number=job.job_number,
                        status=job.status.value,
                        revision=0,
                        document=job_to_document(job),
                        created_at=job.created_at,
                        updated_at=now,
                    )
                )
        except sa.exc.IntegrityError as exc:
            logger.warning("Rejected duplicate job %s (%s)", job.job_id, job.job_number)
            raise DuplicateJobError(job.job_id, job.job_number) from exc
        return replace(job, revision=0)

    def save(self, job: Job, expected_status: JobStatus) -> Job:
        """Write ``job`` only if the stored row is still in ``expected_status``
        at the revision ``job`` was read from.

        Returns the job carrying its new revision.
        """

        stmt = (
            jobs.update()
            .where(
                jobs.c.job_id == job.job_id,
                jobs.c.status == expected_status.value,
                jobs.c.revision == job.revision,
            )
            .values(
                status=job.status.value,
                revision=job.revision + 1,
                document=job_to_document(job),
                updated_at=_now(),
            )
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 1:
                return replace(job, revision=job.revision + 1)
            current = conn.execute(
                sa.select(jobs.c.status, jobs.c.revision).where(jobs.c.job_id == job.job_id)
            ).fetchone()
        if current is None:
            raise JobNotFoundError(f"Job {job.job_id} not found")
        actual = JobStatus.parse(current[0])
        logger.warning(
            "Rejected stale write for job %s: expected %s at revision %s, found %s at revision %s",
            job.job_id,
            expected_status.value,
            job.revision,
            actual.value,
            current[1],
        )
        raise StaleJobError(job.job_id, expected_status, actual)

    def next_job_number(self) -> str:
        with self._engine.connect() as conn:
            count = conn.execute(sa.select(sa.func.count()).select_from(jobs)).scalar_one()
        return f"JOB-{int(count) + 1:05d}"


class SqlMasterDataRepo:
    """Read access to customer, machine and technician master records."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _record(self, table: sa.Table, key: sa.Column, value: str) -> Mapping[str, Any] | None:
        with self._engine.connect() as conn:
            row = conn.execute(sa.select(table.c.record).where(key == value)).fetchone()
        return row[0] if row else None

    def customer(self, customer_id: str) -> Mapping[str, Any] | None:
        return self._record(customers, customers.c.customer_id, customer_id)

    def machine(self, machine_id: str) -> Mapping[str, Any] | None:
        return self._record(machines, machines.c.machine_id, machine_id)

    def technician(self, user_id: str) -> Mapping[str, Any] | None:
        return self._record(technicians, technicians.c.user_id, user_id)

    def add_customer(self, customer_id: str, record: Mapping[str, Any]) -> None:
        with self._engine.begin() as conn:
            conn.execute(customers.insert().values(customer_id=customer_id, record=dict(record)))

    def add_machine(self, machine_id: str, record: Mapping[str, Any]) -> None:
        with self._engine.begin() as conn:
            conn.execute(machines.insert().values(machine_id=machine_id, record=dict(record)))

    def add_technician(self, user_id: str, record: Mapping[str, Any]) -> None:
        with self._engine.begin() as conn:
            conn.execute(technicians.insert().values(user_id=user_id, record=dict(record)))


__all__ = ["SqlJobsRepo", "SqlMasterDataRepo"]
