import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent.parent
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from fleet_core.lifecycle import new_job  # noqa: E402
from fleet_core.resolver import UNASSIGNED, LinkedReference  # noqa: E402


@pytest.fixture()
def make_job():
    """Factory for Intake-stage jobs linked to customer c-1 and machine m-1."""

    def _make(
        job_id="j-1",
        job_number="J-1",
        customer=None,
        machine=None,
        technician=UNASSIGNED,
        created_at=None,
    ):
        return new_job(
            job_id,
            job_number,
            customer or LinkedReference("c-1"),
            machine or LinkedReference("m-1"),
            technician,
            created_at=created_at or datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture()
def jobs_test_engine(monkeypatch):
    """Provide an in-memory SQLite engine patched into the jobs service."""

    from app.repos.tables import metadata
    from app.services import jobs as jobs_service

    engine = sa.create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    monkeypatch.setattr(jobs_service, "_engine", lambda: engine)
    try:
        yield engine
    finally:
        engine.dispose()
