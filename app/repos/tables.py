"""SQLAlchemy Core table definitions shared by repositories and migrations."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()

jobs = sa.Table(
    "jobs",
    metadata,
    sa.Column("job_id", sa.String(64), primary_key=True),
    sa.Column("job_number", sa.String(32), nullable=False, unique=True),
    sa.Column("status", sa.String(32), nullable=False, index=True),
    sa.Column("revision", sa.Integer(), nullable=False, default=0),
    sa.Column("document", sa.JSON(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

customers = sa.Table(
    "customers",
    metadata,
    sa.Column("customer_id", sa.String(64), primary_key=True),
    sa.Column("record", sa.JSON(), nullable=False),
)

machines = sa.Table(
    "machines",
    metadata,
    sa.Column("machine_id", sa.String(64), primary_key=True),
    sa.Column("record", sa.JSON(), nullable=False),
)

technicians = sa.Table(
    "technicians",
    metadata,
    sa.Column("user_id", sa.String(64), primary_key=True),
    sa.Column("record", sa.JSON(), nullable=False),
)


__all__ = ["metadata", "jobs", "customers", "machines", "technicians"]
