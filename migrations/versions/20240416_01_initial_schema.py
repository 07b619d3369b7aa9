"""Initial schema for fleet repair jobs."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20240416_01"
down_revision = None
branch_labels = None
depends_on = None


def create_timestamp_trigger() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION set_updated_at()
        RETURNS trigger AS $$
        BEGIN
            NEW.updated_at = timezone('utc', now());
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )


def drop_timestamp_trigger() -> None:
    op.execute("DROP FUNCTION IF EXISTS set_updated_at() CASCADE;")


def _master_table(name: str, key: str) -> None:
    op.create_table(
        name,
        sa.Column(key, sa.String(64), primary_key=True),
        sa.Column("record", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    )


def upgrade() -> None:
    create_timestamp_trigger()

    _master_table("customers", "customer_id")
    _master_table("machines", "machine_id")
    _master_table("technicians", "user_id")

    op.create_table(
        "jobs",
        sa.Column("job_id", sa.String(64), primary_key=True),
        sa.Column("job_number", sa.String(32), nullable=False, unique=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("document", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("timezone('utc', now())"),
        ),
    )
    op.create_index("ix_jobs_status", "jobs", ["status"])
    op.create_index("ix_jobs_created_at", "jobs", ["created_at"])
    op.execute(
        """
        CREATE TRIGGER jobs_set_updated_at
        BEFORE UPDATE ON jobs
        FOR EACH ROW EXECUTE FUNCTION set_updated_at();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS jobs_set_updated_at ON jobs;")
    op.drop_index("ix_jobs_created_at", table_name="jobs")
    op.drop_index("ix_jobs_status", table_name="jobs")
    op.drop_table("jobs")
    op.drop_table("technicians")
    op.drop_table("machines")
    op.drop_table("customers")
    drop_timestamp_trigger()
