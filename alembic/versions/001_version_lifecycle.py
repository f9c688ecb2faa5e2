"""Processes, process versions and response cache.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite dev databases).
FLEX_JSON = sa.JSON().with_variant(JSONB(), "postgresql")

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "processes",
        sa.Column("process_id", sa.String(64), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_processes_tenant_id", "processes", ["tenant_id"])

    # -- Versions (APPEND-ONLY apart from status / deprecated_at) --
    op.create_table(
        "process_versions",
        sa.Column("version_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "process_id", sa.String(64),
            sa.ForeignKey("processes.process_id"), nullable=False,
        ),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("config", FLEX_JSON, nullable=False),
        sa.Column("environment", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("change_notes", sa.Text, nullable=True),
        sa.Column("promoted_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deprecated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "process_id", "version_number", name="uq_process_versions_number",
        ),
    )
    op.create_index(
        "uq_process_versions_one_active",
        "process_versions",
        ["process_id", "environment"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )
    op.create_index(
        "ix_process_versions_process_env",
        "process_versions",
        ["process_id", "environment"],
    )

    op.create_table(
        "response_cache",
        sa.Column("cache_id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("process_id", sa.String(64), nullable=False),
        sa.Column("fingerprint", sa.String(64), nullable=False),
        sa.Column("version_number", sa.Integer, nullable=False),
        sa.Column("payload", FLEX_JSON, nullable=False),
        sa.Column("cached_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "tenant_id", "process_id", "fingerprint", name="uq_response_cache_key",
        ),
    )
    op.create_index("ix_response_cache_process_id", "response_cache", ["process_id"])
    op.create_index("ix_response_cache_expires_at", "response_cache", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_response_cache_expires_at", table_name="response_cache")
    op.drop_index("ix_response_cache_process_id", table_name="response_cache")
    op.drop_table("response_cache")
    op.drop_index("ix_process_versions_process_env", table_name="process_versions")
    op.drop_index("uq_process_versions_one_active", table_name="process_versions")
    op.drop_table("process_versions")
    op.drop_index("ix_processes_tenant_id", table_name="processes")
    op.drop_table("processes")
