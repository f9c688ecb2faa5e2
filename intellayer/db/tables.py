"""SQLAlchemy ORM table models for the Intelligence Layer.

Uses FlexJSON (JSONB on Postgres, JSON on SQLite) for configuration blobs
and cached payloads.

Categories:
- APPEND-ONLY: ProcessVersionRow (only status / deprecated_at ever change)
- OPERATIONAL: ProcessRow (soft delete), ResponseCacheRow (upsert, bulk delete)
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from intellayer.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that always comes back as UTC.

    SQLite drops tzinfo on the way out; re-attach it so comparisons
    against utc_now() never mix naive and aware values.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


# ---------------------------------------------------------------------------
# Processes — OPERATIONAL
# ---------------------------------------------------------------------------


class ProcessRow(Base):
    """A tenant's logical intelligence definition; parent of versions."""

    __tablename__ = "processes"
    __table_args__ = (
        Index("ix_processes_tenant_id", "tenant_id"),
    )

    process_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Versions — APPEND-ONLY (status / deprecated_at are the only mutable columns)
# ---------------------------------------------------------------------------


class ProcessVersionRow(Base):
    """One configuration revision of a process.

    The partial unique index allows at most one ACTIVE row per
    (process_id, environment).
    """

    __tablename__ = "process_versions"
    __table_args__ = (
        UniqueConstraint("process_id", "version_number", name="uq_process_versions_number"),
        Index(
            "uq_process_versions_one_active",
            "process_id",
            "environment",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_process_versions_process_env", "process_id", "environment"),
    )

    version_id: Mapped[UUID] = mapped_column(primary_key=True)
    process_id: Mapped[str] = mapped_column(
        ForeignKey("processes.process_id"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    config = mapped_column(FlexJSON, nullable=False)
    environment: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    change_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    promoted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deprecated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Response cache — OPERATIONAL
# ---------------------------------------------------------------------------


class ResponseCacheRow(Base):
    """Memoized response for one exact validated input."""

    __tablename__ = "response_cache"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "process_id", "fingerprint", name="uq_response_cache_key",
        ),
        Index("ix_response_cache_process_id", "process_id"),
        Index("ix_response_cache_expires_at", "expires_at"),
    )

    cache_id: Mapped[UUID] = mapped_column(primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    process_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    payload = mapped_column(FlexJSON, nullable=False)
    cached_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
