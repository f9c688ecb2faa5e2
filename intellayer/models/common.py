"""Shared types, enums, and base models used across Intelligence Layer domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


def new_process_id() -> str:
    """Process ids are opaque strings; v7 text keeps them time-sortable."""
    return str(uuid7())


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Shared enums ---


class Environment(StrEnum):
    """Serving environment of a version and of an API key."""

    SANDBOX = "SANDBOX"
    PRODUCTION = "PRODUCTION"


class VersionStatus(StrEnum):
    """Lifecycle status of a process version.

    Only ACTIVE and DEPRECATED versions are servable. DEPRECATED is
    terminal; deprecation never deletes a version.
    """

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    DEPRECATED = "DEPRECATED"


SERVABLE_STATUSES = frozenset({VersionStatus.ACTIVE, VersionStatus.DEPRECATED})


class AuditAction(StrEnum):
    """Audit actions emitted by the version lifecycle."""

    PROCESS_CREATED = "process.created"
    VERSION_PUBLISHED = "processVersion.published"
    VERSION_PROMOTED = "processVersion.promoted"
    VERSION_ROLLED_BACK = "processVersion.rollback"


# --- Base model ---


class IntelLayerBase(BaseModel):
    """Base model with common configuration for all Intelligence Layer Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
        "protected_namespaces": (),
    }
