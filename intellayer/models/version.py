"""Process version domain models.

ProcessVersion mirrors a process_versions row. Rows are append-only: a
configuration change always creates a new version, and only status and
deprecated_at are ever mutated after creation.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from intellayer.models.common import (
    Environment,
    IntelLayerBase,
    UTCTimestamp,
    UUIDv7,
    VersionStatus,
    new_uuid7,
    utc_now,
)


class ProcessConfig(IntelLayerBase):
    """Known fields of a version's configuration blob.

    The stored config is opaque JSON; this model only gives typed access
    to the fields the serving path reads. Unknown keys are preserved.
    """

    model_config = {**IntelLayerBase.model_config, "extra": "allow"}

    system_prompt: str = Field(default="", alias="systemPrompt")
    additional_instructions: str | None = Field(default=None, alias="additionalInstructions")
    max_tokens: int = Field(default=1024, gt=0, alias="maxTokens")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    goal: str = ""
    cache_ttl_seconds: int | None = Field(default=None, ge=0, alias="cacheTtlSeconds")
    cache_enabled: bool = Field(default=True, alias="cacheEnabled")


class ProcessVersion(IntelLayerBase, frozen=True):
    """Immutable view of one configuration revision of a process."""

    version_id: UUIDv7 = Field(default_factory=new_uuid7)
    process_id: str
    version_number: int = Field(..., ge=1)
    config: dict[str, Any]
    environment: Environment
    status: VersionStatus
    change_notes: str | None = None
    promoted_by: str | None = None
    created_at: UTCTimestamp = Field(default_factory=utc_now)
    published_at: datetime | None = None
    deprecated_at: datetime | None = None


class ResolvedVersion(IntelLayerBase, frozen=True):
    """Outcome of resolving a request to exactly one version."""

    version: ProcessVersion
    is_deprecated: bool = False
    sunset_at: datetime | None = None
    latest_version_number: int


class VersionsByEnvironment(IntelLayerBase, frozen=True):
    """Current ACTIVE pointer per environment plus full history (newest first)."""

    sandbox: ProcessVersion | None = None
    production: ProcessVersion | None = None
    all_versions: list[ProcessVersion] = Field(default_factory=list)


class PromotionResult(IntelLayerBase, frozen=True):
    promoted: ProcessVersion
    deprecated: ProcessVersion | None = None
    source_version_id: UUID
    cache_invalidated: int = 0


class RollbackResult(IntelLayerBase, frozen=True):
    created: ProcessVersion
    source: ProcessVersion
    deprecated: ProcessVersion | None = None
    cache_invalidated: int = 0
