"""Sandbox-to-production promotion.

Promotion copies the ACTIVE sandbox config into a new, higher-numbered
PRODUCTION version, deprecates the production version it replaces and
wipes the process's response cache, all in one transaction. The sandbox
source stays ACTIVE in SANDBOX.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from intellayer.db.tables import ProcessVersionRow
from intellayer.models.common import AuditAction, Environment, VersionStatus
from intellayer.models.version import ProcessVersion, PromotionResult
from intellayer.versioning.diff import VersionDiff, compare_versions
from intellayer.versioning.errors import NotActiveVersionError, NotSandboxVersionError
from intellayer.versioning.lifecycle import LifecycleService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionPreview:
    """What a promotion would do; shown before the operator confirms."""

    source: ProcessVersion
    current_production: ProcessVersion | None
    cache_entry_count: int
    diff: VersionDiff


def _check_promotable(row: ProcessVersionRow) -> None:
    if row.environment != Environment.SANDBOX.value:
        raise NotSandboxVersionError(row.version_number)
    if row.status != VersionStatus.ACTIVE.value:
        raise NotActiveVersionError(row.version_number, row.status)


class PromotionService(LifecycleService):
    operation = "promotion"

    async def promote(
        self,
        process_id: str,
        tenant_id: str,
        source_version_id: UUID,
        change_notes: str | None = None,
        actor_id: str | None = None,
    ) -> PromotionResult:
        """Promote the ACTIVE sandbox version to production.

        Raises:
            ProcessNotFoundError: Process absent or another tenant's.
            VersionNotFoundError: Source not in this process.
            NotSandboxVersionError: Source is a production version.
            NotActiveVersionError: Source is DRAFT or DEPRECATED.
            VersionConflictError: A concurrent promotion won.
        """
        await self._lock_process(process_id, tenant_id)
        source = await self._require_version(source_version_id, process_id, tenant_id)
        _check_promotable(source)

        now = self._clock()
        promoted, deprecated = await self._supersede(
            process_id,
            Environment.PRODUCTION,
            source.config,
            change_notes=change_notes,
            promoted_by=actor_id,
            now=now,
        )
        invalidated = await self._cache.invalidate_all(process_id)

        logger.info(
            "Promoted process %s sandbox v%d to production v%d (deprecated v%s)",
            process_id, source.version_number, promoted.version_number,
            deprecated.version_number if deprecated else None,
        )
        self._audit_after_commit(
            AuditAction.VERSION_PROMOTED,
            tenant_id=tenant_id,
            entity_type="processVersion",
            entity_id=str(promoted.version_id),
            actor_id=actor_id,
            process_id=process_id,
            from_version_id=str(source.version_id),
            from_version=source.version_number,
            to_version=promoted.version_number,
            deprecated_version_id=str(deprecated.version_id) if deprecated else None,
            change_notes=change_notes,
            cache_invalidated=invalidated,
        )

        return PromotionResult(
            promoted=ProcessVersion.model_validate(promoted),
            deprecated=ProcessVersion.model_validate(deprecated) if deprecated else None,
            source_version_id=source.version_id,
            cache_invalidated=invalidated,
        )

    async def preview(
        self,
        process_id: str,
        tenant_id: str,
        source_version_id: UUID,
    ) -> PromotionPreview:
        """Read-only dry run of promote(); same precondition errors."""
        source = await self._require_version(source_version_id, process_id, tenant_id)
        _check_promotable(source)

        current = await self._versions.get_active(process_id, Environment.PRODUCTION)
        source_model = ProcessVersion.model_validate(source)
        current_model = ProcessVersion.model_validate(current) if current else None
        return PromotionPreview(
            source=source_model,
            current_production=current_model,
            cache_entry_count=await self._cache.count(process_id),
            diff=compare_versions(source_model, current_model),
        )
