"""Sandbox rollback.

Rolling back never rewrites history: it creates a new SANDBOX version
carrying the target's config. PRODUCTION is never touched; a rolled-back
config reaches production only through a later promotion.
"""

import logging
from uuid import UUID

from intellayer.models.common import AuditAction, Environment, VersionStatus
from intellayer.models.version import ProcessVersion, RollbackResult
from intellayer.versioning.errors import CannotRollbackToCurrentSandboxError
from intellayer.versioning.lifecycle import LifecycleService

logger = logging.getLogger(__name__)


def default_rollback_notes(version_number: int) -> str:
    return f"Restored from version {version_number}"


class RollbackService(LifecycleService):
    operation = "rollback"

    async def rollback(
        self,
        process_id: str,
        tenant_id: str,
        target_version_id: UUID,
        change_notes: str | None = None,
        actor_id: str | None = None,
    ) -> RollbackResult:
        """Restore ``target_version_id``'s config as the new sandbox version.

        The target may be any version of the process, in either environment
        and any status, except the current ACTIVE sandbox version.

        Raises:
            ProcessNotFoundError: Process absent or another tenant's.
            VersionNotFoundError: Target not in this process.
            CannotRollbackToCurrentSandboxError: Target is already live in sandbox.
            VersionConflictError: A concurrent change won.
        """
        await self._lock_process(process_id, tenant_id)
        target = await self._require_version(target_version_id, process_id, tenant_id)
        if (
            target.environment == Environment.SANDBOX.value
            and target.status == VersionStatus.ACTIVE.value
        ):
            raise CannotRollbackToCurrentSandboxError(target.version_number)

        notes = change_notes or default_rollback_notes(target.version_number)
        created, deprecated = await self._supersede(
            process_id,
            Environment.SANDBOX,
            target.config,
            change_notes=notes,
            promoted_by=actor_id,
            now=self._clock(),
        )
        invalidated = await self._cache.invalidate_all(process_id)

        logger.info(
            "Rolled back process %s sandbox to v%d as v%d",
            process_id, target.version_number, created.version_number,
        )
        self._audit_after_commit(
            AuditAction.VERSION_ROLLED_BACK,
            tenant_id=tenant_id,
            entity_type="processVersion",
            entity_id=str(created.version_id),
            actor_id=actor_id,
            process_id=process_id,
            source_version_id=str(target.version_id),
            source_version=target.version_number,
            new_version=created.version_number,
            deprecated_version_id=str(deprecated.version_id) if deprecated else None,
            change_notes=notes,
        )

        return RollbackResult(
            created=ProcessVersion.model_validate(created),
            source=ProcessVersion.model_validate(target),
            deprecated=ProcessVersion.model_validate(deprecated) if deprecated else None,
            cache_invalidated=invalidated,
        )
