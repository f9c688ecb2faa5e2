"""Process creation and sandbox publishing.

Saving a configuration auto-publishes it: the new config becomes the
ACTIVE sandbox version and the previous one is deprecated. Production
only changes through promotion.
"""

import logging
from typing import Any

from intellayer.db.tables import ProcessRow
from intellayer.models.common import AuditAction, Environment, new_process_id
from intellayer.models.version import ProcessVersion
from intellayer.versioning.lifecycle import LifecycleService

logger = logging.getLogger(__name__)

INITIAL_CHANGE_NOTES = "Initial version"


class PublishingService(LifecycleService):
    operation = "publish"

    async def create_process(
        self,
        tenant_id: str,
        name: str,
        config: dict[str, Any],
        description: str = "",
        actor_id: str | None = None,
    ) -> tuple[ProcessRow, ProcessVersion]:
        """Create a process with ACTIVE sandbox version 1."""
        now = self._clock()
        process = await self._processes.create(
            process_id=new_process_id(),
            tenant_id=tenant_id,
            name=name,
            description=description,
            created_at=now,
        )
        created, _ = await self._supersede(
            process.process_id,
            Environment.SANDBOX,
            config,
            change_notes=INITIAL_CHANGE_NOTES,
            promoted_by=actor_id,
            now=now,
        )

        logger.info("Created process %s for tenant %s", process.process_id, tenant_id)
        self._audit_after_commit(
            AuditAction.PROCESS_CREATED,
            tenant_id=tenant_id,
            entity_type="process",
            entity_id=process.process_id,
            actor_id=actor_id,
            name=name,
            version_id=str(created.version_id),
        )
        return process, ProcessVersion.model_validate(created)

    async def publish_sandbox(
        self,
        process_id: str,
        tenant_id: str,
        config: dict[str, Any],
        change_notes: str | None = None,
        actor_id: str | None = None,
    ) -> ProcessVersion:
        """Save ``config`` as the next ACTIVE sandbox version.

        Cached responses are left alone: they carry the old version number
        and stop matching as soon as the new version resolves.

        Raises:
            ProcessNotFoundError: Process absent or another tenant's.
            VersionConflictError: A concurrent change won.
        """
        await self._lock_process(process_id, tenant_id)
        created, deprecated = await self._supersede(
            process_id,
            Environment.SANDBOX,
            config,
            change_notes=change_notes,
            promoted_by=actor_id,
            now=self._clock(),
        )

        logger.info(
            "Published sandbox v%d for process %s", created.version_number, process_id,
        )
        self._audit_after_commit(
            AuditAction.VERSION_PUBLISHED,
            tenant_id=tenant_id,
            entity_type="processVersion",
            entity_id=str(created.version_id),
            actor_id=actor_id,
            process_id=process_id,
            version=created.version_number,
            deprecated_version_id=str(deprecated.version_id) if deprecated else None,
            change_notes=change_notes,
        )
        return ProcessVersion.model_validate(created)
