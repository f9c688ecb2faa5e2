"""Shared plumbing for services that mutate a process's version set.

Mutations run inside the caller's unit of work: services add and flush,
the session dependency commits. Each mutation first locks the process row
so two lifecycle changes on one process serialize; the partial unique
index on ACTIVE rows is the backstop, and its violation surfaces as
VersionConflictError.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.audit.trail import AuditEvent, AuditTrail, get_audit_trail
from intellayer.cache.store import ResponseCacheStore
from intellayer.db.tables import ProcessRow, ProcessVersionRow
from intellayer.models.common import AuditAction, Environment, VersionStatus, utc_now
from intellayer.repositories.versions import ProcessRepository, ProcessVersionRepository
from intellayer.versioning.errors import (
    ProcessNotFoundError,
    VersionConflictError,
    VersionNotFoundError,
)

logger = logging.getLogger(__name__)


class LifecycleService:
    """Base for publishing, promotion and rollback."""

    operation = "version change"

    def __init__(
        self,
        session: AsyncSession,
        *,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session = session
        self._processes = ProcessRepository(session)
        self._versions = ProcessVersionRepository(session)
        self._cache = ResponseCacheStore(session, clock=clock)
        self._audit = audit or get_audit_trail()
        self._clock = clock

    async def _lock_process(self, process_id: str, tenant_id: str) -> ProcessRow:
        process = await self._processes.lock_for_tenant(process_id, tenant_id)
        if process is None:
            raise ProcessNotFoundError(process_id)
        return process

    async def _require_version(self, version_id, process_id: str,
                               tenant_id: str) -> ProcessVersionRow:
        row = await self._versions.get_for_tenant(version_id, process_id, tenant_id)
        if row is None:
            raise VersionNotFoundError()
        return row

    async def _supersede(self, process_id: str, environment: Environment,
                         config: dict[str, Any], *,
                         change_notes: str | None,
                         promoted_by: str | None,
                         now: datetime) -> tuple[ProcessVersionRow, ProcessVersionRow | None]:
        """Deprecate the environment's ACTIVE row and create its successor.

        Returns (created, deprecated). The deprecation is flushed before the
        insert so the one-ACTIVE index never sees two ACTIVE rows.
        """
        try:
            current = await self._versions.get_active(process_id, environment)
            deprecated = None
            if current is not None:
                deprecated = await self._versions.deprecate(current, now)

            created = await self._versions.create(
                process_id=process_id,
                version_number=await self._versions.next_version_number(process_id),
                config=dict(config),
                environment=environment.value,
                status=VersionStatus.ACTIVE.value,
                change_notes=change_notes,
                promoted_by=promoted_by,
                created_at=now,
                published_at=now,
            )
        except IntegrityError as exc:
            logger.warning(
                "Concurrent %s on process %s lost the race: %s",
                self.operation, process_id, exc.orig,
            )
            raise VersionConflictError(process_id, self.operation) from exc
        return created, deprecated

    def _audit_after_commit(self, action: AuditAction, *, tenant_id: str,
                            entity_type: str, entity_id: str,
                            actor_id: str | None, **metadata: Any) -> None:
        self._audit.publish_after_commit(
            self._session,
            AuditEvent(
                action=action,
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=actor_id,
                metadata=metadata,
                occurred_at=self._clock(),
            ),
        )
