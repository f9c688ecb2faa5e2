"""Process and process-version repositories (the version store).

Repositories call add()/flush() only, never commit(). Every read that
starts from a request is scoped by tenant through the owning process.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.db.tables import ProcessRow, ProcessVersionRow
from intellayer.models.common import (
    SERVABLE_STATUSES,
    Environment,
    VersionStatus,
    new_uuid7,
    utc_now,
)


class ProcessRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, process_id: str, tenant_id: str, name: str,
                     description: str = "",
                     created_at: datetime | None = None) -> ProcessRow:
        row = ProcessRow(
            process_id=process_id, tenant_id=tenant_id, name=name,
            description=description, created_at=created_at or utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get_for_tenant(self, process_id: str, tenant_id: str) -> ProcessRow | None:
        """Live process owned by tenant; other tenants' processes look absent."""
        result = await self._session.execute(
            select(ProcessRow).where(
                ProcessRow.process_id == process_id,
                ProcessRow.tenant_id == tenant_id,
                ProcessRow.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def lock_for_tenant(self, process_id: str, tenant_id: str) -> ProcessRow | None:
        """Same as get_for_tenant but takes a row lock (FOR UPDATE).

        Serializes lifecycle changes per process. SQLite ignores the
        clause; its single-writer model gives the same effect.
        """
        result = await self._session.execute(
            select(ProcessRow)
            .where(
                ProcessRow.process_id == process_id,
                ProcessRow.tenant_id == tenant_id,
                ProcessRow.deleted_at.is_(None),
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def soft_delete(self, process_id: str, tenant_id: str) -> ProcessRow | None:
        row = await self.get_for_tenant(process_id, tenant_id)
        if row is not None:
            row.deleted_at = utc_now()
            await self._session.flush()
        return row


class ProcessVersionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, process_id: str, version_number: int, config: dict,
                     environment: str, status: str,
                     change_notes: str | None = None,
                     promoted_by: str | None = None,
                     created_at: datetime | None = None,
                     published_at: datetime | None = None,
                     version_id: UUID | None = None) -> ProcessVersionRow:
        row = ProcessVersionRow(
            version_id=version_id or new_uuid7(),
            process_id=process_id, version_number=version_number,
            config=config, environment=environment, status=status,
            change_notes=change_notes, promoted_by=promoted_by,
            created_at=created_at or utc_now(),
            published_at=published_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get_for_tenant(self, version_id: UUID, process_id: str,
                             tenant_id: str) -> ProcessVersionRow | None:
        result = await self._session.execute(
            select(ProcessVersionRow)
            .join(ProcessRow, ProcessRow.process_id == ProcessVersionRow.process_id)
            .where(
                ProcessVersionRow.version_id == version_id,
                ProcessVersionRow.process_id == process_id,
                ProcessRow.tenant_id == tenant_id,
                ProcessRow.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_number(self, process_id: str, tenant_id: str,
                            version_number: int) -> ProcessVersionRow | None:
        result = await self._session.execute(
            select(ProcessVersionRow)
            .join(ProcessRow, ProcessRow.process_id == ProcessVersionRow.process_id)
            .where(
                ProcessVersionRow.process_id == process_id,
                ProcessVersionRow.version_number == version_number,
                ProcessRow.tenant_id == tenant_id,
                ProcessRow.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_active(self, process_id: str, environment: Environment,
                         tenant_id: str | None = None) -> ProcessVersionRow | None:
        stmt = select(ProcessVersionRow).where(
            ProcessVersionRow.process_id == process_id,
            ProcessVersionRow.environment == environment.value,
            ProcessVersionRow.status == VersionStatus.ACTIVE.value,
        )
        if tenant_id is not None:
            stmt = stmt.join(
                ProcessRow, ProcessRow.process_id == ProcessVersionRow.process_id
            ).where(
                ProcessRow.tenant_id == tenant_id,
                ProcessRow.deleted_at.is_(None),
            )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_process(self, process_id: str) -> list[ProcessVersionRow]:
        """Full history, newest first."""
        result = await self._session.execute(
            select(ProcessVersionRow)
            .where(ProcessVersionRow.process_id == process_id)
            .order_by(ProcessVersionRow.version_number.desc())
        )
        return list(result.scalars().all())

    async def servable_numbers(self, process_id: str,
                               environment: Environment) -> list[int]:
        """Version numbers a caller may pin in this environment, ascending."""
        result = await self._session.execute(
            select(ProcessVersionRow.version_number)
            .where(
                ProcessVersionRow.process_id == process_id,
                ProcessVersionRow.environment == environment.value,
                ProcessVersionRow.status.in_([s.value for s in SERVABLE_STATUSES]),
            )
            .order_by(ProcessVersionRow.version_number.asc())
        )
        return list(result.scalars().all())

    async def next_version_number(self, process_id: str) -> int:
        """max(version_number) + 1 across all environments and statuses."""
        result = await self._session.execute(
            select(func.max(ProcessVersionRow.version_number))
            .where(ProcessVersionRow.process_id == process_id)
        )
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def deprecate(self, row: ProcessVersionRow, at: datetime) -> ProcessVersionRow:
        """Move an ACTIVE row to DEPRECATED. Only status and deprecated_at change."""
        row.status = VersionStatus.DEPRECATED.value
        row.deprecated_at = at
        await self._session.flush()
        return row

    async def count_active(self, process_id: str, environment: Environment) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(ProcessVersionRow)
            .where(
                ProcessVersionRow.process_id == process_id,
                ProcessVersionRow.environment == environment.value,
                ProcessVersionRow.status == VersionStatus.ACTIVE.value,
            )
        )
        return int(result.scalar_one())
