"""Response cache repository.

Rows are keyed by (tenant_id, process_id, fingerprint); writes are a
single INSERT ... ON CONFLICT DO UPDATE.
Expiry and version checks live in ResponseCacheStore, not here.
"""

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.db.tables import ResponseCacheRow
from intellayer.models.common import new_uuid7

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ResponseCacheRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, tenant_id: str, process_id: str,
                  fingerprint: str) -> ResponseCacheRow | None:
        result = await self._session.execute(
            select(ResponseCacheRow).where(
                ResponseCacheRow.tenant_id == tenant_id,
                ResponseCacheRow.process_id == process_id,
                ResponseCacheRow.fingerprint == fingerprint,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, *, tenant_id: str, process_id: str, fingerprint: str,
                     payload: dict, version_number: int,
                     cached_at: datetime, expires_at: datetime) -> ResponseCacheRow:
        """Insert or replace the entry in one statement.

        Concurrent writers for the same key never hit the unique
        constraint; the last write wins.
        """
        dialect = self._session.get_bind().dialect.name
        try:
            insert = _DIALECT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Cache upsert is not supported on {dialect}") from None

        stmt = insert(ResponseCacheRow).values(
            cache_id=new_uuid7(),
            tenant_id=tenant_id, process_id=process_id, fingerprint=fingerprint,
            payload=payload, version_number=version_number,
            cached_at=cached_at, expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "process_id", "fingerprint"],
            set_={
                "payload": stmt.excluded.payload,
                "version_number": stmt.excluded.version_number,
                "cached_at": stmt.excluded.cached_at,
                "expires_at": stmt.excluded.expires_at,
            },
        ).returning(ResponseCacheRow)

        result = await self._session.execute(
            select(ResponseCacheRow)
            .from_statement(stmt)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def delete_for_process(self, process_id: str) -> int:
        result = await self._session.execute(
            delete(ResponseCacheRow)
            .where(ResponseCacheRow.process_id == process_id)
        )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        result = await self._session.execute(
            delete(ResponseCacheRow)
            .where(ResponseCacheRow.expires_at <= now)
        )
        return result.rowcount or 0

    async def count_for_process(self, process_id: str) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(ResponseCacheRow)
            .where(ResponseCacheRow.process_id == process_id)
        )
        return int(result.scalar_one())
