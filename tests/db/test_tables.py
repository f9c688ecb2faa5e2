"""Tests for SQLAlchemy ORM tables — intellayer/db/tables.py.

Tests verify:
- All three tables are created
- FlexJSON round-trips config blobs
- At most one ACTIVE version per (process, environment)
- (process_id, version_number) and cache keys are unique
- Timestamps come back timezone-aware on SQLite
"""

from datetime import timezone

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.db.tables import ProcessRow, ProcessVersionRow, ResponseCacheRow
from intellayer.models.common import new_uuid7, utc_now


def _process(process_id: str = "proc-1") -> ProcessRow:
    return ProcessRow(process_id=process_id, tenant_id="tenant-a", name="P", created_at=utc_now())


def _version(number: int, environment: str = "SANDBOX", status: str = "ACTIVE",
             process_id: str = "proc-1") -> ProcessVersionRow:
    return ProcessVersionRow(
        version_id=new_uuid7(), process_id=process_id, version_number=number,
        config={"temperature": 0.5, "nested": {"k": [1, 2]}},
        environment=environment, status=status, created_at=utc_now(),
    )


class TestSchema:
    @pytest.mark.anyio
    async def test_tables_created(self, db_engine) -> None:
        async with db_engine.connect() as conn:
            names = await conn.run_sync(lambda c: inspect(c).get_table_names())
        assert {"processes", "process_versions", "response_cache"} <= set(names)

    @pytest.mark.anyio
    async def test_config_round_trip_and_aware_timestamps(self, session_factory) -> None:
        async with session_factory() as session:
            session.add(_process())
            await session.flush()
            row = _version(1)
            session.add(row)
            await session.commit()
            version_id = row.version_id

        async with session_factory() as session:
            fetched = (await session.execute(
                select(ProcessVersionRow).where(ProcessVersionRow.version_id == version_id)
            )).scalar_one()
            assert fetched.config == {"temperature": 0.5, "nested": {"k": [1, 2]}}
            assert fetched.created_at.tzinfo is not None
            assert fetched.created_at.utcoffset() == timezone.utc.utcoffset(None)


class TestConstraints:
    @pytest.mark.anyio
    async def test_one_active_per_environment(self, session_factory) -> None:
        async with session_factory() as session:
            session.add(_process())
            await session.flush()
            session.add(_version(1, "SANDBOX", "ACTIVE"))
            await session.flush()
            session.add(_version(2, "SANDBOX", "ACTIVE"))
            with pytest.raises(IntegrityError):
                await session.flush()
            await session.rollback()

    @pytest.mark.anyio
    async def test_active_rows_in_both_environments_allowed(self, db_session: AsyncSession) -> None:
        db_session.add(_process())
        await db_session.flush()
        db_session.add_all([
            _version(1, "SANDBOX", "DEPRECATED"),
            _version(2, "SANDBOX", "DEPRECATED"),
            _version(3, "PRODUCTION", "ACTIVE"),
            _version(4, "SANDBOX", "ACTIVE"),
        ])
        await db_session.flush()

    @pytest.mark.anyio
    async def test_version_number_unique_per_process(self, session_factory) -> None:
        async with session_factory() as session:
            session.add_all([_process("proc-1"), _process("proc-2")])
            await session.flush()
            session.add(_version(1, process_id="proc-2"))
            session.add(_version(1, "PRODUCTION", process_id="proc-1"))
            await session.flush()
            session.add(_version(1, "SANDBOX", "DEPRECATED", process_id="proc-1"))
            with pytest.raises(IntegrityError):
                await session.flush()
            await session.rollback()

    @pytest.mark.anyio
    async def test_cache_key_unique(self, session_factory) -> None:
        def entry() -> ResponseCacheRow:
            now = utc_now()
            return ResponseCacheRow(
                cache_id=new_uuid7(), tenant_id="t", process_id="p", fingerprint="fp",
                version_number=1, payload={}, cached_at=now, expires_at=now,
            )

        async with session_factory() as session:
            session.add(entry())
            await session.flush()
            session.add(entry())
            with pytest.raises(IntegrityError):
                await session.flush()
            await session.rollback()
