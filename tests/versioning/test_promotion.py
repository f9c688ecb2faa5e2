"""Tests for PromotionService — promote, preview, cache wipe, conflicts, audit."""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.audit.trail import AuditTrail, MemoryAuditSink
from intellayer.cache.store import ResponseCacheStore
from intellayer.models.common import AuditAction, Environment, VersionStatus
from intellayer.repositories.versions import ProcessVersionRepository
from intellayer.versioning.errors import (
    NotActiveVersionError,
    NotSandboxVersionError,
    ProcessNotFoundError,
    VersionConflictError,
    VersionNotFoundError,
)
from intellayer.versioning.promotion import PromotionService
from intellayer.versioning.publishing import PublishingService
from intellayer.versioning.resolver import VersionResolver

PROD = Environment.PRODUCTION.value
SANDBOX = Environment.SANDBOX.value


@pytest.fixture
async def prod_and_sandbox(seed_versions):
    """PRODUCTION v1 {temperature 0.7} and SANDBOX v2 {temperature 0.9}."""
    return await seed_versions([
        (1, PROD, "ACTIVE", {"temperature": 0.7}),
        (2, SANDBOX, "ACTIVE", {"temperature": 0.9}),
    ])


class TestPromote:
    @pytest.mark.anyio
    async def test_promotion_scenario(
        self, db_session: AsyncSession, prod_and_sandbox, audit, clock,
    ) -> None:
        clock.advance(days=3)
        service = PromotionService(db_session, audit=audit, clock=clock)
        result = await service.promote(
            "proc-1", "tenant-a", prod_and_sandbox[2].version_id,
            change_notes="warmer", actor_id="user-1",
        )

        assert result.promoted.version_number == 3
        assert result.promoted.environment == Environment.PRODUCTION
        assert result.promoted.status == VersionStatus.ACTIVE
        assert result.promoted.config == {"temperature": 0.9}
        assert result.promoted.published_at == clock()
        assert result.promoted.promoted_by == "user-1"
        assert result.promoted.change_notes == "warmer"
        assert result.deprecated.version_number == 1
        assert result.deprecated.deprecated_at == clock()
        assert result.source_version_id == prod_and_sandbox[2].version_id

        resolver = VersionResolver(db_session)
        live = await resolver.resolve("proc-1", "tenant-a", Environment.PRODUCTION)
        assert live.version.version_number == 3

        old = await resolver.resolve("proc-1", "tenant-a", Environment.PRODUCTION, 1)
        assert old.is_deprecated is True
        assert old.version.config == {"temperature": 0.7}
        assert old.sunset_at == clock() + timedelta(days=90)

        # The sandbox source stays live in sandbox.
        sandbox = await resolver.resolve("proc-1", "tenant-a", Environment.SANDBOX)
        assert sandbox.version.version_number == 2

    @pytest.mark.anyio
    async def test_first_promotion_has_nothing_to_deprecate(
        self, db_session: AsyncSession, audit, clock,
    ) -> None:
        publishing = PublishingService(db_session, audit=audit, clock=clock)
        process, v1 = await publishing.create_process("tenant-a", "Summarizer", {"temperature": 0.2})

        result = await PromotionService(db_session, audit=audit, clock=clock).promote(
            process.process_id, "tenant-a", v1.version_id,
        )
        assert result.deprecated is None
        assert result.promoted.version_number == 2

    @pytest.mark.anyio
    async def test_numbers_never_reused(self, db_session: AsyncSession, prod_and_sandbox, audit, clock) -> None:
        publishing = PublishingService(db_session, audit=audit, clock=clock)
        promotion = PromotionService(db_session, audit=audit, clock=clock)

        first = await promotion.promote("proc-1", "tenant-a", prod_and_sandbox[2].version_id)
        sandbox = await publishing.publish_sandbox("proc-1", "tenant-a", {"temperature": 1.1})
        second = await promotion.promote("proc-1", "tenant-a", sandbox.version_id)

        assert (first.promoted.version_number, sandbox.version_number, second.promoted.version_number) == (3, 4, 5)
        repo = ProcessVersionRepository(db_session)
        assert await repo.count_active("proc-1", Environment.PRODUCTION) == 1
        assert await repo.count_active("proc-1", Environment.SANDBOX) == 1

    @pytest.mark.anyio
    async def test_wipes_process_cache(self, db_session: AsyncSession, prod_and_sandbox, audit, clock) -> None:
        cache = ResponseCacheStore(db_session, clock=clock)
        await cache.set("tenant-a", "proc-1", "fp-1", {"a": 1}, 900, 1)
        await cache.set("tenant-a", "proc-1", "fp-2", {"a": 2}, 900, 2)
        await cache.set("tenant-a", "proc-other", "fp-1", {"a": 3}, 900, 1)

        result = await PromotionService(db_session, audit=audit, clock=clock).promote(
            "proc-1", "tenant-a", prod_and_sandbox[2].version_id,
        )
        assert result.cache_invalidated == 2
        assert await cache.get("tenant-a", "proc-1", "fp-1") is None
        assert await cache.count("proc-1") == 0
        assert await cache.count("proc-other") == 1


class TestPromotePreconditions:
    @pytest.mark.anyio
    async def test_production_source_rejected(self, db_session: AsyncSession, prod_and_sandbox, audit) -> None:
        with pytest.raises(NotSandboxVersionError) as exc_info:
            await PromotionService(db_session, audit=audit).promote(
                "proc-1", "tenant-a", prod_and_sandbox[1].version_id,
            )
        assert exc_info.value.status_code == 400

    @pytest.mark.anyio
    async def test_deprecated_source_rejected(self, db_session: AsyncSession, seed_versions, audit) -> None:
        rows = await seed_versions([
            (1, SANDBOX, "DEPRECATED", {}),
            (2, SANDBOX, "ACTIVE", {}),
        ])
        with pytest.raises(NotActiveVersionError):
            await PromotionService(db_session, audit=audit).promote(
                "proc-1", "tenant-a", rows[1].version_id,
            )

    @pytest.mark.anyio
    async def test_unknown_version(self, db_session: AsyncSession, prod_and_sandbox, audit) -> None:
        from intellayer.models.common import new_uuid7

        with pytest.raises(VersionNotFoundError):
            await PromotionService(db_session, audit=audit).promote("proc-1", "tenant-a", new_uuid7())

    @pytest.mark.anyio
    async def test_other_tenant(self, db_session: AsyncSession, prod_and_sandbox, audit) -> None:
        with pytest.raises(ProcessNotFoundError):
            await PromotionService(db_session, audit=audit).promote(
                "proc-1", "tenant-b", prod_and_sandbox[2].version_id,
            )

    @pytest.mark.anyio
    async def test_failed_promotion_changes_nothing(
        self, db_session: AsyncSession, prod_and_sandbox, audit,
    ) -> None:
        with pytest.raises(NotSandboxVersionError):
            await PromotionService(db_session, audit=audit).promote(
                "proc-1", "tenant-a", prod_and_sandbox[1].version_id,
            )
        live = await VersionResolver(db_session).resolve("proc-1", "tenant-a", Environment.PRODUCTION)
        assert live.version.version_number == 1


class TestPreview:
    @pytest.mark.anyio
    async def test_preview_reports_diff_and_cache(
        self, db_session: AsyncSession, prod_and_sandbox, audit, clock,
    ) -> None:
        cache = ResponseCacheStore(db_session, clock=clock)
        await cache.set("tenant-a", "proc-1", "fp-1", {"a": 1}, 900, 1)

        preview = await PromotionService(db_session, audit=audit).preview(
            "proc-1", "tenant-a", prod_and_sandbox[2].version_id,
        )
        assert preview.source.version_number == 2
        assert preview.current_production.version_number == 1
        assert preview.cache_entry_count == 1
        assert preview.diff.summary == "1 field modified"
        assert preview.diff.changes[0].path == "config.temperature"

        # Read-only: nothing moved.
        live = await VersionResolver(db_session).resolve("proc-1", "tenant-a", Environment.PRODUCTION)
        assert live.version.version_number == 1

    @pytest.mark.anyio
    async def test_preview_first_deployment(self, db_session: AsyncSession, seed_versions, audit) -> None:
        rows = await seed_versions([(1, SANDBOX, "ACTIVE", {"goal": "x"})])
        preview = await PromotionService(db_session, audit=audit).preview(
            "proc-1", "tenant-a", rows[1].version_id,
        )
        assert preview.current_production is None
        assert preview.diff.summary == "First deployment to production"

    @pytest.mark.anyio
    async def test_preview_checks_preconditions(self, db_session: AsyncSession, prod_and_sandbox, audit) -> None:
        with pytest.raises(NotSandboxVersionError):
            await PromotionService(db_session, audit=audit).preview(
                "proc-1", "tenant-a", prod_and_sandbox[1].version_id,
            )


class TestConflictAndAudit:
    """These tests commit for real, so they use plain sessions on the engine."""

    @pytest.mark.anyio
    async def test_index_violation_maps_to_conflict(self, session_factory, clock) -> None:
        async with session_factory() as session:
            publishing = PublishingService(session, audit=AuditTrail([]), clock=clock)
            process, v1 = await publishing.create_process("tenant-a", "P", {"temperature": 0.1})
            promotion = PromotionService(session, audit=AuditTrail([]), clock=clock)
            await promotion.promote(process.process_id, "tenant-a", v1.version_id)
            await session.commit()

        async with session_factory() as session:
            promotion = PromotionService(session, audit=AuditTrail([]), clock=clock)

            async def _stale_active(*args, **kwargs):
                return None

            # Simulate a writer that did not see the current production row.
            promotion._versions.get_active = _stale_active
            with pytest.raises(VersionConflictError) as exc_info:
                await promotion.promote(process.process_id, "tenant-a", v1.version_id)
            assert exc_info.value.status_code == 409
            assert exc_info.value.retryable is True
            await session.rollback()

        async with session_factory() as session:
            repo = ProcessVersionRepository(session)
            assert await repo.count_active(process.process_id, Environment.PRODUCTION) == 1

    @pytest.mark.anyio
    async def test_audit_published_after_commit(self, session_factory, clock) -> None:
        sink = MemoryAuditSink()
        trail = AuditTrail([sink])
        async with session_factory() as session:
            publishing = PublishingService(session, audit=trail, clock=clock)
            process, v1 = await publishing.create_process("tenant-a", "P", {})
            await PromotionService(session, audit=trail, clock=clock).promote(
                process.process_id, "tenant-a", v1.version_id, actor_id="user-9",
            )
            assert sink.events == []
            await session.commit()

        assert sink.actions() == [AuditAction.PROCESS_CREATED, AuditAction.VERSION_PROMOTED]
        promoted = sink.events[1]
        assert promoted.actor_id == "user-9"
        assert promoted.metadata["from_version"] == 1
        assert promoted.metadata["to_version"] == 2

    @pytest.mark.anyio
    async def test_audit_dropped_on_rollback(self, session_factory, clock) -> None:
        sink = MemoryAuditSink()
        async with session_factory() as session:
            publishing = PublishingService(session, audit=AuditTrail([sink]), clock=clock)
            await publishing.create_process("tenant-a", "P", {})
            await session.rollback()
            await session.commit()
        assert sink.events == []

    @pytest.mark.anyio
    async def test_failing_sink_does_not_break_promotion(self, session_factory, clock) -> None:
        class BrokenSink:
            def emit(self, event):
                raise RuntimeError("audit store down")

        healthy = MemoryAuditSink()
        trail = AuditTrail([BrokenSink(), healthy])
        async with session_factory() as session:
            publishing = PublishingService(session, audit=trail, clock=clock)
            process, v1 = await publishing.create_process("tenant-a", "P", {})
            result = await PromotionService(session, audit=trail, clock=clock).promote(
                process.process_id, "tenant-a", v1.version_id,
            )
            await session.commit()

        assert result.promoted.version_number == 2
        assert healthy.actions() == [AuditAction.PROCESS_CREATED, AuditAction.VERSION_PROMOTED]
