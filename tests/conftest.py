"""Shared pytest fixtures for the Intelligence Layer test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- db_session: SAVEPOINT-isolated async session (app commits don't leak)
- session_factory: plain sessions on db_engine for tests that really commit
- clock: settable clock injected into stores and services
- audit_sink / audit: in-memory audit trail
- gateway: fake LLM collaborator that records its calls
- client: AsyncClient with dependency overrides for DB-backed testing
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from intellayer.api.dependencies import get_audit, get_gateway
from intellayer.audit.trail import AuditTrail, MemoryAuditSink
from intellayer.db.session import Base, get_async_session
import intellayer.db.tables  # noqa: F401 register ORM models on Base.metadata
from intellayer.llm.gateway import GatewayError, GenerationResult, IntelligenceGateway


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Provide a SAVEPOINT-isolated session.

    The outer transaction is never committed; it rolls back at teardown.
    Application code calling session.commit() triggers a SAVEPOINT release,
    which is then restarted so subsequent operations stay in the same
    outer transaction.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        nested = await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(sync_session, transaction):  # noqa: ARG001
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = conn.sync_connection.begin_nested()

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def session_factory(db_engine):
    """Sessions that commit for real; each test gets a fresh in-memory DB."""
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@pytest.fixture
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
def audit(audit_sink: MemoryAuditSink) -> AuditTrail:
    return AuditTrail([audit_sink])


# ---------------------------------------------------------------------------
# LLM collaborator
# ---------------------------------------------------------------------------


class FakeGateway(IntelligenceGateway):
    """Echoes the config temperature back so tests can tell versions apart."""

    def __init__(self) -> None:
        self.calls: list[tuple[dict[str, Any], dict[str, Any]]] = []
        self.fail = False
        self.on_call: Callable[[], None] | None = None

    async def generate(
        self, input: dict[str, Any], config: dict[str, Any],
    ) -> GenerationResult:
        self.calls.append((input, config))
        if self.on_call is not None:
            self.on_call()
        if self.fail:
            raise GatewayError("LLM gateway unavailable")
        return GenerationResult(
            data={"summary": f"answer #{len(self.calls)}", "temperature": config.get("temperature")},
            duration_ms=5,
            model="fake",
        )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(db_session, gateway, audit):
    """AsyncClient with the session, gateway and audit trail overridden."""
    from intellayer.api.main import app

    async def _override_session():
        yield db_session

    async def _override_gateway():
        return gateway

    async def _override_audit():
        return audit

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_gateway] = _override_gateway
    app.dependency_overrides[get_audit] = _override_audit

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def seed_versions(db_session, clock):
    """Insert a process and explicit version rows, bypassing the services.

    Each entry is (version_number, environment, status, config).
    """
    from intellayer.repositories.versions import ProcessRepository, ProcessVersionRepository

    async def _seed(entries, tenant_id: str = "tenant-a", process_id: str = "proc-1"):
        await ProcessRepository(db_session).create(
            process_id=process_id, tenant_id=tenant_id, name="Summarizer",
            created_at=clock(),
        )
        repo = ProcessVersionRepository(db_session)
        rows = {}
        for number, environment, status, config in entries:
            rows[number] = await repo.create(
                process_id=process_id,
                version_number=number,
                config=config,
                environment=environment,
                status=status,
                created_at=clock(),
                published_at=clock() if status != "DRAFT" else None,
            )
            if status == "DEPRECATED":
                rows[number].deprecated_at = clock()
        await db_session.flush()
        return rows

    return _seed
