"""Shared pytest fixtures for the treasure hunt test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- db_session: SAVEPOINT-isolated async session (app commits don't leak)
- session_factory: committing session maker bound to db_engine, for code
  that opens its own sessions (history recorder, health check)
- orchestrator: started JobOrchestrator recording history into db_engine
- client: AsyncClient with session, session factory and orchestrator overridden
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from treasure_hunt.db.session import Base, get_async_session, get_session_factory
import treasure_hunt.db.tables  # noqa: F401 - register ORM models on Base.metadata
from treasure_hunt.jobs.history import HistoryRecorder
from treasure_hunt.jobs.orchestrator import JobOrchestrator
from treasure_hunt.jobs.store import JobStore


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
    Application code calling session.commit() releases a SAVEPOINT, which
    is then restarted so later operations stay in the same outer transaction.
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
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Committing sessions on the test engine. Each test gets a fresh database."""
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def orchestrator(session_factory):
    """Started orchestrator with a fresh store, shut down at teardown."""
    orch = JobOrchestrator(
        store=JobStore(),
        recorder=HistoryRecorder(session_factory),
        max_workers=2,
    )
    orch.start()
    yield orch
    await orch.shutdown()


@pytest.fixture
async def client(session_factory, orchestrator):
    """AsyncClient wired to the test database and orchestrator.

    ASGITransport does not run the lifespan, so the orchestrator is placed
    on app.state directly.
    """
    from treasure_hunt.api.main import app

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.state.orchestrator = orchestrator

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.orchestrator = None
