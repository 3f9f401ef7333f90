import os

# Every test gets its own throwaway SQLite file (see `database_url`); the
# module-level engine in nyay_sahayak.database must never reach Postgres.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("CELERY_ENABLED", "false")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nyay_sahayak.api.deps import get_store, get_workflow
from nyay_sahayak.database import engine_kwargs, get_db
from nyay_sahayak.main import app
from nyay_sahayak.models import Base
from nyay_sahayak.services.application_store import ApplicationStore, StoreDefaults
from nyay_sahayak.services.document_policy import DocumentPolicy
from nyay_sahayak.services.review_workflow import ReviewWorkflow
from tests._client import get_async_client


class RecordingEmitter:
    """Stands in for the Celery dispatcher; keeps every status-change event."""

    def __init__(self) -> None:
        self.events: list[dict] = []

    def __call__(self, event: dict) -> None:
        self.events.append(event)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'nyay_sahayak.db'}"


@pytest.fixture
async def engine(database_url):
    eng = create_async_engine(database_url, **engine_kwargs(database_url))
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def store() -> ApplicationStore:
    return ApplicationStore(defaults=StoreDefaults(timeout_seconds=5.0, max_attempts=3, backoff_seconds=0.01))


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def workflow(store, emitter) -> ReviewWorkflow:
    return ReviewWorkflow(store=store, policy=DocumentPolicy(), emit=emitter)


@pytest.fixture
async def client(session_factory, store, workflow):
    async def _get_db():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_workflow] = lambda: workflow
    try:
        async with get_async_client() as c:
            yield c
    finally:
        app.dependency_overrides.clear()
