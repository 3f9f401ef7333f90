from __future__ import annotations

from collections.abc import AsyncGenerator
import os
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from nyay_sahayak.config import settings


def engine_kwargs(database_url: str) -> dict:
    kwargs: dict = {}
    if database_url.startswith("sqlite"):
        # aiosqlite: a busy writer makes other connections wait instead of failing at once.
        kwargs["connect_args"] = {"timeout": 5}
    else:
        kwargs["pool_pre_ping"] = True

    # NOTE: FastAPI's sync TestClient runs requests through an AnyIO portal, which
    # can hop event loops; pooled async connections reused across loops fail with
    #   RuntimeError: got Future attached to a different loop
    # so pooling is disabled under pytest.
    if os.getenv("PYTEST_CURRENT_TEST") or ("pytest" in sys.modules):
        kwargs["poolclass"] = NullPool
    return kwargs


engine = create_async_engine(settings.database_url, **engine_kwargs(settings.database_url))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
