import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core import breaker
from core.get_db import Base
from core.settings import settings


@pytest.fixture(autouse=True)
def closed_breakers():
    for circuit in breaker._breakers.values():
        circuit.reset()
    yield


@pytest.fixture
def dedup_enabled(monkeypatch):
    monkeypatch.setattr(settings, "NOTIFICATION_DEDUP_ENABLED", True)


@pytest.fixture
async def db():
    """In-memory SQLite session with every table created."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()
