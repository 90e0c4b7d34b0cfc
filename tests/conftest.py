import os
from contextlib import asynccontextmanager

import pytest

os.environ.setdefault("BOT_TOKEN", "123456:test-token")
os.environ.setdefault("OWNER_TELEGRAM_ID", "1000")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import get_settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import create_engine, create_sessionmaker  # noqa: E402
import app.models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def session_factory():
    """Async context manager yielding a sessionmaker bound to a fresh in-memory database."""

    @asynccontextmanager
    async def _open():
        engine = create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        try:
            yield create_sessionmaker(engine)
        finally:
            await engine.dispose()

    return _open


@pytest.fixture
def open_session(session_factory):
    """Async context manager yielding a session on a fresh in-memory database."""

    @asynccontextmanager
    async def _open():
        async with session_factory() as maker:
            async with maker() as session:
                yield session

    return _open
