import os
import tempfile
from typing import AsyncGenerator

# Settings are read at import time by libs.db.config; point them at a
# throwaway SQLite file before anything from libs/ or services/ is imported.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="giftcard-tests-")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'default.db')}"
)
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("GIFT_CARD_LOCK_TIMEOUT_SECONDS", "10")
os.environ.setdefault("GIFT_CARD_NOTIFICATIONS_ENABLED", "false")

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Optional local overrides (limit timezone, monthly cap, ...)
env_test_path = os.path.join(os.path.dirname(__file__), "..", ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

from httpx import ASGITransport, AsyncClient
from libs.common.config import get_settings
from libs.db.base import Base
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Import models so metadata includes every gift card table
from services.giftcard_service import models as _giftcard_models  # noqa: F401
from services.giftcard_service.services.locks import get_lock_manager

get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _fresh_lock_manager():
    """Keyed locks are per event loop; each test gets its own registry."""
    get_lock_manager.cache_clear()
    yield
    get_lock_manager.cache_clear()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A fresh SQLite database file per test, with all gift card tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'giftcards.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    """Session factory for tests that need one session per concurrent task."""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture
async def giftcard_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient bound to the gift card app, one DB session per request."""
    from libs.db.session import get_async_db
    from services.giftcard_service.app.main import app

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_test_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
