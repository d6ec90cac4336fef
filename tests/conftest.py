import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from erpsync.models import Base
from erpsync.options.store import OptionStore, TransientStore


@pytest.fixture
async def session_maker():
    """Temporary SQLite database with all tables created."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".db") as tmp_file:
        test_db_path = tmp_file.name

    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{test_db_path}", echo=False
    )
    test_session_maker = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_session_maker

    await test_engine.dispose()
    if Path(test_db_path).exists():
        Path(test_db_path).unlink()


@pytest.fixture
def store(session_maker) -> OptionStore:
    return OptionStore(session_maker)


@pytest.fixture
def transients(session_maker) -> TransientStore:
    return TransientStore(session_maker)


@pytest.fixture
def sync_service() -> AsyncMock:
    """Sync service double returning empty successful responses."""
    service = AsyncMock()
    service.import_new_only.return_value = {"created": 0, "total_remote": 0}
    service.import_products_catalog.return_value = {
        "created": 0,
        "updated": 0,
        "errors": 0,
        "total": 0,
    }
    service.update_products_stock.return_value = {
        "updated": 0,
        "skipped": 0,
        "errors": 0,
        "total": 0,
    }
    return service
