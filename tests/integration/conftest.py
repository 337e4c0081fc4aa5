"""SQLAlchemy fixtures backed by a throwaway SQLite file (aiosqlite)."""

import pytest

from content_guard.infrastructure.database.session import (
    build_engine,
    build_sessionmaker,
    create_schema,
)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'content_guard.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)
