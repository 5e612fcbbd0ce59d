"""Fixtures for tests that run against a real database engine.

Uses a file-backed SQLite database per test so the same tables and
repositories are exercised without a PostgreSQL server.
"""

import pytest

from registrar.db import SqlRegistrationStore, create_engine, metadata


@pytest.fixture
async def db_engine(settings, tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path}/registrar.db"
    engine = create_engine(settings.model_copy(update={"database_url": url}))
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(db_engine) -> SqlRegistrationStore:
    return SqlRegistrationStore(db_engine)
