"""Unit tests for the database engine factory."""

import registrar.db
from registrar.db.session import create_engine


class TestCreateEngine:
    async def test_sqlite_url_uses_plain_engine(self, settings):
        engine = create_engine(settings)
        try:
            assert engine.url.drivername == "sqlite+aiosqlite"
            assert engine.echo is False
        finally:
            await engine.dispose()

    def test_package_exports_only_engine_factory(self):
        """The store works on connections, so no ORM session helpers are exported."""
        assert "create_engine" in registrar.db.__all__
        for name in ("create_sessionmaker", "get_engine", "get_db"):
            assert not hasattr(registrar.db, name)
            assert not hasattr(registrar.db.session, name)
