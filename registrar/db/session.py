"""Database engine management."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create async database engine from settings.

    Args:
        settings: Application settings

    Returns:
        Configured async database engine with connection pooling
    """
    url = str(settings.database_url)

    # Guard: SQLite (tests, local runs) has no server-side pool or asyncpg options
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)

    kwargs: dict[str, Any] = {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "echo": settings.debug,
        # Disabled in tests to avoid event loop closure issues
        "pool_pre_ping": settings.environment != "testing",
        "pool_recycle": 3600,
    }
    if "asyncpg" in url:
        kwargs["connect_args"] = {
            "server_settings": {"jit": "off"},
            "command_timeout": 60,
        }
    return create_async_engine(url, **kwargs)

