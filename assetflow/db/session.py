"""Async engine and session factory."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from assetflow.config import DatabaseConfig
from assetflow.lib import observability


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async engine for ``config.url``.

    SQLite does not enforce foreign keys unless asked to per connection, and
    the carousel/item references depend on them.
    """
    kwargs = {}
    if config.url.endswith(":memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_async_engine(config.url, echo=config.echo, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    observability.instrument_sqlalchemy(engine.sync_engine)
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables directly from the models (tests and local setups)."""
    import assetflow.db.models  # noqa: F401
    from assetflow.db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
