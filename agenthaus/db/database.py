from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from agenthaus.core.config import settings

Base = declarative_base()


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    if not any(driver in url for driver in ["+aiosqlite", "+asyncpg", "+aiomysql"]):
        raise ValueError(f"DATABASE_URL must use an async driver (+aiosqlite, +asyncpg, +aiomysql): {url}")

    kwargs = {}
    if "sqlite" in url:
        # aiosqlite hands each connection to its own worker thread
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    engine = create_async_engine(url, echo=echo, **kwargs)
    if "sqlite" in url:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create all tables. Schema migrations are handled outside this package."""
    # Import models so they register on Base.metadata
    from agenthaus import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
