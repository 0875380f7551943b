from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy import event, text
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
import contextlib
from typing import AsyncIterator
from modelboard.config import settings
from modelboard.utils.logging import get_logger

logger = get_logger("database")

Base = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


def create_optimized_async_engine(database_url: str = None):
    """Create the async engine, pooling only for server databases."""
    url = database_url or settings.database_url
    is_sqlite = url.startswith("sqlite")

    engine_kwargs = {
        "url": url,
        "echo": settings.debug,
        "future": True,
    }

    if _is_memory_sqlite(url):
        # One shared connection, otherwise every checkout sees an empty database
        engine_kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })
    elif not is_sqlite:
        engine_kwargs.update({
            "pool_size": 10,
            "max_overflow": 15,
            "pool_timeout": 30,
            "pool_recycle": 1800,  # Recycle connections every 30 minutes
            "pool_pre_ping": True,
        })

    engine = create_async_engine(**engine_kwargs)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enforce foreign keys and let SQLAlchemy own transaction boundaries."""
            # The driver's implicit BEGIN breaks SAVEPOINT handling
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


engine = create_optimized_async_engine()

session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


@contextlib.asynccontextmanager
async def get_session_context() -> AsyncIterator[AsyncSession]:
    """
    Context manager for batch jobs that control their own transactions.
    """
    session = session_factory()
    try:
        yield session
    except Exception as e:
        await session.rollback()
        logger.error(f"Session context error: {e}")
        raise
    finally:
        await session.close()


async def check_database_health() -> bool:
    """Check database connectivity and health."""
    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def create_tables():
    """Create all tables."""
    # Register every mapped class on Base.metadata
    import modelboard.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

