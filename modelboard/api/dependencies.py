from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from modelboard.db.database import session_factory


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """
    Read-only request session.

    The API never writes, so the session is rolled back on the way out.
    """
    session = session_factory()
    try:
        await session.connection()
        yield session
    finally:
        await session.rollback()
        await session.close()
