from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from coursevideo.core.settings import get_settings


@dataclass(frozen=True)
class _LoopDatabase:
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]


# asyncpg connections belong to the loop that opened them. The API, the job
# script and each test run on their own loop, so each gets its own pool.
_databases: dict[int, _LoopDatabase] = {}


def _current_database() -> _LoopDatabase:
    key = id(asyncio.get_running_loop())
    database = _databases.get(key)
    if database is None:
        engine = create_async_engine(get_settings().database_url, pool_pre_ping=True)
        database = _LoopDatabase(
            engine=engine,
            session_maker=async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False),
        )
        _databases[key] = database
    return database


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the running loop's pool. Must be called inside a coroutine."""
    return _current_database().session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_session_maker()() as session:
        yield session


async def dispose_engines() -> None:
    databases = list(_databases.values())
    _databases.clear()
    for database in databases:
        await database.engine.dispose()
