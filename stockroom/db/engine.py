"""Async SQLAlchemy engine, session factory and lifespan hook.

Both ``engine`` and ``async_session_factory`` are None without a
DATABASE_URL; the store then runs in memory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from stockroom.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def make_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Build an engine for ``url``.

    Pool sizing applies to server databases only; SQLite (used by the
    repository tests and for throwaway local runs) keeps its default pool.
    """
    options: dict[str, object] = {"echo": echo, "pool_pre_ping": True}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(pool_size=5, max_overflow=10)
    return create_async_engine(url, **options)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows are turned into domain dataclasses before commit returns
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None

if SETTINGS.database_url:
    engine = make_engine(SETTINGS.database_url, echo=SETTINGS.is_dev)
    async_session_factory = make_session_factory(engine)


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("DATABASE_URL not set; organizations and items live in memory")
        yield
        return

    logger.info(
        "Database engine ready  url=%s", engine.url.render_as_string(hide_password=True)
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
