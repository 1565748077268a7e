"""Async Postgres access for inspections and statement edits.

Tables live in ``DB_SCHEMA_NAME`` when it is set to a plain identifier,
otherwise in the connection's default ``search_path``.
"""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config.settings import settings

# Registers the inspection tables on Base.metadata.
from app.models import Base, Inspection, StatementEdit  # noqa: F401

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _resolve_schema(raw: str | None) -> str | None:
    candidate = (raw or "").strip()
    if not candidate:
        return None
    if not _IDENTIFIER.fullmatch(candidate):
        logger.warning("Ignoring invalid schema name %r; using the default search_path.", raw)
        return None
    return candidate


SCHEMA = _resolve_schema(settings.database.schema_name)

if SCHEMA:
    for table in Base.metadata.tables.values():
        table.schema = table.schema or SCHEMA


def _build_engine() -> AsyncEngine:
    options: dict[str, Any] = {
        "echo": settings.debug,
        "pool_pre_ping": True,
    }
    # Serverless Postgres pauses idle instances; pooled connections would pin it awake.
    if settings.database.serverless:
        options["poolclass"] = NullPool
    return create_async_engine(settings.database.url, **options)


engine: AsyncEngine = _build_engine()

SessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _use_schema(target: Any) -> None:
    if SCHEMA:
        await target.execute(text(f'SET search_path TO "{SCHEMA}", public'))


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session; roll back whatever is pending if the caller fails."""

    async with SessionFactory() as session:
        await _use_schema(session)
        try:
            yield session
        except SQLAlchemyError:
            await session.rollback()
            raise


async def get_session() -> AsyncIterator[AsyncSession]:
    async with session_scope() as session:
        yield session


async def init_models() -> None:
    """Create the schema and the inspection tables when missing."""

    async with engine.begin() as conn:
        if SCHEMA:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{SCHEMA}"'))
        await _use_schema(conn)
        await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Inspection tables ready in schema %s: %s",
        SCHEMA or "(default)",
        ", ".join(sorted(Base.metadata.tables)),
    )


async def dispose_engine() -> None:
    await engine.dispose()
