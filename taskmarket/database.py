"""Async SQLModel database setup."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from taskmarket.config import settings
from taskmarket.db_models import (  # noqa: F401 — register tables
    Ad,
    Category,
    Notification,
    Reply,
    Response,
    Tag,
    Task,
    TaskModerationHistory,
    TaskTag,
    User,
    UserTag,
)

logger = logging.getLogger("taskmarket.database")

_engine = None
_session_factory = None

# Absolute path to the migrations directory (sibling of taskmarket/ package)
_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


async def init_db(url: str = "sqlite+aiosqlite:///taskmarket.db") -> None:
    global _engine, _session_factory
    connect_args = {}
    if "sqlite" in url:
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30
    _engine = create_async_engine(url, echo=False, connect_args=connect_args, pool_pre_ping=True)
    _session_factory = sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async with _engine.begin() as conn:
        if "sqlite" in url:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA foreign_keys=ON"))
        await _run_alembic_upgrade(conn)

    if settings.seed_reference_data:
        from taskmarket.seeder import seed_reference_data

        async with _session_factory() as session:
            await seed_reference_data(session)


async def _run_alembic_upgrade(conn) -> None:
    """Bring the schema to the latest revision on the startup connection."""
    from alembic import command
    from alembic.config import Config
    from alembic.migration import MigrationContext

    def _do_upgrade(sync_conn):
        cfg = Config()
        cfg.set_main_option("script_location", str(_MIGRATIONS_DIR))
        cfg.attributes["connection"] = sync_conn
        current = MigrationContext.configure(sync_conn).get_current_revision()
        logger.info("Schema at revision %s, upgrading to head", current or "(empty)")
        command.upgrade(cfg, "head")

    await conn.run_sync(_do_upgrade)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    assert _session_factory is not None, "Database not initialised — call init_db() first"
    async with _session_factory() as session:
        yield session
