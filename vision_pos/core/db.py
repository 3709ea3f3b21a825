# vision_pos/core/db.py

import ssl
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from vision_pos.core.config import (
    DATABASE_URL,
    DB_TYPE,
    DB_POOL_SIZE,
    DB_MAX_OVERFLOW,
    DB_POOL_TIMEOUT,
    DB_SSL_VERIFY,
    DB_ECHO_POOL,
    APP_ENV,
)

Base = declarative_base()


# =====================================================
# ENGINE FACTORY
# =====================================================
def _postgres_connect_args() -> dict:
    ssl_ctx = ssl.create_default_context()
    if not DB_SSL_VERIFY:
        ssl_ctx.check_hostname = False
        ssl_ctx.verify_mode = ssl.CERT_NONE

    return {
        "ssl": ssl_ctx,
        # asyncpg behind pgbouncer: no prepared statements
        "statement_cache_size": 0,
        "prepared_statement_cache_size": 0,
    }


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str = DATABASE_URL, db_type: str = DB_TYPE, **overrides) -> AsyncEngine:
    """
    Create the async engine for `db_type`.

    Postgres gets TLS and a bounded pool; SQLite gets foreign keys switched
    on for every connection. `overrides` go straight to create_async_engine
    (tests pass a StaticPool here).
    """
    if db_type == "postgres":
        options = {
            "connect_args": _postgres_connect_args(),
            "pool_size": DB_POOL_SIZE,
            "max_overflow": DB_MAX_OVERFLOW,
            "pool_timeout": DB_POOL_TIMEOUT,
            "pool_pre_ping": True,
        }
    else:
        options = {"connect_args": {"check_same_thread": False}}

    options.update(overrides)
    engine = create_async_engine(url, echo=False, echo_pool=DB_ECHO_POOL, **options)

    if db_type == "sqlite":
        _enable_sqlite_foreign_keys(engine)

    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit; services refresh what they return
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


# =====================================================
# SESSIONS
# =====================================================
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request (scheduled jobs, scripts)."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# =====================================================
# MODEL IMPORT
# =====================================================
import vision_pos.models  # noqa


# =====================================================
# DEV ONLY: AUTO CREATE TABLES
# =====================================================
async def init_models(bind: AsyncEngine = engine):
    if APP_ENV not in {"development", "test"}:
        raise RuntimeError("init_models() is forbidden outside development")

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
