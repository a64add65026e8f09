"""Database connection and session management."""

import ssl
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from kpigate.config import settings


def _make_ssl_context_for_supabase():
    """SSL context for Supabase - disables cert verification to avoid macOS chain issues."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def get_engine_url_and_connect_args(database_url: str | None = None):
    """Strip sslmode from URL (asyncpg doesn't accept it) and add SSL via connect_args for Supabase."""
    url = database_url or settings.database_url
    connect_args = {}
    if "sslmode=" in url or "ssl=" in url:
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        query.pop("sslmode", None)
        query.pop("ssl", None)
        new_query = urlencode(query, doseq=True)
        original = url
        url = urlunparse(parsed._replace(query=new_query))
        if "supabase" in original:
            connect_args["ssl"] = _make_ssl_context_for_supabase()
    return url, connect_args


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make SQLite take the write lock when a transaction starts.

    pysqlite defers BEGIN until the first DML statement, so two sessions
    that both read then write deadlock instead of waiting on each other.
    Emitting BEGIN IMMEDIATE ourselves also enables SAVEPOINT support.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    """Create an async engine for the configured (or given) database URL."""
    url, connect_args = get_engine_url_and_connect_args(database_url)
    new_engine = create_async_engine(
        url,
        echo=settings.log_level == "DEBUG",
        connect_args=connect_args,
        **kwargs,
    )
    if new_engine.dialect.name == "sqlite":
        configure_sqlite(new_engine)
    return new_engine


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


engine = build_engine()

async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
