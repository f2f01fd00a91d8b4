from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import SessionTransactionOrigin, sessionmaker, declarative_base
from discount_engine.core.config import DATABASE_URL, DB_TYPE
import ssl

Base = declarative_base()


def configure_sqlite(engine: AsyncEngine) -> AsyncEngine:
    """
    Foreign keys and WAL on. SQLAlchemy emits BEGIN itself so that
    SAVEPOINTs behave under aiosqlite.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        # Readers must not block a committing writer
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str = DATABASE_URL, db_type: str = DB_TYPE) -> AsyncEngine:
    if db_type == "postgres":
        # SSL setup for Supabase
        ssl_ctx = ssl.create_default_context()
        ssl_ctx.check_hostname = False
        ssl_ctx.verify_mode = ssl.CERT_NONE

        # PgBouncer-safe: no prepared statements
        return create_async_engine(
            url,
            echo=False,
            future=True,
            pool_size=5,
            max_overflow=10,
            connect_args={
                "statement_cache_size": 0,
                "prepared_statement_cache_size": 0,
                "server_settings": {"prepareThreshold": "0"},  # must be string!
                "ssl": ssl_ctx,
            },
        )
    return configure_sqlite(create_async_engine(url, echo=False, future=True))


def build_session_factory(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one all-or-nothing unit.

    Opens a transaction and commits it on exit. A transaction the session
    only started implicitly, for earlier reads, is ended first so the block
    works on a fresh snapshot and its writes are committed. When the caller
    opened a transaction explicitly (`db.begin()` or an enclosing `atomic`)
    the block runs in a SAVEPOINT instead, and the outer commit stays with
    the caller.
    """
    trans = db.sync_session.get_transaction()
    if trans is not None and trans.origin is SessionTransactionOrigin.AUTOBEGIN:
        await db.commit()

    if db.in_transaction():
        async with db.begin_nested():
            yield db
    else:
        async with db.begin():
            yield db


import discount_engine.models


async def init_models(bind: AsyncEngine = engine):
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
