from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator

from config.settings import settings, IS_PRODUCTION

# Validate production database configuration
if IS_PRODUCTION:
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL must be set in production. SQLite is not allowed in production.")
    if "sqlite" in settings.database_url.lower():
        raise RuntimeError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")

# Default to SQLite with aiosqlite, but allow override via DATABASE_URL env var
DATABASE_URL = settings.database_url or "sqlite+aiosqlite:///./formcraft.db"

# Create declarative base for models
Base = declarative_base()


def configure_sqlite_locking(engine: AsyncEngine) -> None:
    """
    Make SQLite take its write lock when a transaction begins.

    pysqlite/aiosqlite defer BEGIN until the first DML statement, which lets two
    connections both read a row and then race to upgrade their locks. Emitting
    BEGIN IMMEDIATE ourselves serializes writers behind the driver's busy timeout,
    giving the conditional subscription update the same guarantee a row lock
    gives on PostgreSQL.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine, applying SQLite locking rules where needed."""
    engine = create_async_engine(
        url,
        echo=False,
        future=True,
    )
    if url.startswith("sqlite"):
        configure_sqlite_locking(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine(DATABASE_URL)

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)


async def init_db(target_engine: AsyncEngine = None):
    """
    Initialize the database by creating all tables.
    This should be called on application startup.
    """
    target_engine = target_engine or engine
    async with target_engine.begin() as conn:
        # Import models here to ensure they're registered with Base
        import database_models  # noqa: F401
        # Create all tables
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields a database session.
    Use this in FastAPI route dependencies to get a database session.

    Example:
        @app.get("/forms")
        async def list_forms(db: AsyncSession = Depends(get_db)):
            # Use db here
            pass
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
