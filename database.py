"""
Database connection and session management for Identity Reconciliation API
This module sets up the SQLAlchemy async engine and session factory, and
provides the transaction scope every reconciliation runs in. Supports local
PostgreSQL and AWS RDS deployments, plus any other async SQLAlchemy dialect
(e.g. sqlite+aiosqlite for local runs and tests).
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import settings
from models import Base
from services.errors import StoreError

logger = logging.getLogger(__name__)


def _mask_url(database_url: str) -> str:
    return make_url(database_url).render_as_string(hide_password=True)


def create_database_engine(database_url: str) -> AsyncEngine:
    """Create database engine with appropriate settings for environment"""
    if database_url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        return create_async_engine(
            database_url,
            echo=settings.debug_enabled(),
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if settings.is_lambda_environment():
        # Lambda-optimized settings for RDS Proxy
        return create_async_engine(
            database_url,
            echo=settings.debug_enabled(),
            pool_pre_ping=True,
            pool_size=1,
            max_overflow=0,
            pool_recycle=3600,
            pool_timeout=10,
            connect_args={
                "command_timeout": 10,
                "server_settings": {
                    "application_name": "identity-reconciliation-lambda",
                }
            }
        )

    return create_async_engine(
        database_url,
        echo=settings.debug_enabled(),
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args={
            "server_settings": {
                "application_name": "identity-reconciliation",
            }
        }
    )


class DatabaseManager:
    """
    Database connection manager that handles the SQLAlchemy engine,
    session creation, and connection lifecycle management.
    The engine is created lazily on first use.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.get_active_database_url()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        # SQLite has no row locks and every session shares the StaticPool
        # connection, so its transactions must run one at a time
        self.serialize_transactions = make_url(self.database_url).get_backend_name() == "sqlite"
        self._transaction_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            logger.info(f"Initializing database connection to: {_mask_url(self.database_url)}")
            self._engine = create_database_engine(self.database_url)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False
            )
        return self._session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Plain session without an explicit transaction, for read-only endpoints
        Usage:
            async with db_manager.get_session() as session:
                # database operations
        """
        async with self.session_factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session wrapped in a single transaction

        Commits when the block exits normally and rolls back on any exception,
        so a reconciliation is either applied completely or not at all.
        A failing commit is reported as StoreError.
        On SQLite the scope also holds the manager's transaction lock until
        the commit or rollback has finished.
        """
        async with AsyncExitStack() as stack:
            if self.serialize_transactions:
                await stack.enter_async_context(self._transaction_lock)
            session = await stack.enter_async_context(self.session_factory())
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(f"Database transaction rolled back: {e}")
                raise StoreError(f"Database transaction failed: {e}") from e

    async def create_tables(self) -> None:
        """Create all database tables defined in models"""
        logger.info("Creating database tables...")
        async with self.engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def test_connection(self) -> bool:
        """Test database connection"""
        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            logger.debug("Database connection test successful")
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    Process-wide database manager, created on first use
    Also serves as the FastAPI dependency for the database
    """
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
