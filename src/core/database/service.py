"""
Database Service - Core Infrastructure Layer
============================================

Purpose
-------
Centralized async database engine and session management for the
progression core. Provides atomic transactions, pessimistic locking, schema
bootstrap, and health checks for all persistence operations.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for read sessions and atomic transactions
- Enforce transaction discipline: automatic commit on success, rollback on exception
- Translate driver failures into ``StorageError`` for callers
- Configure statement timeouts for PostgreSQL connections
- Provide idempotent initialization with async lock protection

Non-Responsibilities
--------------------
- Domain logic or business rules
- Schema migrations (``create_schema`` is a bootstrap helper for dev/tests)
- Event emission

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never call `session.commit()` inside service code
- Use pessimistic locks: `select(...).with_for_update()`
- `IntegrityError` propagates unchanged: unique-key conflicts are a domain
  signal (duplicate settlement) rather than a storage outage

**Connection Pooling**:
- AsyncAdaptedQueuePool for server databases (pool_size, max_overflow)
- StaticPool for in-memory SQLite (one shared connection)
- NullPool for file SQLite and testing environments

Configuration
-------------
All values sourced from Config:
- DATABASE_URL
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW / DATABASE_POOL_RECYCLE
- DATABASE_POOL_TIMEOUT / DATABASE_STATEMENT_TIMEOUT_MS / DATABASE_ECHO

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
...     character = await repo.get_for_update(session, character_id)
...     character.available_skill_points -= 1
...     # Automatic commit on exit

>>> async with DatabaseService.get_session() as session:
...     character = await repo.get(session, character_id)
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional, Type

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool, StaticPool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.exceptions import StorageError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """
    Immutable snapshot of database configuration.

    Provides a stable configuration view for the lifetime of the engine.
    """

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory_sqlite(self) -> bool:
        return self.is_sqlite and (":memory:" in self.url or self.url.rstrip("/").endswith("sqlite+aiosqlite:"))

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Initialize engine and session factory
    - shutdown() -> Dispose engine and cleanup resources
    - create_schema() / drop_schema() -> Bootstrap tables from ORM metadata

    **Session Management**:
    - get_session() -> Read-only access
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast database reachability check
    - is_initialized() -> Lifecycle probe

    Thread Safety
    -------------
    All classmethods are safe for concurrent access from one event loop.
    Initialization is protected by an async lock.
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _get_init_lock(cls) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop.
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def _build_config_snapshot(
        cls, database_url: Optional[str] = None
    ) -> _DatabaseConfigSnapshot:
        """
        Build an immutable configuration snapshot from Config.

        Raises
        ------
        DatabaseInitializationError
            If DATABASE_URL is missing or invalid.
        """
        url = database_url or getattr(Config, "DATABASE_URL", None)
        if not url or not isinstance(url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        probe = _DatabaseConfigSnapshot(
            url=url,
            echo=False,
            pool_class=NullPool,
            pool_size=0,
            max_overflow=0,
            pool_recycle=0,
            pool_timeout=0,
            statement_timeout_ms=0,
        )

        if probe.is_memory_sqlite:
            pool_class: Type[Pool] = StaticPool
        elif probe.is_sqlite or Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = AsyncAdaptedQueuePool

        snapshot = _DatabaseConfigSnapshot(
            url=url,
            echo=bool(getattr(Config, "DATABASE_ECHO", False)),
            pool_class=pool_class,
            pool_size=int(getattr(Config, "DATABASE_POOL_SIZE", 10)),
            max_overflow=int(getattr(Config, "DATABASE_MAX_OVERFLOW", 10)),
            pool_recycle=int(getattr(Config, "DATABASE_POOL_RECYCLE", 1800)),
            pool_timeout=int(getattr(Config, "DATABASE_POOL_TIMEOUT", 30)),
            statement_timeout_ms=int(
                getattr(Config, "DATABASE_STATEMENT_TIMEOUT_MS", 30_000)
            ),
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
            },
        )
        return snapshot

    @classmethod
    async def initialize(cls, database_url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: if already initialized, returns immediately.

        Args:
            database_url: Optional explicit URL; defaults to Config.DATABASE_URL

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._get_init_lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot(database_url)

                engine_kwargs: Dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )
                if config.is_memory_sqlite:
                    engine_kwargs["connect_args"] = {"check_same_thread": False}

                engine = create_async_engine(config.url, **engine_kwargs)

                if config.is_sqlite:
                    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

                cls._engine = engine
                cls._config_snapshot = config
                cls._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except DatabaseInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """
        Dispose the engine and reset internal state.

        Safe to call multiple times; no-op if already shut down.
        """
        async with cls._get_init_lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Schema Bootstrap
    # ========================================================================

    @classmethod
    async def create_schema(cls) -> None:
        """Create all tables registered on ``Base.metadata``."""
        engine = cls._require_engine()

        # Register every model on the metadata before create_all.
        import src.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema created",
            extra={"table_count": len(Base.metadata.tables)},
        )

    @classmethod
    async def drop_schema(cls) -> None:
        """Drop all tables registered on ``Base.metadata``."""
        engine = cls._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Lightweight reachability check (``SELECT 1``).

        Returns False instead of raising on failure.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None or cls._session_factory is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._engine

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._config_snapshot
        if config is not None and config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        For reads. Writes belong in ``get_transaction()``.

        Raises
        ------
        DatabaseNotInitializedError
            If DatabaseService has not been initialized.
        StorageError
            If the driver fails while the session is open.
        """
        cls._require_engine()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
            except (OperationalError, DBAPIError) as exc:
                if isinstance(exc, IntegrityError):
                    raise
                logger.error(
                    "Database error in read session",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                raise StorageError("read", exc) from exc

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session wrapped in an atomic transaction.

        **On Success**: commits.
        **On Exception**: rolls back and re-raises; driver failures other
        than integrity conflicts are wrapped in ``StorageError``.

        Raises
        ------
        DatabaseNotInitializedError
            If DatabaseService has not been initialized.
        IntegrityError
            On a unique/foreign-key conflict.
        StorageError
            For connection, timeout, or other driver failures.
        """
        cls._require_engine()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                async with session.begin():
                    await cls._apply_statement_timeout(session)
                    logger.debug("Database transaction started")
                    yield session

                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except IntegrityError as exc:
                logger.warning(
                    "IntegrityError in transaction; rolled back",
                    extra={
                        "error": str(exc.orig),
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            except (OperationalError, DBAPIError) as exc:
                logger.error(
                    "Database error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise StorageError("transaction", exc) from exc

            except Exception as exc:
                logger.debug(
                    "Transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
