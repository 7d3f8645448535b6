"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async database engine and session management for the stats store. Provides
atomic units of work, bounded concurrency, timeouts and translation of driver
errors into the store error hierarchy.

Responsibilities
----------------
- Own one AsyncEngine with connection pooling and one session factory
- Provide context managers for read sessions and atomic transactions
- Run units of work with commit on success and rollback on any exception
- Cap in-flight units of work at the pool size (asyncio.Semaphore)
- Bound connection acquisition by `connection-timeout` and execution by
  `store-operation-timeout`
- Translate failures into `ConnectionAcquisitionFailure` /
  `TransactionFailure`
- Record per-operation timings in `DatabaseMetrics`
- Expose health checks and pool statistics

Non-Responsibilities
--------------------
- SQL statements for the stats schema (SqlStatsStore)
- Retries; a failed unit of work is reported once to the caller
- Cache coherence (StatsCoordinator)

Architecture Notes
------------------
**Transaction Model**:
- `execute(unit_of_work)` is the interface for every mutation. The unit of
  work receives an `AsyncSession`, issues statements and returns a value;
  it never commits.
- `query(statement)` runs a single read-only statement and returns rows.

**Failure Model**:
- Never obtained a connection (pool exhausted, acquisition timeout, refused
  connection): `ConnectionAcquisitionFailure`. Nothing was written.
- Obtained a connection but the work failed or timed out:
  `TransactionFailure`. The transaction was rolled back.

**Connection Pooling**:
- AsyncAdaptedQueuePool sized by `connection-pool-size` with no overflow
- NullPool in the testing environment (no connection reuse)
- StaticPool for in-memory SQLite, whose data lives in one connection
- SQLite connections enable foreign keys so ON DELETE CASCADE applies

Usage Example
-------------
>>> db = DatabaseService(url="sqlite+aiosqlite:///stats.db", settings=settings)
>>> await db.initialize()
>>> async def unit_of_work(session):
...     await session.execute(insert(WinLog).values(...))
>>> await db.execute(unit_of_work, operation="record_win")
>>> await db.shutdown()
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from sqlalchemy import event, text
from sqlalchemy.engine import Row
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool, StaticPool
from sqlalchemy.sql import Executable

from capture_stats.core.config.config import Config
from capture_stats.core.config.settings import StatsSettings
from capture_stats.core.database.metrics import DatabaseMetrics
from capture_stats.core.exceptions import (
    ConnectionAcquisitionFailure,
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    StoreError,
    TransactionFailure,
)
from capture_stats.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

UnitOfWork = Callable[[AsyncSession], Awaitable[T]]


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
    connection_timeout: float
    operation_timeout: float

    @property
    def max_concurrency(self) -> int:
        """Units of work allowed at once. A StaticPool shares one connection."""
        return 1 if self.pool_class is StaticPool else self.pool_size

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"

    @property
    def is_postgres(self) -> bool:
        return self.url_scheme.startswith("postgresql")

    @property
    def is_sqlite(self) -> bool:
        return self.url_scheme.startswith("sqlite")


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async engine, sessions and bounded units of work.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Create engine and session factory
    - shutdown() -> Dispose engine

    **Units of work**:
    - execute(unit_of_work, operation=...) -> Atomic write
    - query(statement, operation=...) -> Read-only rows
    - run_schema(fn) -> DDL via `AsyncConnection.run_sync`

    **Sessions** (for tooling and tests; no timeouts or error translation):
    - get_session() / get_transaction()

    **Utilities**:
    - health_check(), get_pool_metrics(), metrics
    """

    def __init__(
        self,
        url: Optional[str] = None,
        settings: Optional[StatsSettings] = None,
        metrics: Optional[DatabaseMetrics] = None,
        echo: Optional[bool] = None,
    ) -> None:
        self._url = url or Config.DATABASE_URL
        self._settings = settings or StatsSettings()
        self._echo = Config.DATABASE_ECHO if echo is None else echo
        self.metrics = metrics or DatabaseMetrics()

        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._config_snapshot: Optional[_DatabaseConfigSnapshot] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._init_lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    def _build_config_snapshot(self) -> _DatabaseConfigSnapshot:
        if not self._url or not isinstance(self._url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        if _is_memory_sqlite(self._url):
            pool_class: Type[Pool] = StaticPool
        elif Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = AsyncAdaptedQueuePool

        settings = self._settings
        snapshot = _DatabaseConfigSnapshot(
            url=self._url,
            echo=self._echo,
            pool_class=pool_class,
            pool_size=settings.connection_pool_size,
            connection_timeout=settings.connection_timeout,
            operation_timeout=settings.store_operation_timeout,
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "connection_timeout": snapshot.connection_timeout,
                "operation_timeout": snapshot.operation_timeout,
            },
        )
        return snapshot

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def dialect_name(self) -> str:
        """Name of the active SQL dialect (`sqlite`, `postgresql`, `mysql`...)."""
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine.dialect.name

    async def initialize(self) -> None:
        """
        Create the engine and session factory. Idempotent.

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = self._build_config_snapshot()

                engine_kwargs: Dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": 0,
                            "pool_timeout": config.connection_timeout,
                            "pool_pre_ping": True,
                        }
                    )

                engine = create_async_engine(config.url, **engine_kwargs)
                if config.is_sqlite:
                    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

                self._engine = engine
                self._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                self._semaphore = asyncio.Semaphore(config.max_concurrency)
                self._config_snapshot = config

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                        "pool_size": config.pool_size,
                        "max_concurrency": config.max_concurrency,
                    },
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                if isinstance(exc, DatabaseInitializationError):
                    raise
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    async def shutdown(self) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with self._init_lock:
            if self._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None
                self._config_snapshot = None
                self._semaphore = None

    # ========================================================================
    # Health Check & Pool Metrics
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Run `SELECT 1`. Returns False instead of raising on failure.
        """
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        try:
            with self.metrics.measure("health_check"):
                async with self._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    def get_pool_metrics(self) -> Dict[str, int]:
        """
        Current pool statistics plus the number of free concurrency slots.

        All zeros when not initialized or the pool does not track usage.
        """
        empty = {
            "pool_size": 0,
            "checked_out": 0,
            "checked_in": 0,
            "overflow": 0,
            "available_slots": 0,
        }
        if self._engine is None or self._config_snapshot is None:
            return empty

        pool = self._engine.pool
        slots = self._available_slots()
        if not isinstance(pool, AsyncAdaptedQueuePool):
            return {**empty, "pool_size": self._config_snapshot.pool_size, "available_slots": slots}

        return {
            "pool_size": pool.size(),
            "checked_out": pool.checkedout(),
            "checked_in": pool.checkedin(),
            "overflow": max(0, pool.overflow()),
            "available_slots": slots,
        }

    def _available_slots(self) -> int:
        if self._semaphore is None:
            return 0
        # asyncio.Semaphore exposes no public counter.
        return getattr(self._semaphore, "_value", 0)

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    def _ensure_initialized(self) -> None:
        if self._session_factory is None or self._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call initialize() during startup."
            )

    def _get_config_snapshot(self) -> _DatabaseConfigSnapshot:
        if self._config_snapshot is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return self._config_snapshot

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session without automatic commit. Closed on exit."""
        self._ensure_initialized()
        assert self._session_factory is not None
        async with self._session_factory() as session:
            yield session

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Session in a transaction: commit on success, rollback on exception."""
        self._ensure_initialized()
        assert self._session_factory is not None
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def run_schema(self, fn: Callable[..., Any]) -> None:
        """Run a synchronous DDL callable (e.g. `metadata.create_all`)."""
        self._ensure_initialized()
        assert self._engine is not None
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(fn)
        except SQLAlchemyError as exc:
            raise DatabaseInitializationError(f"Schema operation failed: {exc}") from exc

    # ========================================================================
    # Bounded Units of Work
    # ========================================================================

    @asynccontextmanager
    async def _checkout(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """
        Take a concurrency slot and a live connection, both within
        `connection-timeout`.

        Raises
        ------
        ConnectionAcquisitionFailure
            If either could not be obtained in time or the database refused
            the connection.
        """
        self._ensure_initialized()
        assert self._session_factory is not None and self._semaphore is not None
        config = self._get_config_snapshot()
        semaphore = self._semaphore

        deadline = time.monotonic() + config.connection_timeout
        try:
            await asyncio.wait_for(semaphore.acquire(), timeout=config.connection_timeout)
        except asyncio.TimeoutError as exc:
            raise ConnectionAcquisitionFailure(
                operation,
                "Timed out waiting for a free connection slot",
                exc,
                timeout=config.connection_timeout,
            ) from exc

        try:
            async with self._session_factory() as session:
                remaining = max(deadline - time.monotonic(), 0.001)
                try:
                    await asyncio.wait_for(session.connection(), timeout=remaining)
                except asyncio.TimeoutError as exc:
                    raise ConnectionAcquisitionFailure(
                        operation,
                        "Timed out acquiring a database connection",
                        exc,
                        timeout=config.connection_timeout,
                    ) from exc
                except (PoolTimeoutError, OperationalError, DBAPIError, OSError) as exc:
                    raise ConnectionAcquisitionFailure(
                        operation, "Could not obtain a database connection", exc
                    ) from exc

                if config.is_postgres:
                    timeout_ms = int(config.operation_timeout * 1000)
                    await session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

                yield session
        finally:
            semaphore.release()

    async def _run(
        self,
        session: AsyncSession,
        unit_of_work: UnitOfWork[T],
        commit: bool,
    ) -> T:
        try:
            result = await unit_of_work(session)
            if commit:
                await session.commit()
            return result
        except BaseException:
            await session.rollback()
            raise

    async def execute(self, unit_of_work: UnitOfWork[T], operation: str = "execute") -> T:
        """
        Run `unit_of_work(session)` in one transaction and return its result.

        Raises
        ------
        ConnectionAcquisitionFailure
            No connection within `connection-timeout`. Nothing was written.
        TransactionFailure
            The work raised a database error or exceeded
            `store-operation-timeout`. The transaction was rolled back.
        """
        return await self._bounded(unit_of_work, operation, commit=True)

    async def query(self, statement: Executable, operation: str = "query") -> List[Row[Any]]:
        """Execute one read-only statement and return all rows."""

        async def read(session: AsyncSession) -> List[Row[Any]]:
            result = await session.execute(statement)
            return list(result.all())

        return await self._bounded(read, operation, commit=False)

    async def _bounded(self, unit_of_work: UnitOfWork[T], operation: str, commit: bool) -> T:
        config = self._get_config_snapshot()
        with self.metrics.measure(operation):
            try:
                async with self._checkout(operation) as session:
                    try:
                        return await asyncio.wait_for(
                            self._run(session, unit_of_work, commit),
                            timeout=config.operation_timeout,
                        )
                    except asyncio.TimeoutError as exc:
                        raise TransactionFailure(
                            operation,
                            f"Exceeded {config.operation_timeout}s and was rolled back",
                            exc,
                            timeout=config.operation_timeout,
                        ) from exc
            except StoreError as exc:
                logger.error(
                    "Store operation failed",
                    extra={
                        "store_operation": operation,
                        "error_code": exc.error_code,
                        "error": exc.details.get("error"),
                    },
                    exc_info=exc.original_error is not None,
                )
                raise
            except SQLAlchemyError as exc:
                failure = TransactionFailure(operation, "Rolled back after database error", exc)
                logger.error(
                    "Store operation failed",
                    extra={
                        "store_operation": operation,
                        "error_code": failure.error_code,
                        "error": str(exc),
                    },
                    exc_info=True,
                )
                raise failure from exc


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _is_memory_sqlite(url: str) -> bool:
    if not url.startswith("sqlite"):
        return False
    database = url.split("://", 1)[-1]
    return database in ("", "/", "/:memory:") or "mode=memory" in database
