import asyncio
import logging
import random

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)

log = logging.getLogger(__name__)

# postgres: serialization_failure, deadlock_detected
_RETRY_SQLSTATES = {"40001", "40P01"}


def _normalize_async_url(url: str) -> str:
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def make_async_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_timeout: int = 30,
):
    """Return ``(engine, SessionAsync, pool_size)`` for ``database_url``.

    ``pool_size`` is None for SQLite, where SQLAlchemy picks the pool.
    """
    db_url = _normalize_async_url(database_url)
    kw = dict(pool_pre_ping=True)

    effective_pool = None
    if db_url.startswith("postgresql+asyncpg://"):
        effective_pool = pool_size
        kw.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
        )

    engine = create_async_engine(db_url, **kw)

    if db_url.startswith("sqlite+aiosqlite://"):
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, _):
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA busy_timeout=5000;")
            cur.execute("PRAGMA synchronous=NORMAL;")
            cur.close()

    SessionAsync = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, SessionAsync, effective_pool


def is_write_conflict(exc: BaseException) -> bool:
    # sqlite reports lock contention as OperationalError ("database is locked")
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return code in _RETRY_SQLSTATES
    return False


async def with_conflict_retry(fn, *args, attempts: int = 5,
                              base_delay: float = 0.02):
    """Run ``await fn(*args)``, retrying on transient write conflicts.

    ``fn`` must run its own transaction so that a retry starts clean.
    Backoff is exponential with full jitter.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await fn(*args)
        except DBAPIError as e:
            if attempt == attempts or not is_write_conflict(e):
                raise
            delay = random.uniform(0, base_delay * (2 ** (attempt - 1)))
            log.warning("write conflict on attempt %d/%d, retrying in "
                        "%.3fs: %s", attempt, attempts, delay, e.orig)
            await asyncio.sleep(delay)
