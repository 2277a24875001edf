import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, Callable

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageUnavailable

log = logging.getLogger(__name__)

Gated = Callable[[], AsyncContextManager[None]]

_STORAGE_ERRORS = (SQLAlchemyError, RedisError, OSError)


# DB-GATE: every storage round trip goes through here
@asynccontextmanager
async def _gated(sem: asyncio.Semaphore, timeout: float):
    try:
        async with asyncio.timeout(timeout):
            async with sem:
                yield
    except TimeoutError as e:
        log.error("storage operation exceeded %.1fs", timeout)
        raise StorageUnavailable() from e
    except _STORAGE_ERRORS as e:
        log.error("storage operation failed: %s", e, exc_info=True)
        raise StorageUnavailable() from e


def make_gate(limit: int, timeout: float) -> Gated:
    """Build a ``gated()`` factory for ``async with gated(): ...``.

    At most ``limit`` storage operations run at once, each bounded by
    ``timeout`` seconds including the wait for a slot. Driver errors and
    timeouts leave the block as ``StorageUnavailable``.
    """
    sem = asyncio.Semaphore(max(1, limit))

    def gated():
        return _gated(sem, timeout)

    return gated
