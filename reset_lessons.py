"""
Restore the demo lessons and their seat counts without starting the API.

  DATABASE_URL=sqlite:///./afterschool.db python reset_lessons.py
  DATABASE_URL=... SEATS_BACKEND=redis REDIS_URL=... python reset_lessons.py
"""
import asyncio
import logging
import sys

import redis.asyncio as redis

from afterschool.config import Settings
from afterschool.errors import ConfigError
from afterschool.infra.gate import make_gate
from afterschool.infra.logs import setup_logging
from afterschool.infra.sql import make_async_engine
from afterschool.model.catalog import CatalogStore, create_schema
from afterschool.model.seats import new_ledger
from afterschool.seed import reset_lessons

log = logging.getLogger("reset_lessons")


async def main(settings: Settings) -> None:
    engine, SessionAsync, _ = make_async_engine(settings.database_url)
    gated = make_gate(1, settings.storage_timeout)
    r = None
    if settings.seats_backend == "redis":
        r = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        async with engine.begin() as conn:
            await create_schema(conn)
        async with SessionAsync() as session:
            catalog = CatalogStore(db=session, gated=gated)
            seats = new_ledger(settings.seats_backend, gated=gated,
                               db=session, r=r)
            counts = await reset_lessons(catalog, seats)
        log.info("✅ %d lessons present / reset", len(counts))
    finally:
        if r is not None:
            await r.aclose()
        await engine.dispose()


if __name__ == '__main__':
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        sys.exit(2)
    setup_logging(settings.log_level)
    asyncio.run(main(settings))
