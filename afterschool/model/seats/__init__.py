# model/seats/__init__.py
from typing import Optional, Protocol, Sequence, Dict, List, Any
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from ...infra.gate import Gated
from ._redis import SeatLedger as RedisSeatLedger, SEATS_KEY
from ._sql import SeatLedger as SqlSeatLedger


class SeatLedger(Protocol):
    async def reserve(self, lesson_ids: Sequence[str]) -> bool: ...
    async def release(self, lesson_ids: Sequence[str]) -> None: ...
    async def set(self, lesson_id: str, spaces: int) -> bool: ...
    async def reset(self, seats: Dict[str, int]) -> None: ...
    async def prime(self, seats: Dict[str, int]) -> None: ...
    async def overlay(
        self, lessons: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]: ...


# Factory keeps server.py simple and constructor-agnostic:
def new_ledger(backend: str, *, gated: Gated,
               db: Optional[AsyncSession] = None,
               r: Optional[redis.Redis] = None,
               key: str = SEATS_KEY) -> SeatLedger:
    if backend == "sql":
        if db is None:
            raise RuntimeError("SeatLedger(sql) requires db=AsyncSession")
        return SqlSeatLedger(db=db, gated=gated)
    if backend == "redis":
        if r is None:
            raise RuntimeError("SeatLedger(redis) requires r=redis.Redis")
        return RedisSeatLedger(r=r, gated=gated, key=key)
    raise RuntimeError(f"unknown seats backend: {backend!r}")


__all__ = [
    "SeatLedger", "SqlSeatLedger", "RedisSeatLedger", "new_ledger",
    "SEATS_KEY",
]
