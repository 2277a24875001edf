# model/seats/_redis.py
"""
Redis seat ledger: counters live in one hash, ``{lesson_id: spaces}``.

Reservation is a Lua script, so the availability check and the
decrements of every lesson in an order run as one atomic step inside
Redis. Lesson existence is not known here; callers check the catalog.
"""

from __future__ import annotations
from typing import Any, Dict, List, Sequence

import redis.asyncio as redis

from ...infra.gate import Gated

SEATS_KEY = "seats"

# KEYS[1]: seats hash; ARGV: lesson ids, one entry per seat wanted
LUA_RESERVE = """
local want = {}
for _, id in ipairs(ARGV) do
    want[id] = (want[id] or 0) + 1
end
for id, n in pairs(want) do
    local have = tonumber(redis.call('HGET', KEYS[1], id) or '0')
    if have < n then
        return 0
    end
end
for id, n in pairs(want) do
    redis.call('HINCRBY', KEYS[1], id, -n)
end
return 1
"""


class SeatLedger:
    def __init__(self, *, r: redis.Redis, gated: Gated,
                 key: str = SEATS_KEY) -> None:
        self.r = r
        self.gated = gated
        self.key = key
        self._reserve = r.register_script(LUA_RESERVE)

    async def reserve(self, lesson_ids: Sequence[str]) -> bool:
        if not lesson_ids:
            return True
        async with self.gated():
            ok = await self._reserve(keys=[self.key], args=list(lesson_ids))
        return int(ok) == 1

    async def release(self, lesson_ids: Sequence[str]) -> None:
        async with self.gated():
            pipe = self.r.pipeline(transaction=True)
            for lesson_id in lesson_ids:
                pipe.hincrby(self.key, lesson_id, 1)
            await pipe.execute()

    async def set(self, lesson_id: str, spaces: int) -> bool:
        async with self.gated():
            await self.r.hset(self.key, lesson_id, spaces)
        return True

    async def reset(self, seats: Dict[str, int]) -> None:
        if not seats:
            return
        async with self.gated():
            await self.r.hset(self.key, mapping=seats)

    async def prime(self, seats: Dict[str, int]) -> None:
        """Create counters that do not exist yet; keep the live ones."""
        if not seats:
            return
        async with self.gated():
            pipe = self.r.pipeline(transaction=True)
            for lesson_id, spaces in seats.items():
                pipe.hsetnx(self.key, lesson_id, spaces)
            await pipe.execute()

    async def overlay(
        self, lessons: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        if not lessons:
            return lessons
        async with self.gated():
            live = await self.r.hmget(self.key, [ls["id"] for ls in lessons])
        out = []
        for lesson, spaces in zip(lessons, live):
            if spaces is not None:
                lesson = {**lesson, "spaces": int(spaces)}
            out.append(lesson)
        return out
