# model/seats/_sql.py
"""
SQL seat ledger: the counters are the ``spaces`` column of ``lessons``.

A reservation is one transaction of conditional decrements
(``... WHERE spaces > 0``). The first decrement that matches no row aborts
the transaction, so either every seat of an order is taken or none is.
Concurrent reservations for the same lesson serialize on the row lock
(postgres) or the database write lock (sqlite); lock contention that
surfaces as an error is retried with backoff.
"""

from __future__ import annotations
from typing import Any, Dict, List, Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ...infra.gate import Gated
from ...infra.sql import with_conflict_retry


class _SoldOut(Exception):
    pass


SQL_TAKE_SEAT = text("""
    UPDATE lessons
    SET spaces = spaces - 1
    WHERE id = :id AND spaces > 0
    RETURNING id
""")

SQL_GIVE_SEAT = text("""
    UPDATE lessons
    SET spaces = spaces + 1
    WHERE id = :id
""")

SQL_RESET_SEATS = text("""
    UPDATE lessons
    SET spaces = :spaces
    WHERE id = :id
""")

SQL_SET_SEATS = text("""
    UPDATE lessons
    SET spaces = :spaces
    WHERE id = :id
    RETURNING id
""")


class SeatLedger:
    def __init__(self, *, db: AsyncSession, gated: Gated) -> None:
        self.db = db
        self.gated = gated

    # UN-GATED internal function
    async def _reserve_once(self, lesson_ids: List[str]) -> None:
        async with self.db.begin():
            for lesson_id in lesson_ids:
                row = (await self.db.execute(
                    SQL_TAKE_SEAT, {"id": lesson_id}
                )).first()
                if row is None:
                    raise _SoldOut(lesson_id)

    # UN-GATED internal function
    async def _release_once(self, lesson_ids: List[str]) -> None:
        async with self.db.begin():
            for lesson_id in lesson_ids:
                await self.db.execute(SQL_GIVE_SEAT, {"id": lesson_id})

    async def reserve(self, lesson_ids: Sequence[str]) -> bool:
        async with self.gated():
            try:
                await with_conflict_retry(self._reserve_once, list(lesson_ids))
            except _SoldOut:
                return False
        return True

    async def release(self, lesson_ids: Sequence[str]) -> None:
        async with self.gated():
            await with_conflict_retry(self._release_once, list(lesson_ids))

    async def set(self, lesson_id: str, spaces: int) -> bool:
        async with self.gated():
            async with self.db.begin():
                row = (await self.db.execute(
                    SQL_SET_SEATS, {"id": lesson_id, "spaces": spaces}
                )).first()
        return row is not None

    async def reset(self, seats: Dict[str, int]) -> None:
        async with self.gated():
            async with self.db.begin():
                for lesson_id, spaces in seats.items():
                    await self.db.execute(
                        SQL_RESET_SEATS, {"id": lesson_id, "spaces": spaces}
                    )

    async def prime(self, seats: Dict[str, int]) -> None:
        # the lessons table already is the ledger
        return None

    async def overlay(
        self, lessons: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        return lessons
