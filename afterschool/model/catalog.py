"""
SQL store for the lesson catalog and the order book.

Every public method runs inside the storage gate and its own transaction,
so a store can be shared by the steps of one request without holding a
transaction open between them. Seat counters are not written here; see
``afterschool.model.seats``.
"""

from __future__ import annotations
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import bindparam, select, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from ..helpers import escape_like, now_ts, to_iso
from ..infra.gate import Gated
from .orm import Base, Order

LESSON_COLUMNS = "id, subject, location, price, spaces, image"
ORDERS_LIMIT_MAX = 500


def clamp_order_limit(limit: int) -> int:
    return max(1, min(limit, ORDERS_LIMIT_MAX))


async def create_schema(conn: AsyncConnection) -> None:
    await conn.run_sync(Base.metadata.create_all)


def lesson_to_json(row: Any) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "subject": row["subject"],
        "location": row["location"],
        "price": row["price"],
        "spaces": int(row["spaces"]),
        "image": row["image"],
    }


def order_to_json(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "name": order.name,
        "phone": order.phone,
        "lessonIds": list(order.lesson_ids),
        "orderDate": to_iso(order.created_at),
    }


class CatalogStore:
    def __init__(self, *, db: AsyncSession, gated: Gated) -> None:
        self.db = db
        self.gated = gated

    # ----------------------------
    # lessons
    # ----------------------------
    async def list_lessons(self) -> List[Dict[str, Any]]:
        async with self.gated():
            async with self.db.begin():
                result = await self.db.execute(
                    text(f"SELECT {LESSON_COLUMNS} FROM lessons")
                )
                rows = result.mappings().all()
        return [lesson_to_json(r) for r in rows]

    async def search(self, query: str) -> List[Dict[str, Any]]:
        # both sides go through the database lower(); sqlite folds ASCII only
        pattern = f"%{escape_like(query)}%"
        async with self.gated():
            async with self.db.begin():
                result = await self.db.execute(
                    text(f"""
                        SELECT {LESSON_COLUMNS} FROM lessons
                        WHERE lower(subject) LIKE lower(:p) ESCAPE '\\'
                           OR lower(location) LIKE lower(:p) ESCAPE '\\'
                    """),
                    {"p": pattern},
                )
                rows = result.mappings().all()
        return [lesson_to_json(r) for r in rows]

    async def existing_ids(self, lesson_ids: Iterable[str]) -> Set[str]:
        ids = sorted(set(lesson_ids))
        if not ids:
            return set()
        stmt = text(
            "SELECT id FROM lessons WHERE id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        async with self.gated():
            async with self.db.begin():
                result = await self.db.execute(stmt, {"ids": ids})
                return {r[0] for r in result.all()}

    async def exists(self, lesson_id: str) -> bool:
        return lesson_id in await self.existing_ids([lesson_id])

    async def seat_counts(self) -> Dict[str, int]:
        """Seat counts as stored in the lessons table, keyed by id."""
        async with self.gated():
            async with self.db.begin():
                result = await self.db.execute(
                    text("SELECT id, spaces FROM lessons")
                )
                return {r[0]: int(r[1]) for r in result.all()}

    async def upsert_lessons(
        self, lessons: Iterable[Dict[str, Any]]
    ) -> Dict[str, int]:
        """Insert or refresh lessons keyed by (subject, location).

        Existing rows keep their id; price, image and spaces are forced to
        the given values. Returns ``{lesson_id: spaces}``.
        """
        out: Dict[str, int] = {}
        async with self.gated():
            async with self.db.begin():
                for lesson in lessons:
                    row = (await self.db.execute(text("""
                        INSERT INTO lessons
                            (id, subject, location, price, spaces, image)
                        VALUES (:id, :subject, :location, :price, :spaces,
                                :image)
                        ON CONFLICT (subject, location) DO UPDATE
                        SET price = excluded.price,
                            spaces = excluded.spaces,
                            image = excluded.image
                        RETURNING id
                    """), {
                        "id": uuid.uuid4().hex,
                        "subject": lesson["subject"],
                        "location": lesson["location"],
                        "price": lesson["price"],
                        "spaces": lesson["spaces"],
                        "image": lesson["image"],
                    })).first()
                    out[row[0]] = int(lesson["spaces"])
        return out

    # ----------------------------
    # orders
    # ----------------------------
    async def add_order(
        self, name: str, phone: str, lesson_ids: List[str]
    ) -> Dict[str, Any]:
        order = Order(
            id=uuid.uuid4().hex,
            name=name,
            phone=phone,
            lesson_ids=list(lesson_ids),
            created_at=now_ts(),
        )
        async with self.gated():
            async with self.db.begin():
                self.db.add(order)
        return order_to_json(order)

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        async with self.gated():
            async with self.db.begin():
                order = await self.db.get(Order, order_id)
                return order_to_json(order) if order is not None else None

    async def list_orders(self, limit: int = 200) -> List[Dict[str, Any]]:
        stmt = (
            select(Order)
            .order_by(Order.created_at.desc())
            .limit(clamp_order_limit(limit))
        )
        async with self.gated():
            async with self.db.begin():
                orders = (await self.db.execute(stmt)).scalars().all()
                return [order_to_json(o) for o in orders]
