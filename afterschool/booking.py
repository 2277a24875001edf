"""
Order placement.

The flow is validate -> resolve -> reserve -> record:

1. ``name``, ``phone`` and ``lessons`` are checked before touching storage.
2. Every distinct lesson id must exist, otherwise the order is rejected
   with ``NotFound``.
3. One seat per listed id is reserved through the seat ledger in a single
   all-or-nothing step; a lesson without enough seats rejects the whole
   order with ``CapacityExceeded`` and nothing changes.
4. The order record is written. If that write fails, the reserved seats
   are handed back before the error propagates.
"""

import logging
from typing import Any, Dict, List, Tuple

from .errors import (
    CapacityExceeded, InvalidInput, NotFound, StorageUnavailable
)
from .helpers import is_valid_id, require_text
from .infra.timings import timeit
from .model.catalog import CatalogStore
from .model.seats import SeatLedger

log = logging.getLogger(__name__)


def validate_order(payload: Any) -> Tuple[str, str, List[str]]:
    if not isinstance(payload, dict):
        raise InvalidInput()
    name = require_text(payload, "name")
    phone = require_text(payload, "phone")
    lesson_ids = payload.get("lessons")
    if not isinstance(lesson_ids, list) or not lesson_ids:
        raise InvalidInput("lessons must be a non-empty list of lesson ids")
    if not all(is_valid_id(i) for i in lesson_ids):
        raise InvalidInput("lessons contains an invalid lesson id")
    return name, phone, lesson_ids


async def place_order(
    catalog: CatalogStore, seats: SeatLedger, payload: Any
) -> Dict[str, Any]:
    name, phone, lesson_ids = validate_order(payload)

    async with timeit("orders.resolve"):
        found = await catalog.existing_ids(lesson_ids)
    missing = [i for i in dict.fromkeys(lesson_ids) if i not in found]
    if missing:
        log.info("order rejected, unknown lessons: %s", ", ".join(missing))
        raise NotFound("Lesson not found")

    async with timeit("seats.reserve"):
        reserved = await seats.reserve(lesson_ids)
    if not reserved:
        log.info("order rejected, fully booked: %s", ", ".join(lesson_ids))
        raise CapacityExceeded()

    try:
        async with timeit("orders.add"):
            order = await catalog.add_order(name, phone, lesson_ids)
    except Exception:
        await _give_back(seats, lesson_ids)
        raise
    log.info("order %s placed for %d seat(s)", order["id"], len(lesson_ids))
    return order


async def _give_back(seats: SeatLedger, lesson_ids: List[str]) -> None:
    try:
        async with timeit("seats.release"):
            await seats.release(lesson_ids)
    except StorageUnavailable:
        # the seats stay taken; an operator has to correct them by hand
        log.error("could not release seats for lessons %s after a failed "
                  "order write", ", ".join(lesson_ids))


async def get_order(catalog: CatalogStore, order_id: str) -> Dict[str, Any]:
    if not is_valid_id(order_id):
        raise InvalidInput("invalid order id")
    order = await catalog.get_order(order_id)
    if order is None:
        raise NotFound("Order not found")
    return order
