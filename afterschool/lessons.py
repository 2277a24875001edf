"""Catalog operations: listing, search and the administrative seat update."""

import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidInput, NotFound
from .helpers import is_valid_id, parse_spaces
from .infra.timings import timeit
from .model.catalog import CatalogStore
from .model.seats import SeatLedger

log = logging.getLogger(__name__)


async def list_lessons(
    catalog: CatalogStore, seats: SeatLedger
) -> List[Dict[str, Any]]:
    async with timeit("lessons.list"):
        lessons = await catalog.list_lessons()
        return await seats.overlay(lessons)


async def search_lessons(
    catalog: CatalogStore, seats: SeatLedger, query: Optional[str]
) -> List[Dict[str, Any]]:
    # literal substring match on subject or location, case-insensitive;
    # the query is matched as given, whitespace included
    if not query:
        raise InvalidInput("Search query is required")
    async with timeit("lessons.search"):
        lessons = await catalog.search(query)
        return await seats.overlay(lessons)


async def update_lesson_spaces(
    catalog: CatalogStore, seats: SeatLedger, lesson_id: str, payload: Any
) -> int:
    """Set a lesson's free seats to an absolute value."""
    if not is_valid_id(lesson_id) or not isinstance(payload, dict):
        raise InvalidInput()
    spaces = parse_spaces(payload.get("spaces"))

    async with timeit("lessons.update_spaces"):
        if not await catalog.exists(lesson_id):
            raise NotFound("Lesson not found")
        if not await seats.set(lesson_id, spaces):
            raise NotFound("Lesson not found")
    log.info("lesson %s spaces set to %d", lesson_id, spaces)
    return spaces
