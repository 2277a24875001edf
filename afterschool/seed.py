"""
Demo catalog and the bootstrap/reset that restores it.

Resetting puts every seed lesson back to its seed values, including seat
counts, so bookings made before a restart no longer reduce availability.
That is only meant for demos and is therefore opt-in.
"""

import logging
from typing import Any, Dict, List

from .model.catalog import CatalogStore
from .model.seats import SeatLedger

log = logging.getLogger(__name__)

SEED_LESSONS: List[Dict[str, Any]] = [
    {"subject": "Mathematics", "location": "Hendon",
     "price": 100, "spaces": 5, "image": "/images/math.png"},
    {"subject": "English", "location": "Colindale",
     "price": 90, "spaces": 5, "image": "/images/english.png"},
    {"subject": "Science", "location": "Brent Cross",
     "price": 110, "spaces": 5, "image": "/images/science.png"},
    {"subject": "Art", "location": "Golders Green",
     "price": 85, "spaces": 5, "image": "/images/art.png"},
    {"subject": "Music", "location": "Hendon",
     "price": 95, "spaces": 5, "image": "/images/music.png"},
    {"subject": "Physical Education", "location": "Colindale",
     "price": 80, "spaces": 5, "image": "/images/pe.png"},
    {"subject": "Computer Science", "location": "Brent Cross",
     "price": 120, "spaces": 5, "image": "/images/cs.png"},
    {"subject": "History", "location": "Golders Green",
     "price": 88, "spaces": 5, "image": "/images/history.png"},
    {"subject": "Geography", "location": "Hendon",
     "price": 92, "spaces": 5, "image": "/images/geography.png"},
    {"subject": "Drama", "location": "Colindale",
     "price": 87, "spaces": 5, "image": "/images/drama.png"},
]


async def reset_lessons(
    catalog: CatalogStore,
    seats: SeatLedger,
    lessons: List[Dict[str, Any]] = SEED_LESSONS,
) -> Dict[str, int]:
    """Upsert ``lessons`` by (subject, location) and force their seats."""
    counts = await catalog.upsert_lessons(lessons)
    await seats.reset(counts)
    log.info("reset %d lessons to their initial spaces", len(counts))
    return counts


async def prime_seats(catalog: CatalogStore, seats: SeatLedger) -> int:
    """Make sure the ledger has a counter for every lesson in the catalog."""
    counts = await catalog.seat_counts()
    await seats.prime(counts)
    return len(counts)
