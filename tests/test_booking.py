"""Booking workflow against in-memory stores."""

import uuid

import pytest

from afterschool import booking, lessons
from afterschool.errors import (
    CapacityExceeded, InvalidInput, NotFound, StorageUnavailable
)
from tests.fakes import FakeCatalog, FakeSeats

A = uuid.uuid4().hex
B = uuid.uuid4().hex


@pytest.fixture
def catalog():
    return FakeCatalog({
        A: {"id": A, "subject": "Art", "location": "Golders Green",
            "price": 85, "spaces": 2, "image": "/images/art.png"},
        B: {"id": B, "subject": "Drama", "location": "Colindale",
            "price": 87, "spaces": 1, "image": "/images/drama.png"},
    })


@pytest.fixture
def seats():
    return FakeSeats({A: 2, B: 1})


def _payload(*ids):
    return {"name": "Grace", "phone": "07700900456", "lessons": list(ids)}


@pytest.mark.asyncio
async def test_place_order_reserves_and_records(catalog, seats):
    order = await booking.place_order(catalog, seats, _payload(A, B))

    assert order["lessonIds"] == [A, B]
    assert seats.counts == {A: 1, B: 0}
    assert catalog.orders == [order]


@pytest.mark.asyncio
async def test_capacity_exceeded_leaves_everything_untouched(catalog, seats):
    with pytest.raises(CapacityExceeded):
        await booking.place_order(catalog, seats, _payload(A, B, B))

    assert seats.counts == {A: 2, B: 1}
    assert catalog.orders == []


@pytest.mark.asyncio
async def test_unknown_lesson_is_not_found(catalog, seats):
    with pytest.raises(NotFound):
        await booking.place_order(catalog, seats,
                                  _payload(A, uuid.uuid4().hex))

    assert seats.counts == {A: 2, B: 1}
    assert catalog.orders == []


@pytest.mark.asyncio
async def test_failed_order_write_gives_seats_back(catalog, seats):
    catalog.fail_add_order = True

    with pytest.raises(StorageUnavailable):
        await booking.place_order(catalog, seats, _payload(A, B))

    assert seats.counts == {A: 2, B: 1}
    assert seats.released == [A, B]


@pytest.mark.asyncio
async def test_failed_release_still_reports_the_write_error(
    catalog, seats, caplog
):
    catalog.fail_add_order = True
    seats.fail_release = True

    with pytest.raises(StorageUnavailable):
        await booking.place_order(catalog, seats, _payload(A))

    assert seats.counts[A] == 1
    assert "could not release seats" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    None,
    "order",
    {"name": "Grace", "phone": "1", "lessons": []},
    {"name": "", "phone": "1", "lessons": [A]},
    {"name": "Grace", "phone": None, "lessons": [A]},
    {"name": "Grace", "phone": "1", "lessons": ["G" * 32]},
])
async def test_validation_happens_before_storage(catalog, seats, payload):
    with pytest.raises(InvalidInput):
        await booking.place_order(catalog, seats, payload)

    assert catalog.calls == 0


@pytest.mark.asyncio
async def test_get_order(catalog, seats):
    order = await booking.place_order(catalog, seats, _payload(B))

    assert await booking.get_order(catalog, order["id"]) == order
    with pytest.raises(NotFound):
        await booking.get_order(catalog, uuid.uuid4().hex)
    with pytest.raises(InvalidInput):
        await booking.get_order(catalog, "../etc")


@pytest.mark.asyncio
async def test_update_spaces_sets_absolute_value(catalog, seats):
    assert await lessons.update_lesson_spaces(
        catalog, seats, A, {"spaces": 9}) == 9
    assert seats.counts[A] == 9


@pytest.mark.asyncio
async def test_update_spaces_validates_before_storage(catalog, seats):
    with pytest.raises(InvalidInput):
        await lessons.update_lesson_spaces(catalog, seats, A, {"spaces": -1})
    with pytest.raises(InvalidInput):
        await lessons.update_lesson_spaces(catalog, seats, "x", {"spaces": 1})
    assert catalog.calls == 0

    with pytest.raises(NotFound):
        await lessons.update_lesson_spaces(
            catalog, seats, uuid.uuid4().hex, {"spaces": 1})
    assert seats.counts == {A: 2, B: 1}
