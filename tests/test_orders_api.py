import asyncio
import uuid

import pytest

from tests.helpers import lessons_by_subject


def _order(*lesson_ids, name="Ada Lovelace", phone="07700900123"):
    return {"name": name, "phone": phone, "lessons": list(lesson_ids)}


async def _orders(client):
    resp = await client.get("/api/orders")
    assert resp.status_code == 200
    return resp.json()["items"]


@pytest.mark.asyncio
async def test_order_for_several_lessons_takes_one_seat_each(client):
    lessons = await lessons_by_subject(client)
    wanted = [lessons[s]["id"] for s in ("Art", "Drama", "History")]

    resp = await client.post("/api/orders", json=_order(*wanted))

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Order placed successfully"

    after = await lessons_by_subject(client)
    for subject, lesson in after.items():
        expected = 4 if lesson["id"] in wanted else 5
        assert lesson["spaces"] == expected, subject

    orders = await _orders(client)
    assert len(orders) == 1
    assert orders[0]["id"] == body["order_id"]
    assert orders[0]["lessonIds"] == wanted
    assert orders[0]["name"] == "Ada Lovelace"
    assert orders[0]["phone"] == "07700900123"
    assert orders[0]["orderDate"].endswith("+00:00")


@pytest.mark.asyncio
async def test_order_can_be_fetched_by_id(client):
    lesson = (await lessons_by_subject(client))["Science"]
    placed = await client.post("/api/orders", json=_order(lesson["id"]))
    order_id = placed.json()["order_id"]

    resp = await client.get(f"/api/orders/{order_id}")

    assert resp.status_code == 200
    assert resp.json()["lessonIds"] == [lesson["id"]]
    assert (await client.get(f"/api/orders/{uuid.uuid4().hex}")
            ).status_code == 404
    assert (await client.get("/api/orders/xyz")).status_code == 400


@pytest.mark.asyncio
async def test_order_for_full_lesson_changes_nothing(client):
    lessons = await lessons_by_subject(client)
    full, free = lessons["English"], lessons["Music"]
    await client.put(f"/api/lessons/{full['id']}", json={"spaces": 0})

    resp = await client.post("/api/orders",
                             json=_order(free["id"], full["id"]))

    assert resp.status_code == 400
    assert resp.json() == {"error": "Some lessons are fully booked"}
    after = await lessons_by_subject(client)
    assert after["Music"]["spaces"] == 5
    assert after["English"]["spaces"] == 0
    assert await _orders(client) == []


@pytest.mark.asyncio
async def test_duplicate_ids_take_one_seat_per_occurrence(client):
    lesson = (await lessons_by_subject(client))["Geography"]
    await client.put(f"/api/lessons/{lesson['id']}", json={"spaces": 2})

    ok = await client.post("/api/orders",
                           json=_order(lesson["id"], lesson["id"]))
    assert ok.status_code == 200
    assert (await lessons_by_subject(client))["Geography"]["spaces"] == 0

    await client.put(f"/api/lessons/{lesson['id']}", json={"spaces": 1})
    rejected = await client.post("/api/orders",
                                 json=_order(lesson["id"], lesson["id"]))
    assert rejected.status_code == 400
    assert (await lessons_by_subject(client))["Geography"]["spaces"] == 1


@pytest.mark.asyncio
async def test_order_with_unknown_lesson_is_rejected_whole(client):
    before = await lessons_by_subject(client)
    known = before["Art"]["id"]

    resp = await client.post("/api/orders",
                             json=_order(known, uuid.uuid4().hex))

    assert resp.status_code == 404
    assert resp.json() == {"error": "Lesson not found"}
    assert await lessons_by_subject(client) == before
    assert await _orders(client) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"phone": "07700900123", "lessons": ["0" * 32]},
    {"name": "Ada", "lessons": ["0" * 32]},
    {"name": "  ", "phone": "07700900123", "lessons": ["0" * 32]},
    {"name": "Ada", "phone": 7700900123, "lessons": ["0" * 32]},
    {"name": "Ada", "phone": "07700900123"},
    {"name": "Ada", "phone": "07700900123", "lessons": []},
    {"name": "Ada", "phone": "07700900123", "lessons": "0" * 32},
    {"name": "Ada", "phone": "07700900123", "lessons": ["not-an-id"]},
    {"name": "Ada", "phone": "07700900123", "lessons": [42]},
    ["Ada", "07700900123"],
])
async def test_invalid_order_is_rejected_before_storage(client, body):
    resp = await client.post("/api/orders", json=body)

    assert resp.status_code == 400
    assert await _orders(client) == []


@pytest.mark.asyncio
async def test_order_body_must_be_json(client):
    resp = await client.post("/api/orders", content=b"{name: Ada",
                             headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "request body must be JSON"}


@pytest.mark.asyncio
async def test_two_orders_race_for_the_last_seat(client):
    lesson = (await lessons_by_subject(client))["Computer Science"]
    await client.put(f"/api/lessons/{lesson['id']}", json={"spaces": 1})

    first, second = await asyncio.gather(
        client.post("/api/orders", json=_order(lesson["id"], name="Ann")),
        client.post("/api/orders", json=_order(lesson["id"], name="Bob")),
    )

    assert sorted([first.status_code, second.status_code]) == [200, 400]
    loser = first if first.status_code == 400 else second
    assert loser.json() == {"error": "Some lessons are fully booked"}
    assert (await lessons_by_subject(client))["Computer Science"][
        "spaces"] == 0
    assert len(await _orders(client)) == 1


@pytest.mark.asyncio
async def test_rush_never_oversells(client):
    lesson = (await lessons_by_subject(client))["Drama"]
    await client.put(f"/api/lessons/{lesson['id']}", json={"spaces": 3})

    results = await asyncio.gather(*(
        client.post("/api/orders", json=_order(lesson["id"]))
        for _ in range(10)
    ))

    codes = [r.status_code for r in results]
    assert codes.count(200) == 3
    assert codes.count(400) == 7
    assert (await lessons_by_subject(client))["Drama"]["spaces"] == 0
    assert len(await _orders(client)) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("limit, echoed", [(-5, 1), (0, 1), (10_000, 500)])
async def test_order_listing_echoes_clamped_limit(client, limit, echoed):
    resp = await client.get("/api/orders", params={"limit": limit})

    assert resp.status_code == 200
    assert resp.json() == {"items": [], "limit": echoed}


@pytest.mark.asyncio
async def test_malformed_query_parameter_is_invalid_input(client):
    resp = await client.get("/api/orders", params={"limit": "abc"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid input"}
