from httpx import AsyncClient


async def lessons_by_subject(client: AsyncClient) -> dict:
    resp = await client.get("/api/lessons")
    assert resp.status_code == 200
    return {lesson["subject"]: lesson for lesson in resp.json()}
