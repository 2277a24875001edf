"""
Shared fixtures.

API tests run the real application in-process: ``create_app`` with a
throwaway SQLite file, its lifespan entered by hand (ASGITransport does
not run it), and an ``httpx.AsyncClient`` talking to it over ASGI.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from afterschool.config import Settings
from afterschool.infra import timings
from afterschool.server import create_app


@pytest.fixture(autouse=True)
def _clear_timings():
    timings.reset()
    yield
    timings.reset()


@pytest.fixture
def static_dirs(tmp_path):
    static = tmp_path / "public"
    images = static / "images"
    images.mkdir(parents=True)
    (static / "index.html").write_text("<h1>Afterschool lessons</h1>")
    (images / "math.png").write_bytes(b"\x89PNG\r\n\x1a\nmath")
    return static, images


@pytest.fixture
def settings(tmp_path, static_dirs):
    static, images = static_dirs
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'afterschool.db'}",
        reset_on_start=True,
        storage_timeout=10.0,
        static_dir=str(static),
        images_dir=str(images),
    )


@pytest_asyncio.fixture
async def app(settings):
    app = create_app(settings)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

