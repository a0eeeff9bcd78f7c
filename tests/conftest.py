import io
from typing import AsyncGenerator, Dict, Optional, Tuple

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from PIL import Image

from src.api.dependencies import get_http_client
from src.core.storage import LocalStorage, StorageFactory, get_storage
from src.main import app


def make_image(
    size: Tuple[int, int] = (64, 64),
    subject: Optional[Tuple[int, int, int, int]] = (16, 16, 48, 48),
    subject_colour=(220, 30, 30),
    background=(255, 255, 255),
    fmt: str = "PNG",
) -> bytes:
    """White canvas with a solid rectangle subject."""
    image = Image.new("RGB", size, background)
    if subject:
        image.paste(subject_colour, subject)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


class SourceServer:
    """In-memory HTTP origin for MockTransport. Unknown URLs answer 404."""

    def __init__(self):
        self.routes: Dict[str, Tuple[int, bytes]] = {}
        self.calls: Dict[str, int] = {}

    def add(self, url: str, body: bytes, status: int = 200):
        self.routes[url] = (status, body)

    def count(self, url: str) -> int:
        return self.calls.get(url, 0)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls[url] = self.calls.get(url, 0) + 1
        status, body = self.routes.get(url, (404, b"not found"))
        return httpx.Response(status, content=body)


@pytest.fixture
def source_server() -> SourceServer:
    return SourceServer()


@pytest.fixture
async def http_client(source_server) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(source_server.handler)) as c:
        yield c


@pytest.fixture
def local_storage(tmp_path) -> LocalStorage:
    return LocalStorage(base_path=str(tmp_path))


@pytest.fixture
async def client(local_storage, http_client) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_storage] = lambda: local_storage
    app.dependency_overrides[get_http_client] = lambda: http_client

    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac

    app.dependency_overrides.clear()
    StorageFactory.reset()


@pytest.fixture
def image_factory():
    return make_image
