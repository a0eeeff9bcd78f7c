from unittest.mock import AsyncMock

import httpx
import pytest

from src.core.exceptions import StorageLookupError
from src.modules.conversion.models import ResolvedTarget
from src.pipeline.existence import build_cdn_url, check_existence, probe_cdn

TARGET = ResolvedTarget(bucket="bucket", key_prefix="products/large/", base_file_name="apple.webp")
CDN_URL = "https://cdn.example.com/products/large/apple.webp"


def _client(status=None, exc=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if exc:
            raise exc
        return httpx.Response(status)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_build_cdn_url_uses_key_prefix():
    assert build_cdn_url("cdn.example.com/", TARGET) == CDN_URL


def test_build_cdn_url_probe_path_replaces_prefix():
    url = build_cdn_url("https://cdn.example.com", TARGET, "/images/")
    assert url == "https://cdn.example.com/images/apple.webp"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,exists",
    [(200, True), (404, False), (403, False), (500, True), (301, True)],
)
async def test_probe_cdn_status_mapping(status, exists):
    async with _client(status=status) as client:
        result = await probe_cdn(client, CDN_URL)

    assert result.exists is exists


@pytest.mark.asyncio
async def test_probe_cdn_transport_error_counts_as_existing():
    async with _client(exc=httpx.ConnectError("refused")) as client:
        result = await probe_cdn(client, CDN_URL)

    assert result.exists is True
    assert "failed" in result.message


@pytest.mark.asyncio
async def test_storage_only_when_cdn_not_configured():
    storage = AsyncMock()
    storage.exists.return_value = False
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await check_existence(storage, client, TARGET)

    assert result.exists is False
    assert calls == []
    storage.exists.assert_awaited_once_with("bucket", "products/large/apple.webp")


@pytest.mark.asyncio
async def test_storage_hit():
    storage = AsyncMock()
    storage.exists.return_value = True

    async with _client(status=404) as client:
        result = await check_existence(storage, client, TARGET, cdn_base="cdn.example.com")

    assert result.exists is True
    assert result.source == "storage"
    assert "already exists on bucket bucket" in result.message


@pytest.mark.asyncio
async def test_cdn_hit_skips_storage():
    storage = AsyncMock()

    async with _client(status=200) as client:
        result = await check_existence(storage, client, TARGET, cdn_base="cdn.example.com")

    assert result.exists is True
    assert result.source == "cdn"
    storage.exists.assert_not_awaited()


@pytest.mark.asyncio
async def test_ambiguous_storage_lookup_counts_as_existing():
    storage = AsyncMock()
    storage.exists.side_effect = StorageLookupError("S3 lookup failed", key="products/large/apple.webp")

    async with _client(status=404) as client:
        result = await check_existence(storage, client, TARGET)

    assert result.exists is True
    assert result.source == "storage"
