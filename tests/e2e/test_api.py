import io

import pytest
from PIL import Image

SOURCE = "https://images.example.com/catalogue/apple.png"
DESTINATION = "s3://bucket/products/large/apple.png"


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_convert_end_to_end(client, source_server, image_factory, tmp_path):
    source_server.add(SOURCE, image_factory(size=(1920, 1080), subject=(760, 390, 1160, 690)))

    response = await client.get(
        "/api/v1/convert",
        params={"source": SOURCE, "destination": DESTINATION},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "Source Dimensions: 1920x1080" in response.text
    assert "Trimmed Dimensions: 400x300" in response.text
    assert "Uploaded:" in response.text

    full = Image.open(io.BytesIO((tmp_path / "bucket/products/large/apple.webp").read_bytes()))
    thumbnail = Image.open(io.BytesIO((tmp_path / "bucket/products/large/200/apple.webp").read_bytes()))

    assert full.size == (400, 300)
    assert thumbnail.size == (200, 200)
    assert thumbnail.mode == "RGBA"
    assert thumbnail.getpixel((0, 0))[3] == 0


@pytest.mark.asyncio
async def test_convert_is_idempotent(client, source_server, image_factory):
    source_server.add(SOURCE, image_factory())
    params = {"source": SOURCE, "destination": DESTINATION}

    first = await client.get("/api/v1/convert", params=params)
    second = await client.get("/api/v1/convert", params=params)

    assert first.status_code == 200
    assert second.status_code == 200
    assert "already exists" in second.text
    assert source_server.count(SOURCE) == 1


@pytest.mark.asyncio
async def test_convert_missing_parameters(client):
    response = await client.get("/api/v1/convert")

    assert response.status_code == 400
    assert "Example:" in response.text


@pytest.mark.asyncio
async def test_convert_unreachable_source(client):
    response = await client.get(
        "/api/v1/convert",
        params={"source": "https://images.example.com/missing.png", "destination": DESTINATION},
    )

    assert response.status_code == 400
    assert "Unable to be downloaded" in response.text


@pytest.mark.asyncio
async def test_metrics_endpoint(client, source_server, image_factory):
    source_server.add(SOURCE, image_factory())
    await client.get("/api/v1/convert", params={"source": SOURCE, "destination": DESTINATION})

    response = await client.get("/api/v1/metrics")

    assert response.status_code == 200
    assert "webp_conversions_total" in response.text
