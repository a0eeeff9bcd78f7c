"""
FastAPI Dependencies for the Conversion Service

Provides dependency injection for:
- Storage (process-wide singleton from StorageFactory)
- Outbound HTTP client (created in the lifespan handler, shared)
- ConversionPipeline (per-request, wired from the shared collaborators)
"""

import httpx
from fastapi import Depends, Request

from src.core.config import settings
from src.core.storage import IStorage, get_storage
from src.pipeline.orchestrator import ConversionPipeline


# =============================================================================
# HTTP Client
# =============================================================================

def create_http_client() -> httpx.AsyncClient:
    """Shared client for downloads and CDN probes."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.DOWNLOAD_TIMEOUT_SECONDS),
        headers={"User-Agent": f"{settings.APP_NAME}/{settings.APP_VERSION}"},
    )


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Returns the HTTP client stored on app state by the lifespan handler."""
    return request.app.state.http_client


# =============================================================================
# Pipeline
# =============================================================================

def get_pipeline(
    storage: IStorage = Depends(get_storage),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> ConversionPipeline:
    """Returns a ConversionPipeline over the shared collaborators."""
    return ConversionPipeline(
        storage=storage,
        http_client=http_client,
        cdn_base=settings.CDN_BASE_URL,
        download_timeout=settings.DOWNLOAD_TIMEOUT_SECONDS,
        cdn_timeout=settings.CDN_TIMEOUT_SECONDS,
        greyscale_threshold=settings.GREYSCALE_THRESHOLD,
    )
