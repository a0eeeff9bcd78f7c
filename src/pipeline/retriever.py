"""
Source image retrieval.

One GET per invocation with a bounded timeout. No retries.
"""

import time

import httpx

from src.core.exceptions import DownloadError
from src.core.logging import get_logger
from src.modules.conversion.formatting import extract_file_name_from_url, format_file_size
from src.modules.conversion.models import RawImage

logger = get_logger(__name__)


async def download_image(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = 30.0
) -> RawImage:
    """
    Fetch the bytes at url.

    Raises:
        DownloadError: On transport failure, timeout or a non-2xx response
    """
    start_time = time.time()

    try:
        response = await client.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.warning("download_rejected", url=url, http_status=status)
        raise DownloadError(
            f"Unable to be downloaded:\n\n{url}\n\nHTTP {status} {e.response.reason_phrase}",
            url=url,
            http_status=status
        )
    except httpx.HTTPError as e:
        logger.warning("download_failed", url=url, error=str(e), error_type=type(e).__name__)
        raise DownloadError(
            f"Unable to be downloaded:\n\n{url}\n\n{type(e).__name__}: {e}",
            url=url
        )

    elapsed_ms = int((time.time() - start_time) * 1000)
    raw = RawImage(
        data=response.content,
        file_name=extract_file_name_from_url(url),
        elapsed_ms=elapsed_ms,
    )

    logger.info("download_completed", file_name=raw.file_name, size=raw.size, duration_ms=elapsed_ms)
    return raw


def describe_download(raw: RawImage) -> str:
    """Transcript fragment for a finished download."""
    return (
        f"Original Image: {raw.file_name}\n"
        f"File Size: {format_file_size(raw.size)}\n"
        f"Download Time: {raw.elapsed_ms} ms\n\n"
    )
