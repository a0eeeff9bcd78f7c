"""
Pipeline Stage Implementations

Each stage is a separate function that can be called independently. Stages
never raise for expected failures: the typed exceptions thrown by the
components are folded into a StepOutcome carrying the matching ErrorKind.
"""

import asyncio
from typing import Optional

import httpx

from src.core.exceptions import (
    ConverterBaseException,
    ErrorKind,
    GreyscaleRejectedError,
    ImageProcessingError,
    InvalidRequestError,
    StorageConnectionError,
    UploadError,
)
from src.core.logging import get_logger
from src.core.metrics import (
    track_stage_latency,
    record_download,
    record_existence_hit,
    record_upload,
)
from src.core.storage import IStorage
from src.engines.transparency.processor import GREYSCALE_RMS_THRESHOLD, make_transparent
from src.modules.conversion.destination import render_preview, resolve_destination
from src.modules.conversion.models import (
    ConversionOptions,
    ConversionRequest,
    RawImage,
    ResolvedTarget,
    StepOutcome,
)
from src.pipeline.existence import check_existence
from src.pipeline.retriever import describe_download, download_image

logger = get_logger(__name__)


def _failure(exc: ConverterBaseException) -> StepOutcome:
    logger.warning("stage_failed", kind=exc.kind.value, error=exc.message, details=exc.details)
    return StepOutcome.fail(exc.kind, exc.message)


# =============================================================================
# Stage 0: Validate
# =============================================================================

def validate_stage(request: ConversionRequest) -> StepOutcome:
    """Resolve the destination. Payload: ResolvedTarget."""
    try:
        target = resolve_destination(request.destination, request.source_url)
    except InvalidRequestError as e:
        return _failure(e)

    preview = render_preview(request.source_url, target, request.options.width)
    return StepOutcome.ok(preview, payload=target)


# =============================================================================
# Stage 1: Connect Storage
# =============================================================================

async def connect_storage_stage(storage: IStorage, target: ResolvedTarget) -> StepOutcome:
    """Verify the bucket can be reached with the process-wide client."""
    try:
        with track_stage_latency("connect_storage"):
            await storage.connect(target.bucket)
    except StorageConnectionError as e:
        return _failure(e)

    logger.info("storage_connected", bucket=target.bucket)
    return StepOutcome.ok()


# =============================================================================
# Stage 2: Existence Check
# =============================================================================

async def check_existence_stage(
    storage: IStorage,
    client: httpx.AsyncClient,
    target: ResolvedTarget,
    options: ConversionOptions,
    cdn_base: Optional[str] = None,
    cdn_timeout: float = 10.0,
) -> StepOutcome:
    """
    Payload: True when the artifact already exists and the run can stop.

    The check is skipped entirely when overwrite is requested.
    """
    if options.overwrite:
        logger.info("existence_check_skipped", reason="overwrite")
        return StepOutcome.ok("Overwrite enabled, existing files will be replaced\n\n", payload=False)

    with track_stage_latency("check_existence"):
        result = await check_existence(
            storage,
            client,
            target,
            cdn_base=cdn_base,
            cdn_probe_path=options.cdn_probe_path,
            cdn_timeout=cdn_timeout,
        )

    if result.exists:
        record_existence_hit(result.source or "unknown")
        logger.info("artifact_already_exists", source=result.source, key=target.full_size_key)

    return StepOutcome.ok(result.message, payload=result.exists)


# =============================================================================
# Stage 3: Download
# =============================================================================

async def download_stage(client: httpx.AsyncClient, url: str, timeout: float = 30.0) -> StepOutcome:
    """Payload: RawImage."""
    try:
        with track_stage_latency("download"):
            raw = await download_image(client, url, timeout)
    except ConverterBaseException as e:
        return _failure(e)

    record_download(raw.size)
    return StepOutcome.ok(describe_download(raw), payload=raw)


# =============================================================================
# Stage 4: Transform
# =============================================================================

async def transform_stage(
    raw: RawImage,
    options: ConversionOptions,
    greyscale_threshold: float = GREYSCALE_RMS_THRESHOLD,
) -> StepOutcome:
    """Payload: ImageArtifacts. CPU work runs off the event loop."""
    try:
        with track_stage_latency("transform"):
            artifacts, message = await asyncio.to_thread(
                make_transparent,
                raw.data,
                quality=options.quality,
                fuzz=options.fuzz,
                width=options.width,
                max_height=options.max_height,
                reject_greyscale=options.reject_greyscale,
                greyscale_threshold=greyscale_threshold,
            )
    except GreyscaleRejectedError as e:
        return _failure(e)
    except ImageProcessingError as e:
        logger.warning("transform_failed", error=e.message)
        return StepOutcome.fail(
            ErrorKind.IMAGE_PROCESSING_ERROR,
            f"Unable to be processed as an image\n\n{e.message}"
        )

    return StepOutcome.ok(message + "\n\n", payload=artifacts)


# =============================================================================
# Stage 5/6: Upload
# =============================================================================

async def upload_stage(
    storage: IStorage,
    bucket: str,
    key: str,
    data: bytes,
    artifact: str,
) -> StepOutcome:
    """Write one artifact. Payload: public URL."""
    try:
        with track_stage_latency(f"upload_{artifact}"):
            url = await storage.upload(bucket, key, data)
    except UploadError as e:
        return _failure(e)

    record_upload(artifact, len(data))
    logger.info("artifact_uploaded", artifact=artifact, key=key, size=len(data))
    return StepOutcome.ok(f"{url}\n", payload=url)
