"""
Conversion Pipeline Orchestrator

Strictly sequential state machine:

    Validate -> ConnectStorage -> CheckExistence -> Download -> Transform
             -> UploadFull -> UploadThumbnail -> Report

Every step returns a StepOutcome. The first unsuccessful outcome ends the run
in FAILED; an existing artifact ends it early in SUCCESS. The transcript is
append-only and always returned, so partial progress is never lost.
"""

import time
import traceback
import uuid
from typing import List, Optional

import httpx

from src.core.exceptions import ErrorKind
from src.core.logging import LogContext, get_logger, set_stage
from src.core.metrics import record_conversion
from src.core.storage import IStorage
from src.engines.transparency.processor import GREYSCALE_RMS_THRESHOLD
from src.modules.conversion.models import (
    ConversionRequest,
    ImageArtifacts,
    PipelineResult,
    PipelineState,
    RawImage,
    ResolvedTarget,
    StepOutcome,
)
from src.pipeline.stages import (
    check_existence_stage,
    connect_storage_stage,
    download_stage,
    transform_stage,
    upload_stage,
    validate_stage,
)

logger = get_logger(__name__)


class ConversionPipeline:
    """
    Runs one conversion per call to run().

    The storage client and HTTP client are long-lived collaborators shared
    across requests; nothing request-specific is stored on the instance.
    """

    def __init__(
        self,
        storage: IStorage,
        http_client: httpx.AsyncClient,
        cdn_base: Optional[str] = None,
        download_timeout: float = 30.0,
        cdn_timeout: float = 10.0,
        greyscale_threshold: float = GREYSCALE_RMS_THRESHOLD,
    ):
        self.storage = storage
        self.http_client = http_client
        self.cdn_base = cdn_base
        self.download_timeout = download_timeout
        self.cdn_timeout = cdn_timeout
        self.greyscale_threshold = greyscale_threshold

    async def run(self, request: ConversionRequest, request_id: Optional[str] = None) -> PipelineResult:
        """Traverse the state machine for one request."""
        request_id = request_id or str(uuid.uuid4())
        transcript: List[str] = []
        start_time = time.time()

        with LogContext(job_id=request_id):
            logger.info("conversion_started", source=request.source_url, destination=request.destination)
            try:
                result = await self._traverse(request, transcript)
            except Exception as e:
                logger.error(
                    "conversion_crashed",
                    error=str(e),
                    error_type=type(e).__name__,
                    traceback=traceback.format_exc()
                )
                transcript.append(f"Unexpected error: {type(e).__name__}: {e}\n")
                result = PipelineResult(
                    state=PipelineState.FAILED,
                    transcript="".join(transcript),
                    error_kind=ErrorKind.UNEXPECTED,
                )
            finally:
                set_stage(None)

            duration = time.time() - start_time
            failure_stage = result.failed_at.value if result.failed_at else "none"
            outcome = "exists" if result.already_exists else result.state.value
            record_conversion(outcome, duration, failure_stage)
            logger.info(
                "conversion_finished",
                state=result.state.value,
                already_exists=result.already_exists,
                failed_at=failure_stage,
                duration_ms=int(duration * 1000)
            )
            return result

    async def _traverse(self, request: ConversionRequest, transcript: List[str]) -> PipelineResult:
        options = request.options

        # Validate
        set_stage(PipelineState.VALIDATE.value)
        outcome = validate_stage(request)
        if not outcome.succeeded:
            return self._failed(PipelineState.VALIDATE, outcome, transcript)
        self._append(transcript, outcome)
        target: ResolvedTarget = outcome.payload

        # ConnectStorage
        set_stage(PipelineState.CONNECT_STORAGE.value)
        outcome = await connect_storage_stage(self.storage, target)
        if not outcome.succeeded:
            return self._failed(PipelineState.CONNECT_STORAGE, outcome, transcript)
        self._append(transcript, outcome)

        # CheckExistence
        set_stage(PipelineState.CHECK_EXISTENCE.value)
        outcome = await check_existence_stage(
            self.storage,
            self.http_client,
            target,
            options,
            cdn_base=self.cdn_base,
            cdn_timeout=self.cdn_timeout,
        )
        if not outcome.succeeded:
            return self._failed(PipelineState.CHECK_EXISTENCE, outcome, transcript)
        self._append(transcript, outcome)
        if outcome.payload:
            return PipelineResult(
                state=PipelineState.SUCCESS,
                transcript="".join(transcript),
                error_kind=ErrorKind.ALREADY_EXISTS,
                already_exists=True,
            )

        # Download
        set_stage(PipelineState.DOWNLOAD.value)
        outcome = await download_stage(self.http_client, request.source_url, self.download_timeout)
        if not outcome.succeeded:
            return self._failed(PipelineState.DOWNLOAD, outcome, transcript)
        self._append(transcript, outcome)
        raw: RawImage = outcome.payload

        # Transform
        set_stage(PipelineState.TRANSFORM.value)
        outcome = await transform_stage(raw, options, self.greyscale_threshold)
        if not outcome.succeeded:
            return self._failed(PipelineState.TRANSFORM, outcome, transcript)
        self._append(transcript, outcome)
        artifacts: ImageArtifacts = outcome.payload

        # UploadFull
        set_stage(PipelineState.UPLOAD_FULL.value)
        outcome = await upload_stage(
            self.storage, target.bucket, target.full_size_key, artifacts.full_size, "full"
        )
        if not outcome.succeeded:
            return self._failed(PipelineState.UPLOAD_FULL, outcome, transcript)
        transcript.append("Uploaded:\n\n")
        self._append(transcript, outcome)
        urls = [outcome.payload]

        # UploadThumbnail - a failure here leaves the full-size object in place
        set_stage(PipelineState.UPLOAD_THUMBNAIL.value)
        outcome = await upload_stage(
            self.storage,
            target.bucket,
            target.thumbnail_key(artifacts.thumbnail_width),
            artifacts.thumbnail,
            "thumbnail",
        )
        if not outcome.succeeded:
            return self._failed(PipelineState.UPLOAD_THUMBNAIL, outcome, transcript)
        self._append(transcript, outcome)
        urls.append(outcome.payload)

        # Report
        set_stage(PipelineState.REPORT.value)
        return PipelineResult(
            state=PipelineState.SUCCESS,
            transcript="".join(transcript),
            urls=urls,
        )

    @staticmethod
    def _append(transcript: List[str], outcome: StepOutcome):
        if outcome.message:
            transcript.append(outcome.message)

    @staticmethod
    def _failed(state: PipelineState, outcome: StepOutcome, transcript: List[str]) -> PipelineResult:
        kind = outcome.error_kind or ErrorKind.UNEXPECTED
        transcript.append(f"Failed at {state.value} ({kind.value}):\n{outcome.message}\n")
        return PipelineResult(
            state=PipelineState.FAILED,
            transcript="".join(transcript),
            error_kind=kind,
            failed_at=state,
        )
