"""
Global Exception Handling

Typed error kinds shared by every pipeline step, the exception hierarchy the
components raise, and the FastAPI handlers that render them as plain text.
"""

import traceback
from enum import Enum
from typing import Optional, Dict, Any
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from src.core.logging import get_logger, job_id_var

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    """Failure categories a caller can branch on."""
    INVALID_REQUEST = "InvalidRequest"
    CONNECTION_ERROR = "ConnectionError"
    ALREADY_EXISTS = "AlreadyExists"  # success short-circuit, not a failure
    DOWNLOAD_ERROR = "DownloadError"
    GREYSCALE_REJECTED = "GreyscaleRejected"
    IMAGE_PROCESSING_ERROR = "ImageProcessingError"
    UPLOAD_ERROR = "UploadError"
    UNEXPECTED = "Unexpected"


# =============================================================================
# Custom Exceptions
# =============================================================================

class ConverterBaseException(Exception):
    """Base exception for the conversion service."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        code: int = 400,
        job_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.job_id = job_id or job_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class InvalidRequestError(ConverterBaseException):
    """Raised when request parameters are missing or malformed."""

    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, message: str, **kwargs):
        super().__init__(message, stage="validate", **kwargs)


class StorageConnectionError(ConverterBaseException):
    """Raised when the object store is unreachable or misconfigured."""

    kind = ErrorKind.CONNECTION_ERROR

    def __init__(self, message: str, bucket: Optional[str] = None, **kwargs):
        super().__init__(message, stage="connect_storage", **kwargs)
        self.details["bucket"] = bucket


class DownloadError(ConverterBaseException):
    """Raised when the source image cannot be fetched."""

    kind = ErrorKind.DOWNLOAD_ERROR

    def __init__(self, message: str, url: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, stage="download", **kwargs)
        self.details["url"] = url
        self.details["http_status"] = http_status


class GreyscaleRejectedError(ConverterBaseException):
    """Raised when an image is judged effectively greyscale."""

    kind = ErrorKind.GREYSCALE_REJECTED

    def __init__(self, message: str, error_metric: float, **kwargs):
        super().__init__(message, stage="transform", **kwargs)
        self.error_metric = error_metric
        self.details["error_metric"] = error_metric


class ImageProcessingError(ConverterBaseException):
    """Raised when an image cannot be decoded, transformed or encoded."""

    kind = ErrorKind.IMAGE_PROCESSING_ERROR

    def __init__(self, message: str, **kwargs):
        super().__init__(message, stage="transform", **kwargs)


class UploadError(ConverterBaseException):
    """Raised when writing an artifact to the object store fails."""

    kind = ErrorKind.UPLOAD_ERROR

    def __init__(self, message: str, key: str, **kwargs):
        super().__init__(message, stage="upload", **kwargs)
        self.details["key"] = key


class StorageLookupError(ConverterBaseException):
    """Raised when an existence lookup returns something other than found/absent."""

    kind = ErrorKind.CONNECTION_ERROR

    def __init__(self, message: str, key: str, **kwargs):
        super().__init__(message, stage="check_existence", **kwargs)
        self.details["key"] = key


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(ConverterBaseException)
    async def converter_exception_handler(request: Request, exc: ConverterBaseException):
        logger.error(
            "converter_exception",
            error=exc.message,
            kind=exc.kind.value,
            code=exc.code,
            stage=exc.stage,
            details=exc.details
        )

        return PlainTextResponse(
            f"{exc.kind.value}: {exc.message}\n",
            status_code=exc.code
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )

        return PlainTextResponse(
            "Internal server error\n",
            status_code=500
        )
