"""
Conversion Domain Models

Immutable value objects passed between pipeline steps:
- ConversionOptions / ConversionRequest - what the caller asked for
- ResolvedTarget - where the artifacts will live
- RawImage / ImageArtifacts - bytes handed from step to step
- StepOutcome - the uniform result of every step
"""

from enum import Enum
from typing import Optional, Tuple, List

from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import ErrorKind


# =============================================================================
# Option Bounds
# =============================================================================

WIDTH_RANGE = (16, 512)
DEFAULT_WIDTH = 200

QUALITY_RANGE = (5, 100)
DEFAULT_QUALITY = 70

FUZZ_RANGE = (0, 100)
DEFAULT_FUZZ = 3

MAX_HEIGHT_RANGE = (16, 16000)
DEFAULT_MAX_HEIGHT = 1024


class ConversionOptions(BaseModel):
    """Validated conversion options. Always within bounds."""
    model_config = ConfigDict(frozen=True)

    width: int = DEFAULT_WIDTH
    quality: int = DEFAULT_QUALITY
    fuzz: int = DEFAULT_FUZZ
    max_height: int = DEFAULT_MAX_HEIGHT
    overwrite: bool = False
    reject_greyscale: bool = True
    cdn_probe_path: Optional[str] = None


class ConversionRequest(BaseModel):
    """A single conversion invocation."""
    model_config = ConfigDict(frozen=True)

    source_url: Optional[str] = None
    destination: Optional[str] = None
    options: ConversionOptions = Field(default_factory=ConversionOptions)


class ResolvedTarget(BaseModel):
    """Bucket and keys derived from a destination locator."""
    model_config = ConfigDict(frozen=True)

    bucket: str
    key_prefix: str = ""
    base_file_name: str

    @property
    def full_size_key(self) -> str:
        return f"{self.key_prefix}{self.base_file_name}"

    def thumbnail_key(self, width: int) -> str:
        return f"{self.key_prefix}{width}/{self.base_file_name}"


class RawImage(BaseModel):
    """Downloaded source payload."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    file_name: str
    elapsed_ms: int = 0

    @property
    def size(self) -> int:
        return len(self.data)


class ImageArtifacts(BaseModel):
    """Encoded outputs of the transparency transform."""
    model_config = ConfigDict(frozen=True)

    full_size: bytes
    thumbnail: bytes
    source_dimensions: Tuple[int, int]
    # After background removal and trim
    original_dimensions: Tuple[int, int]
    resized_dimensions: Optional[Tuple[int, int]] = None
    thumbnail_width: int

    @property
    def final_dimensions(self) -> Tuple[int, int]:
        return self.resized_dimensions or self.original_dimensions


class StepOutcome(BaseModel):
    """Result of one pipeline step. Never mutated after construction."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    succeeded: bool
    message: str = ""
    payload: Optional[object] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, message: str = "", payload: Optional[object] = None) -> "StepOutcome":
        return cls(succeeded=True, message=message, payload=payload)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "StepOutcome":
        return cls(succeeded=False, message=message, error_kind=kind)


# =============================================================================
# Pipeline State
# =============================================================================

class PipelineState(str, Enum):
    """Orchestrator states, in traversal order."""
    VALIDATE = "validate"
    CONNECT_STORAGE = "connect_storage"
    CHECK_EXISTENCE = "check_existence"
    DOWNLOAD = "download"
    TRANSFORM = "transform"
    UPLOAD_FULL = "upload_full"
    UPLOAD_THUMBNAIL = "upload_thumbnail"
    REPORT = "report"
    SUCCESS = "success"
    FAILED = "failed"


class PipelineResult(BaseModel):
    """Terminal state of one pipeline traversal."""
    model_config = ConfigDict(frozen=True)

    state: PipelineState
    transcript: str
    error_kind: Optional[ErrorKind] = None
    failed_at: Optional[PipelineState] = None
    already_exists: bool = False
    urls: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.SUCCESS

    @property
    def http_status(self) -> int:
        return 200 if self.succeeded else 400
