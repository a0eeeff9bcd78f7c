"""
Conversion Module - Transparent WebP Service

Request models, option parsing and destination resolution.
"""

from src.modules.conversion.models import (
    ConversionOptions,
    ConversionRequest,
    PipelineResult,
    PipelineState,
    ResolvedTarget,
    StepOutcome,
)

__all__ = [
    "ConversionOptions",
    "ConversionRequest",
    "PipelineResult",
    "PipelineState",
    "ResolvedTarget",
    "StepOutcome",
]
