"""
Option parsing for conversion requests.

Raw query strings become a ConversionOptions. Nothing here raises: a value
that does not parse, or parses outside its range, is replaced by its default.
"""

from typing import Optional

from src.modules.conversion.models import (
    ConversionOptions,
    WIDTH_RANGE,
    DEFAULT_WIDTH,
    QUALITY_RANGE,
    DEFAULT_QUALITY,
    FUZZ_RANGE,
    DEFAULT_FUZZ,
    MAX_HEIGHT_RANGE,
    DEFAULT_MAX_HEIGHT,
)


def parse_int_with_range(raw: Optional[str], minimum: int, maximum: int, default: int) -> int:
    """Parse an integer within [minimum, maximum], or return default."""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if value < minimum or value > maximum:
        return default
    return value


def parse_options(
    width: Optional[str] = None,
    quality: Optional[str] = None,
    fuzz: Optional[str] = None,
    max_height: Optional[str] = None,
    overwrite: Optional[str] = None,
    reject_greyscale: Optional[str] = None,
    cdn_path: Optional[str] = None,
) -> ConversionOptions:
    """Build options from raw query parameters."""
    probe_path = cdn_path.strip() if cdn_path else None

    return ConversionOptions(
        width=parse_int_with_range(width, *WIDTH_RANGE, DEFAULT_WIDTH),
        quality=parse_int_with_range(quality, *QUALITY_RANGE, DEFAULT_QUALITY),
        fuzz=parse_int_with_range(fuzz, *FUZZ_RANGE, DEFAULT_FUZZ),
        max_height=parse_int_with_range(max_height, *MAX_HEIGHT_RANGE, DEFAULT_MAX_HEIGHT),
        # Only the literal "true" enables overwrite, only "false" disables the check
        overwrite=(overwrite or "").strip().lower() == "true",
        reject_greyscale=(reject_greyscale or "").strip().lower() != "false",
        cdn_probe_path=probe_path or None,
    )
