"""
Transparency Engine - White Background Removal & WebP Derivation

1. Greyscale rejection (RMS difference against a desaturated copy)
2. Border flood fill: near-white pixels reachable from the edge become transparent
3. Auto-trim to the remaining content
4. Conditional downscale to a maximum height (never upscale)
5. Full-size WebP + square padded WebP thumbnail

The flood fill only clears white that is connected to the border, so white
regions enclosed by the subject (labels, highlights, eyes) stay opaque.
"""

import io
import time
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageEnhance, ImageOps, UnidentifiedImageError

from src.core.exceptions import GreyscaleRejectedError, ImageProcessingError
from src.core.logging import get_logger
from src.modules.conversion.formatting import format_file_size
from src.modules.conversion.models import ImageArtifacts

logger = get_logger(__name__)


# =============================================================================
# Thresholds
# =============================================================================

# RMS below this means the image has no meaningful colour
GREYSCALE_RMS_THRESHOLD = 0.001

# Fill colour for removed background (fully transparent black)
TRANSPARENT = (0, 0, 0, 0)

RESAMPLE = Image.Resampling.LANCZOS


class TransparencyProcessor:
    """Pixel operations of the transparency pipeline. All methods are pure."""

    @staticmethod
    def decode(data: bytes) -> Image.Image:
        """Decode bytes into an RGBA raster. Multi-frame input keeps frame 0."""
        try:
            image = Image.open(io.BytesIO(data))
            image.seek(0)
            image.load()
            image = ImageOps.exif_transpose(image)
            return image.convert("RGBA")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageProcessingError(f"Unable to decode image: {e}")

    @staticmethod
    def greyscale_error(image: Image.Image, fuzz_percent: int = 3) -> float:
        """
        Normalized RMS difference between the image and a 0% saturation copy.

        Only content pixels count: anything within fuzz of white is background
        and would otherwise dilute the average on large canvases. A perfectly
        greyscale image, or one with no content at all, scores exactly 0.0.
        """
        rgb = image.convert("RGB")
        desaturated = ImageEnhance.Color(rgb).enhance(0.0)

        original = np.asarray(rgb, dtype=np.float64) / 255.0
        grey = np.asarray(desaturated, dtype=np.float64) / 255.0

        content = ~TransparencyProcessor.white_match_mask(np.asarray(rgb), fuzz_percent)
        if not content.any():
            return 0.0
        return float(np.sqrt(np.mean((original[content] - grey[content]) ** 2)))

    @staticmethod
    def white_match_mask(rgba: np.ndarray, fuzz_percent: int) -> np.ndarray:
        """Pixels whose colour distance to pure white is within fuzz percent."""
        rgb = rgba[..., :3].astype(np.float32)
        distance = np.sqrt(np.mean((255.0 - rgb) ** 2, axis=-1)) / 255.0
        return distance <= (fuzz_percent / 100.0)

    @staticmethod
    def remove_white_background(image: Image.Image, fuzz_percent: int) -> Image.Image:
        """
        Flood fill near-white pixels reachable from the border to transparent.

        A 1px white border is added so the fill can travel around the whole
        edge from a single corner seed, then removed again.
        """
        rgba = np.array(image.convert("RGBA"), dtype=np.uint8)
        height, width = rgba.shape[:2]

        matches = TransparencyProcessor.white_match_mask(rgba, fuzz_percent).astype(np.uint8)
        bordered = cv2.copyMakeBorder(matches, 1, 1, 1, 1, cv2.BORDER_CONSTANT, value=1)

        # floodFill requires a mask 2px larger than the image
        fill_mask = np.zeros((height + 4, width + 4), dtype=np.uint8)
        cv2.floodFill(bordered, fill_mask, (0, 0), 2, loDiff=0, upDiff=0, flags=4)

        reachable = bordered[1:-1, 1:-1] == 2
        rgba[reachable] = TRANSPARENT
        return Image.fromarray(rgba)

    @staticmethod
    def trim(image: Image.Image) -> Image.Image:
        """Crop to the bounding box of non-transparent pixels."""
        bbox = image.getchannel("A").getbbox()
        if bbox is None:
            raise ImageProcessingError(
                "Nothing left after background removal - the image is entirely white"
            )
        return image.crop(bbox)

    @staticmethod
    def downscale_percentage(height: int, max_height: int) -> Optional[float]:
        """Scale percentage needed to fit max_height, or None when already within."""
        if height <= max_height:
            return None
        return 100 - (abs(max_height - height) / height * 100)

    @staticmethod
    def resize_by_percentage(image: Image.Image, percentage: float) -> Image.Image:
        """Uniform resize; both edges use the same factor."""
        width = max(1, int(image.width * percentage / 100 + 0.5))
        height = max(1, int(image.height * percentage / 100 + 0.5))
        return image.resize((width, height), RESAMPLE)

    @staticmethod
    def make_thumbnail(image: Image.Image, edge: int) -> Image.Image:
        """Fit within edge x edge, then center on an exact transparent square."""
        return ImageOps.pad(
            image,
            (edge, edge),
            method=RESAMPLE,
            color=TRANSPARENT,
            centering=(0.5, 0.5),
        )

    @staticmethod
    def encode_webp(image: Image.Image, quality: int) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="WEBP", quality=quality)
        return buffer.getvalue()


def make_transparent(
    data: bytes,
    quality: int = 70,
    fuzz: int = 3,
    width: int = 200,
    max_height: int = 1024,
    reject_greyscale: bool = True,
    greyscale_threshold: float = GREYSCALE_RMS_THRESHOLD,
) -> Tuple[ImageArtifacts, str]:
    """
    Run the full transform on raw image bytes.

    Returns:
        Tuple of (artifacts, transcript fragment)

    Raises:
        GreyscaleRejectedError: If rejection is enabled and the image has no colour
        ImageProcessingError: If decoding, pixel work or encoding fails
    """
    start = time.time()
    image = TransparencyProcessor.decode(data)
    source_dimensions = image.size

    greyscale_line = "Greyscale Check: disabled\n"
    if reject_greyscale:
        error_metric = TransparencyProcessor.greyscale_error(image, fuzz)
        logger.info("greyscale_measured", error_metric=error_metric, threshold=greyscale_threshold)
        if error_metric < greyscale_threshold:
            raise GreyscaleRejectedError(
                "Image rejected as greyscale\n"
                f"Comparison Error: {error_metric:.6f} (threshold {greyscale_threshold})",
                error_metric=error_metric
            )
        greyscale_line = f"Greyscale Check: passed (error {error_metric:.6f})\n"

    try:
        image = TransparencyProcessor.remove_white_background(image, fuzz)
        image = TransparencyProcessor.trim(image)
        trimmed_dimensions = image.size
        removal_ms = int((time.time() - start) * 1000)

        resized_dimensions = None
        percentage = TransparencyProcessor.downscale_percentage(image.height, max_height)
        if percentage is not None:
            image = TransparencyProcessor.resize_by_percentage(image, percentage)
            resized_dimensions = image.size

        full_size = TransparencyProcessor.encode_webp(image, quality)
        thumbnail = TransparencyProcessor.encode_webp(
            TransparencyProcessor.make_thumbnail(image, width), quality
        )
    except ImageProcessingError:
        raise
    except (OSError, ValueError, MemoryError, cv2.error) as e:
        logger.error("transform_failed", error=str(e), error_type=type(e).__name__)
        raise ImageProcessingError(f"Unable to be processed: {e}")

    total_ms = int((time.time() - start) * 1000)

    artifacts = ImageArtifacts(
        full_size=full_size,
        thumbnail=thumbnail,
        source_dimensions=source_dimensions,
        original_dimensions=trimmed_dimensions,
        resized_dimensions=resized_dimensions,
        thumbnail_width=width,
    )

    message = (
        "Successfully Converted to Transparent WebP\n\n"
        f"Source Dimensions: {source_dimensions[0]}x{source_dimensions[1]}\n"
        f"Trimmed Dimensions: {trimmed_dimensions[0]}x{trimmed_dimensions[1]}\n"
    )
    if resized_dimensions:
        message += (
            f"Resized Dimensions: {resized_dimensions[0]}x{resized_dimensions[1]} "
            f"({percentage:.1f}%)\n"
        )
    message += (
        f"New File Size: {format_file_size(len(full_size))}\n\n"
        f"Thumbnail Dimensions: {width}x{width}\n"
        f"Thumbnail File Size: {format_file_size(len(thumbnail))}\n\n"
        "Conversion Settings Used:\n"
        f"Transparent Fuzz {fuzz}%\n"
        f"Quality {quality}%\n"
        f"{greyscale_line}"
        f"Background Removal Time: {removal_ms} ms\n"
        f"Total Processing Time: {total_ms} ms\n"
    )

    logger.info(
        "transform_completed",
        source_dimensions=source_dimensions,
        trimmed_dimensions=trimmed_dimensions,
        resized_dimensions=resized_dimensions,
        full_size_bytes=len(full_size),
        thumbnail_bytes=len(thumbnail),
        duration_ms=total_ms
    )

    return artifacts, message
