import io

import pytest
from PIL import Image

from src.core.exceptions import GreyscaleRejectedError, ImageProcessingError
from src.engines.transparency.processor import TransparencyProcessor, make_transparent


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestGreyscale:
    def test_pure_grey_scores_zero(self):
        image = Image.new("RGBA", (10, 10), (128, 128, 128, 255))
        assert TransparencyProcessor.greyscale_error(image) == 0.0

    def test_single_coloured_pixel_passes_on_small_image(self):
        image = Image.new("RGBA", (10, 10), (255, 255, 255, 255))
        image.putpixel((5, 5), (255, 0, 0, 255))

        assert TransparencyProcessor.greyscale_error(image) > 0.001

    def test_single_coloured_pixel_passes_on_large_white_canvas(self):
        image = Image.new("RGBA", (1920, 1080), (255, 255, 255, 255))
        image.putpixel((960, 540), (255, 0, 0, 255))

        assert TransparencyProcessor.greyscale_error(image) > 0.001

    def test_single_coloured_pixel_image_is_converted(self):
        image = Image.new("RGB", (1920, 1080), (255, 255, 255))
        image.putpixel((960, 540), (255, 0, 0))
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")

        artifacts, message = make_transparent(buffer.getvalue())

        assert artifacts.original_dimensions == (1, 1)
        assert "Greyscale Check: passed" in message

    def test_white_canvas_with_grey_subject_scores_zero(self, image_factory):
        image = TransparencyProcessor.decode(
            image_factory(size=(1920, 1080), subject=(900, 500, 1000, 600), subject_colour=(40, 40, 40))
        )

        assert TransparencyProcessor.greyscale_error(image) == 0.0

    def test_greyscale_image_is_rejected(self, image_factory):
        data = image_factory(subject_colour=(90, 90, 90))

        with pytest.raises(GreyscaleRejectedError) as exc_info:
            make_transparent(data)

        assert exc_info.value.error_metric == 0.0

    def test_greyscale_image_allowed_when_disabled(self, image_factory):
        data = image_factory(subject_colour=(90, 90, 90))

        artifacts, message = make_transparent(data, reject_greyscale=False)

        assert artifacts.original_dimensions == (32, 32)
        assert "Greyscale Check: disabled" in message


class TestBackgroundRemoval:
    def test_border_white_becomes_transparent(self, image_factory):
        image = TransparencyProcessor.decode(image_factory())

        result = TransparencyProcessor.remove_white_background(image, 3)

        assert result.getpixel((0, 0)) == (0, 0, 0, 0)
        assert result.getpixel((32, 32))[3] == 255

    def test_enclosed_white_is_preserved(self):
        image = Image.new("RGBA", (20, 20), (255, 255, 255, 255))
        image.paste((200, 0, 0, 255), (5, 5, 15, 15))
        image.paste((255, 255, 255, 255), (8, 8, 12, 12))

        result = TransparencyProcessor.remove_white_background(image, 3)

        assert result.getpixel((1, 1))[3] == 0
        assert result.getpixel((10, 10)) == (255, 255, 255, 255)
        assert result.getpixel((6, 6))[3] == 255

    def test_near_white_within_fuzz_is_removed(self):
        image = Image.new("RGBA", (10, 10), (250, 250, 250, 255))
        image.paste((0, 0, 200, 255), (4, 4, 6, 6))

        assert TransparencyProcessor.remove_white_background(image, 3).getpixel((0, 0))[3] == 0
        assert TransparencyProcessor.remove_white_background(image, 0).getpixel((0, 0))[3] == 255

    def test_trim_to_content(self, image_factory):
        image = TransparencyProcessor.decode(image_factory(size=(100, 80), subject=(10, 20, 40, 70)))

        trimmed = TransparencyProcessor.trim(
            TransparencyProcessor.remove_white_background(image, 3)
        )

        assert trimmed.size == (30, 50)

    def test_entirely_white_image_fails(self, image_factory):
        data = image_factory(subject=None)

        with pytest.raises(ImageProcessingError):
            make_transparent(data, reject_greyscale=False)


class TestResize:
    def test_no_downscale_at_exactly_max_height(self):
        assert TransparencyProcessor.downscale_percentage(1024, 1024) is None
        assert TransparencyProcessor.downscale_percentage(500, 1024) is None

    def test_downscale_percentage(self):
        assert TransparencyProcessor.downscale_percentage(2048, 1024) == pytest.approx(50.0)

    def test_tall_image_is_downscaled_to_max_height(self, image_factory):
        data = image_factory(size=(100, 400), subject=(30, 50, 70, 350))

        artifacts, message = make_transparent(data, max_height=100)

        assert artifacts.original_dimensions == (40, 300)
        assert artifacts.resized_dimensions[1] == 100
        assert _open(artifacts.full_size).size == artifacts.resized_dimensions
        assert "Resized Dimensions:" in message

    def test_small_image_is_not_upscaled(self, image_factory):
        artifacts, _ = make_transparent(image_factory(), max_height=1024)

        assert artifacts.resized_dimensions is None
        assert artifacts.final_dimensions == (32, 32)


class TestEncoding:
    def test_outputs_are_webp_with_alpha(self, image_factory):
        artifacts, _ = make_transparent(image_factory(size=(100, 400), subject=(30, 50, 70, 350)), width=50)

        full = _open(artifacts.full_size)
        thumbnail = _open(artifacts.thumbnail)

        assert full.format == "WEBP"
        assert thumbnail.format == "WEBP"
        assert thumbnail.size == (50, 50)
        assert thumbnail.mode == "RGBA"
        # Narrow subject leaves transparent padding on the sides
        assert thumbnail.getpixel((0, 25))[3] == 0
        assert thumbnail.getpixel((25, 25))[3] > 0

    def test_non_image_bytes_fail(self):
        with pytest.raises(ImageProcessingError):
            make_transparent(b"<html>not an image</html>")

    def test_transcript_lists_settings(self, image_factory):
        _, message = make_transparent(image_factory(), quality=80, fuzz=5, width=100)

        assert message.startswith("Successfully Converted to Transparent WebP")
        assert "Transparent Fuzz 5%" in message
        assert "Quality 80%" in message
        assert "Thumbnail Dimensions: 100x100" in message
