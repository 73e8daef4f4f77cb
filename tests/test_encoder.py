import io

import pytest
from PIL import Image

from imagestamp.errors import UnsupportedFormat
from imagestamp.render.encoder import MIME_TYPES, clamp_quality, encode_image, resolve_output_format


def _canvas() -> Image.Image:
    return Image.new("RGBA", (64, 48), (37, 99, 235, 255))


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_png_keeps_alpha_and_size() -> None:
    image = _open(encode_image(Image.new("RGBA", (64, 48), (0, 0, 0, 0)), "png"))
    assert image.format == "PNG"
    assert image.size == (64, 48)
    assert image.mode == "RGBA"


def test_jpeg_drops_alpha() -> None:
    image = _open(encode_image(_canvas(), "jpeg", 90))
    assert image.format == "JPEG"
    assert image.mode == "RGB"
    assert image.size == (64, 48)


def test_jpg_is_an_alias_for_jpeg() -> None:
    assert resolve_output_format("JPG") == "jpeg"
    assert _open(encode_image(_canvas(), "jpg")).format == "JPEG"


def test_webp_encodes() -> None:
    assert _open(encode_image(_canvas(), "webp", 80)).format == "WEBP"


@pytest.mark.parametrize("fmt", ["gif", "bmp", "tiff", ""])
def test_unsupported_formats_raise(fmt: str) -> None:
    with pytest.raises(UnsupportedFormat):
        resolve_output_format(fmt)
    with pytest.raises(UnsupportedFormat):
        encode_image(_canvas(), fmt)


def test_quality_is_clamped() -> None:
    assert clamp_quality(None) == 90
    assert clamp_quality(0) == 1
    assert clamp_quality(150) == 100
    assert clamp_quality("75") == 75
    assert clamp_quality("abc") == 90


def test_lower_quality_gives_smaller_jpeg() -> None:
    noisy = Image.effect_noise((128, 128), 64).convert("RGB")
    assert len(encode_image(noisy, "jpeg", 5)) < len(encode_image(noisy, "jpeg", 95))


def test_png_ignores_quality() -> None:
    canvas = _canvas()
    assert encode_image(canvas, "png", 1) == encode_image(canvas, "png", 100)


def test_mime_types_cover_every_format() -> None:
    assert set(MIME_TYPES) == {"png", "jpeg", "webp"}
