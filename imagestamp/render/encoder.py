from __future__ import annotations

import io

from PIL import Image

from imagestamp.constants import FORMAT_ALIASES, LOSSY_FORMATS, OUTPUT_FORMATS
from imagestamp.errors import EncodeError, UnsupportedFormat

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}
MIME_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


def resolve_output_format(fmt: str) -> str:
    f = str(fmt or "").strip().lower()
    f = FORMAT_ALIASES.get(f, f)
    if f not in OUTPUT_FORMATS:
        raise UnsupportedFormat(fmt)
    return f


def clamp_quality(quality: int | float | str | None, default: int = 90) -> int:
    try:
        value = int(float(quality)) if quality is not None else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(100, value))


def encode_image(image: Image.Image, fmt: str, quality: int | None = None) -> bytes:
    """Serialize the canvas. ``quality`` only applies to jpeg and webp."""
    f = resolve_output_format(fmt)
    buffer = io.BytesIO()
    try:
        if f == "jpeg":
            # JPEG 不支持透明通道
            image.convert("RGB").save(
                buffer,
                format="JPEG",
                quality=clamp_quality(quality),
                optimize=True,
                progressive=True,
            )
        elif f in LOSSY_FORMATS:
            image.save(buffer, format=_PIL_FORMATS[f], quality=clamp_quality(quality))
        else:
            image.save(buffer, format="PNG", optimize=True)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"failed to encode {f}: {exc}") from exc
    return buffer.getvalue()
