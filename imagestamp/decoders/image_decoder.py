from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from imagestamp.errors import BackgroundDecodeError, ImageLoadError

LOGGER = logging.getLogger(__name__)

_HEIF_REGISTERED = False


def _register_heif_opener() -> bool:
    global _HEIF_REGISTERED
    if _HEIF_REGISTERED:
        return True
    try:
        from pillow_heif import register_heif_opener
    except ImportError:
        return False
    register_heif_opener()
    _HEIF_REGISTERED = True
    return True


def _decode_bytes(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as image:
        return ImageOps.exif_transpose(image).convert("RGBA").copy()


def decode_background(data: bytes) -> Image.Image:
    """Decode raw background bytes (any Pillow format, HEIF when pillow-heif is present)."""
    if not data:
        raise BackgroundDecodeError("background image is empty")
    _register_heif_opener()
    try:
        return _decode_bytes(data)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise BackgroundDecodeError(f"cannot decode background image: {exc}") from exc


class ImageSourceLoader:
    """Default ``loadImage(ref)``: http(s) URLs, ``data:`` URIs or local paths."""

    def __init__(
        self,
        timeout: float = 15.0,
        base_dir: Path | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.base_dir = base_dir
        self.transport = transport

    def __call__(self, ref: str) -> Image.Image:
        return self.load(ref)

    def load(self, ref: str) -> Image.Image:
        data = self._read(ref)
        try:
            return _decode_bytes(data)
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
            raise ImageLoadError(ref, f"not a decodable image ({exc})") from exc

    def _read(self, ref: str) -> bytes:
        lowered = ref.lower()
        if lowered.startswith(("http://", "https://")):
            return self._fetch(ref)
        if lowered.startswith("data:"):
            return self._decode_data_uri(ref)
        path = Path(ref)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ImageLoadError(ref, str(exc)) from exc

    def _fetch(self, url: str) -> bytes:
        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True, transport=self.transport) as client:
                response = client.get(url)
                response.raise_for_status()
                LOGGER.debug("fetched %s (%d bytes)", url, len(response.content))
                return response.content
        except httpx.HTTPError as exc:
            raise ImageLoadError(url, str(exc)) from exc

    @staticmethod
    def _decode_data_uri(ref: str) -> bytes:
        header, sep, payload = ref.partition(",")
        if not sep or ";base64" not in header.lower():
            raise ImageLoadError(ref[:32], "only base64 data URIs are supported")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageLoadError(ref[:32], f"invalid base64 payload ({exc})") from exc
