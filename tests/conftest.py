from __future__ import annotations

import io
from typing import Callable

import pytest
from PIL import Image

PngFactory = Callable[..., bytes]


def _png_bytes(size: tuple[int, int], color: tuple[int, int, int, int] = (255, 255, 255, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_png() -> PngFactory:
    return _png_bytes
