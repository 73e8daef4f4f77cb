from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Sequence

from PIL import Image, ImageDraw, ImageFont

from imagestamp.constants import DEFAULT_LINE_HEIGHT_FACTOR
from imagestamp.errors import ElementDrawError
from imagestamp.models import Element, TextPayload
from imagestamp.render.color import is_transparent, parse_color

LOGGER = logging.getLogger(__name__)

_MEASURE_DRAW = ImageDraw.Draw(Image.new("RGBA", (1, 1)))


@dataclass(slots=True)
class TextLine:
    text: str
    x: float
    y: float


def select_font_size(requested: float, sizes: Sequence[int]) -> int:
    """Largest supported size <= requested; the smallest size when below the ladder."""
    ladder = sorted(sizes)
    if not ladder:
        raise ValueError("font size ladder is empty")
    chosen = ladder[0]
    for size in ladder:
        if requested >= size:
            chosen = size
        else:
            break
    return chosen


@lru_cache(maxsize=32)
def load_font(font_path: Path | None, size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    if font_path:
        try:
            return ImageFont.truetype(str(font_path), size=size)
        except OSError as exc:
            LOGGER.warning("font %s unavailable (%s), using built-in font", font_path, exc)
    return ImageFont.load_default(size=size)


def text_size(text: str, font: ImageFont.ImageFont | ImageFont.FreeTypeFont) -> tuple[int, int]:
    left, top, right, bottom = _MEASURE_DRAW.textbbox((0, 0), text, font=font)
    return right - left, bottom - top


def text_width(text: str, font: ImageFont.ImageFont | ImageFont.FreeTypeFont) -> int:
    width, _ = text_size(text, font)
    return width


def line_origin_x(align: str, x: float, box_width: float, measured_width: float) -> float:
    if align == "center":
        origin = x + (box_width - measured_width) / 2
    elif align == "right":
        origin = x + box_width - measured_width
    else:
        origin = x
    return max(0.0, origin)


def layout_lines(
    content: str,
    *,
    x: float,
    y: float,
    box_width: float,
    align: str,
    line_height: float,
    canvas_height: int,
    measure,
) -> list[TextLine]:
    """Place each ``\\n``-separated line; lines starting below the canvas are dropped."""
    placed: list[TextLine] = []
    for index, line in enumerate(content.split("\n")):
        line_y = y + index * line_height
        if line_y >= canvas_height:
            continue
        line_x = line_origin_x(align, x, box_width, measure(line))
        placed.append(TextLine(text=line, x=line_x, y=max(0.0, line_y)))
    return placed


def draw_text(
    canvas: Image.Image,
    element: Element,
    *,
    font_sizes: Sequence[int],
    line_height_factor: float = DEFAULT_LINE_HEIGHT_FACTOR,
    font_path: Path | None = None,
) -> int:
    """Paint a text element; returns the number of lines drawn."""
    payload = element.payload
    if not isinstance(payload, TextPayload):
        raise ElementDrawError(element.id, f"expected a text payload, got {type(payload).__name__}")
    if not payload.content:
        return 0
    color = parse_color(payload.color)
    if is_transparent(color):
        return 0

    size = select_font_size(payload.font_size, font_sizes)
    font = load_font(font_path, size)
    lines = layout_lines(
        payload.content,
        x=element.x,
        y=element.y,
        box_width=element.width,
        align=payload.text_align,
        line_height=size * line_height_factor,
        canvas_height=canvas.height,
        measure=lambda text: text_width(text, font),
    )
    if not lines:
        return 0

    # 先画到透明图层再合成，半透明文字颜色不会在画布上留下透明孔
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    layer_draw = ImageDraw.Draw(layer)
    for line in lines:
        if not line.text:
            continue
        layer_draw.text((math.floor(line.x), math.floor(line.y)), line.text, font=font, fill=color.rgba)
    canvas.alpha_composite(layer)
    return len(lines)
