from __future__ import annotations

import logging
import math
from typing import Iterator

from PIL import Image

from imagestamp.errors import ElementDrawError
from imagestamp.models import Element, ShapePayload
from imagestamp.render.color import Color, is_transparent, parse_color

LOGGER = logging.getLogger(__name__)

Box = tuple[int, int, int, int]


def clip_box(canvas_size: tuple[int, int], left: int, top: int, right: int, bottom: int) -> Box | None:
    """Intersect the half-open box ``[left, right) x [top, bottom)`` with the canvas."""
    width, height = canvas_size
    left = max(0, left)
    top = max(0, top)
    right = min(width, right)
    bottom = min(height, bottom)
    if left >= right or top >= bottom:
        return None
    return (left, top, right, bottom)


def fill_region(canvas: Image.Image, box: Box, color: Color, mask: Image.Image | None = None) -> None:
    """Paint ``color`` into ``box``, optionally restricted to a same-sized L mask.

    Opaque colors replace the pixels; translucent ones are composited over them.
    """
    left, top, right, bottom = box
    if color.is_opaque:
        canvas.paste(color.rgba, box, mask)
        return
    size = (right - left, bottom - top)
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    layer.paste(color.rgba, (0, 0, size[0], size[1]), mask)
    canvas.alpha_composite(layer, (left, top))


def fill_rectangle(canvas: Image.Image, x: int, y: int, width: int, height: int, color: Color) -> None:
    box = clip_box(canvas.size, x, y, x + width, y + height)
    if box is None:
        return
    fill_region(canvas, box, color)


def circle_spans(
    cx: float,
    cy: float,
    radius: float,
    rows: tuple[int, int] | None = None,
) -> Iterator[tuple[int, int, int]]:
    """Yield ``(row, first_x, last_x)`` for lattice points within ``radius`` of the center.

    The boundary is inclusive: a pixel at exactly ``radius`` is inside.
    ``rows`` limits the scan to the half-open row range ``[start, stop)``.
    """
    if radius < 0:
        return
    r2 = radius * radius
    start = math.ceil(cy - radius)
    stop = math.floor(cy + radius) + 1
    if rows is not None:
        start = max(start, rows[0])
        stop = min(stop, rows[1])
    for row in range(start, stop):
        dy = row - cy
        rest = r2 - dy * dy
        if rest < 0:
            continue
        half = math.sqrt(rest)
        first = math.ceil(cx - half)
        last = math.floor(cx + half)
        # sqrt 的浮点误差，按整数距离平方校正边界
        while (first - cx) ** 2 + dy * dy > r2:
            first += 1
        while (last - cx) ** 2 + dy * dy > r2:
            last -= 1
        if first <= last:
            yield row, first, last


def fill_circle(canvas: Image.Image, cx: float, cy: float, radius: float, color: Color) -> None:
    box = clip_box(
        canvas.size,
        math.ceil(cx - radius),
        math.ceil(cy - radius),
        math.floor(cx + radius) + 1,
        math.floor(cy + radius) + 1,
    )
    if box is None:
        return
    left, top, right, bottom = box
    mask = Image.new("L", (right - left, bottom - top), 0)
    for row, first, last in circle_spans(cx, cy, radius, rows=(top, bottom)):
        first = max(first, left)
        last = min(last, right - 1)
        if first > last:
            continue
        mask.paste(255, (first - left, row - top, last - left + 1, row - top + 1))
    fill_region(canvas, box, color, mask)


def bresenham_points(x0: int, y0: int, x1: int, y1: int) -> Iterator[tuple[int, int]]:
    """Integer midpoint line from (x0, y0) to (x1, y1), both endpoints included."""
    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy
    x, y = x0, y0
    while True:
        yield x, y
        if x == x1 and y == y1:
            return
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x += sx
        if e2 < dx:
            err += dx
            y += sy


def draw_line(canvas: Image.Image, x0: int, y0: int, x1: int, y1: int, color: Color) -> None:
    box = clip_box(canvas.size, min(x0, x1), min(y0, y1), max(x0, x1) + 1, max(y0, y1) + 1)
    if box is None:
        return
    left, top, right, bottom = box
    mask = Image.new("L", (right - left, bottom - top), 0)
    pixels = mask.load()
    for px, py in bresenham_points(x0, y0, x1, y1):
        # 画布外的点跳过，但不终止
        if left <= px < right and top <= py < bottom:
            pixels[px - left, py - top] = 255
    fill_region(canvas, box, color, mask)


def draw_shape(canvas: Image.Image, element: Element) -> None:
    payload = element.payload
    if not isinstance(payload, ShapePayload):
        raise ElementDrawError(element.id, f"expected a shape payload, got {type(payload).__name__}")
    shape_type = payload.shape_type

    if shape_type == "rectangle":
        fill = parse_color(payload.background_color)
        if is_transparent(fill):
            return
        fill_rectangle(canvas, element.x, element.y, element.width, element.height, fill)
    elif shape_type == "circle":
        fill = parse_color(payload.background_color)
        if is_transparent(fill):
            return
        fill_circle(
            canvas,
            element.x + element.width / 2,
            element.y + element.height / 2,
            min(element.width, element.height) / 2,
            fill,
        )
    elif shape_type == "line":
        stroke = parse_color(payload.border_color)
        if is_transparent(stroke):
            return
        draw_line(
            canvas,
            element.x,
            element.y,
            element.x + element.width,
            element.y + element.height,
            stroke,
        )
    else:
        LOGGER.warning("element %s: unknown shape type %r, skipped", element.id, shape_type)
