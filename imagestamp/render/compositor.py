from __future__ import annotations

import logging
from typing import Callable

from PIL import Image

from imagestamp.errors import ElementDrawError
from imagestamp.models import Element, ImagePayload
from imagestamp.render.color import Color
from imagestamp.render.shapes import clip_box, fill_rectangle

LOGGER = logging.getLogger(__name__)

ImageLoader = Callable[[str], Image.Image]


def apply_opacity(image: Image.Image, opacity: float) -> Image.Image:
    """Scale the alpha channel by ``opacity`` (clamped to [0, 1])."""
    opacity = max(0.0, min(1.0, float(opacity)))
    rgba = image.convert("RGBA")
    if opacity >= 1.0:
        return rgba
    alpha = rgba.getchannel("A").point(lambda value: int(round(value * opacity)))
    rgba.putalpha(alpha)
    return rgba


def composite_image(
    canvas: Image.Image,
    source: Image.Image,
    *,
    x: int,
    y: int,
    width: int,
    height: int,
    opacity: float = 1.0,
) -> None:
    """Resize ``source`` to width x height and blend it "over" the canvas at (x, y)."""
    if width <= 0 or height <= 0:
        return
    box = clip_box(canvas.size, x, y, x + width, y + height)
    if box is None:
        return
    resized = source.convert("RGBA").resize((width, height), Image.Resampling.LANCZOS)
    layer = apply_opacity(resized, opacity)
    left, top, right, bottom = box
    visible = layer.crop((left - x, top - y, right - x, bottom - y))
    canvas.alpha_composite(visible, (left, top))


def paint_placeholder(canvas: Image.Image, element: Element, color: Color) -> None:
    fill_rectangle(canvas, element.x, element.y, element.width, element.height, color.opaque())


def draw_image(
    canvas: Image.Image,
    element: Element,
    *,
    loader: ImageLoader,
    placeholder: Color,
) -> bool:
    """Draw an image/logo element. Returns False when the placeholder was used."""
    payload = element.payload
    if not isinstance(payload, ImagePayload):
        raise ElementDrawError(element.id, f"expected an image payload, got {type(payload).__name__}")
    if not payload.source:
        LOGGER.debug("element %s: no image source, skipped", element.id)
        return True
    try:
        source = loader(payload.source)
        composite_image(
            canvas,
            source,
            x=element.x,
            y=element.y,
            width=element.width,
            height=element.height,
            opacity=element.opacity,
        )
    except Exception as exc:
        # 外部 loader 的任何失败都画占位图
        LOGGER.warning("element %s: %s; drawing placeholder", element.id, exc)
        paint_placeholder(canvas, element, placeholder)
        return False
    return True
