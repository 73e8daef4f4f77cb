from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from PIL import Image

from imagestamp.config import RendererConfig
from imagestamp.constants import DEFAULT_CANVAS_BACKGROUND, DEFAULT_FONT_SIZE, DEFAULT_Z_INDEX, PLACEHOLDER_COLOR
from imagestamp.decoders.image_decoder import ImageSourceLoader, decode_background
from imagestamp.errors import BackgroundDecodeError, ElementDrawError, InvalidColor
from imagestamp.models import Element, Template
from imagestamp.render.color import Color, is_transparent, parse_color
from imagestamp.render.compositor import ImageLoader, draw_image
from imagestamp.render.encoder import encode_image
from imagestamp.render.shapes import draw_shape
from imagestamp.render.typography import draw_text
from imagestamp.template_loader import normalize_element

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RenderStats:
    drawn: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    placeholders: list[str] = field(default_factory=list)


def _z_index_of(doc: Mapping[str, Any]) -> int:
    value = doc.get("zIndex")
    if value is None:
        return DEFAULT_Z_INDEX
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return DEFAULT_Z_INDEX


def paint_order(elements: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Ascending zIndex; equal zIndex keeps declaration order."""
    indexed = sorted(enumerate(elements), key=lambda item: (_z_index_of(item[1]), item[0]))
    return [doc for _, doc in indexed]


def _canvas_fill(value: str | None) -> Color:
    try:
        color = parse_color(value or DEFAULT_CANVAS_BACKGROUND)
    except InvalidColor:
        # defaultBackground 也可能是图片 URL
        LOGGER.debug("default background %r is not a color, using white", value)
        color = parse_color(DEFAULT_CANVAS_BACKGROUND)
    if is_transparent(color):
        return Color(0, 0, 0, 0)
    return color


class Renderer:
    """Paints resolved template elements onto a background-sized canvas."""

    def __init__(
        self,
        config: RendererConfig | None = None,
        image_loader: ImageLoader | None = None,
    ) -> None:
        self.config = config or RendererConfig()
        self.image_loader = image_loader or ImageSourceLoader()
        try:
            placeholder = parse_color(self.config.placeholder_color)
        except InvalidColor:
            placeholder = parse_color(PLACEHOLDER_COLOR)
        if is_transparent(placeholder):
            placeholder = parse_color(PLACEHOLDER_COLOR)
        self.placeholder = placeholder.opaque()  # type: ignore[union-attr]
        self._handlers: dict[str, Callable[[Image.Image, Element, RenderStats], None]] = {
            "text": self._draw_text,
            "image": self._draw_image,
            "logo": self._draw_image,
            "shape": self._draw_shape,
        }

    def new_canvas(self, template: Template, background: bytes | None) -> Image.Image:
        if background is None:
            return Image.new("RGBA", template.size, _canvas_fill(template.default_background).rgba)
        image = decode_background(background)
        # 非等比缩放到模板尺寸
        return image.resize(template.size, Image.Resampling.LANCZOS)

    def render(
        self,
        template: Template,
        background: bytes | None,
        elements: Sequence[Mapping[str, Any]],
    ) -> Image.Image:
        canvas = self.new_canvas(template, background)
        stats = self.paint(canvas, elements)
        LOGGER.info(
            "rendered template %s: %d drawn, %d skipped, %d placeholders",
            template.name,
            len(stats.drawn),
            len(stats.skipped),
            len(stats.placeholders),
        )
        return canvas

    def paint(self, canvas: Image.Image, elements: Sequence[Mapping[str, Any]]) -> RenderStats:
        stats = RenderStats()
        for doc in paint_order(elements):
            element_id = str(doc.get("id") or "?")
            try:
                element = normalize_element(doc)
                self._handlers[element.kind](canvas, element, stats)
            except Exception as exc:
                # 单个元素失败不影响整张图
                error = exc if isinstance(exc, ElementDrawError) else ElementDrawError(element_id, str(exc))
                LOGGER.warning("skipping element %s (%s): %s", element_id, doc.get("type"), error)
                stats.skipped.append(element_id)
                continue
            stats.drawn.append(element_id)
        return stats

    def _draw_text(self, canvas: Image.Image, element: Element, stats: RenderStats) -> None:
        draw_text(
            canvas,
            element,
            font_sizes=self.config.font_sizes,
            line_height_factor=self.config.line_height_factor,
            font_path=self.config.font_path,
        )

    def _draw_image(self, canvas: Image.Image, element: Element, stats: RenderStats) -> None:
        if not draw_image(canvas, element, loader=self.image_loader, placeholder=self.placeholder):
            stats.placeholders.append(element.id)

    def _draw_shape(self, canvas: Image.Image, element: Element, stats: RenderStats) -> None:
        draw_shape(canvas, element)

    def render_thumbnail(self, template: Template, background: bytes | None = None) -> bytes:
        """Small PNG preview with every element scaled to fit the thumbnail box."""
        width, height = self.config.thumbnail_size
        canvas: Image.Image | None = None
        if background is not None:
            try:
                canvas = decode_background(background).resize((width, height), Image.Resampling.LANCZOS)
            except BackgroundDecodeError as exc:
                LOGGER.warning("thumbnail background unusable, using template color: %s", exc)
        if canvas is None:
            canvas = Image.new("RGBA", (width, height), _canvas_fill(template.default_background).rgba)

        scale = min(width / template.width, height / template.height)
        self.paint(canvas, [scale_document(doc, scale) for doc in template.elements])
        return encode_image(canvas, "png")


def _scaled(value: Any, scale: float) -> Any:
    try:
        return math.floor(float(value) * scale)
    except (TypeError, ValueError):
        return value


def scale_document(doc: Mapping[str, Any], scale: float) -> dict[str, Any]:
    """Copy of an element document with position, size and fontSize scaled down (floored)."""
    scaled = dict(doc)
    position = doc.get("position")
    if isinstance(position, Mapping):
        scaled["position"] = {key: _scaled(position.get(key), scale) for key in ("x", "y")}
    size = doc.get("size")
    if isinstance(size, Mapping):
        scaled["size"] = {key: _scaled(size.get(key), scale) for key in ("width", "height")}
    scaled["fontSize"] = _scaled(doc.get("fontSize") or DEFAULT_FONT_SIZE, scale)
    return scaled
