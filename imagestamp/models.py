from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from imagestamp.constants import DEFAULT_OUTPUT_FORMAT, DEFAULT_QUALITY, DEFAULT_Z_INDEX
from imagestamp.errors import TemplateError


@dataclass(slots=True, frozen=True)
class Template:
    """A loaded template. Element documents are kept as read-only mappings."""

    name: str
    width: int
    height: int
    default_background: str | None
    elements: tuple[Mapping[str, Any], ...]
    thumbnail: str | None = None

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def element_ids(self) -> list[str]:
        return [str(doc.get("id")) for doc in self.elements]


@dataclass(slots=True)
class TextPayload:
    content: str
    font_family: str
    font_size: float
    font_weight: str
    color: str
    text_align: str


@dataclass(slots=True)
class ImagePayload:
    source: str | None
    background_color: str
    border_width: float
    border_color: str


@dataclass(slots=True)
class ShapePayload:
    shape_type: str | None
    background_color: str
    border_color: str
    border_width: float


@dataclass(slots=True)
class Element:
    id: str
    kind: str
    x: int
    y: int
    width: int
    height: int
    payload: TextPayload | ImagePayload | ShapePayload
    z_index: int = DEFAULT_Z_INDEX
    rotation: float = 0.0
    opacity: float = 1.0
    locked: bool = False
    editable: bool = True


@dataclass(slots=True, frozen=True)
class ElementOverride:
    element_id: str
    custom_data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ElementOverride:
        if not isinstance(data, Mapping):
            raise TemplateError(f"override is not a mapping: {data!r}")
        element_id = data.get("elementId")
        custom_data = data.get("customData")
        if not element_id:
            raise TemplateError("override is missing elementId")
        if not isinstance(custom_data, Mapping):
            raise TemplateError(f"override {element_id}: customData must be a mapping")
        return cls(element_id=str(element_id), custom_data=dict(custom_data))


@dataclass(slots=True, frozen=True)
class OutputOptions:
    format: str = DEFAULT_OUTPUT_FORMAT
    quality: int = DEFAULT_QUALITY

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> OutputOptions:
        data = data or {}
        fmt = str(data.get("format") or DEFAULT_OUTPUT_FORMAT).lower()
        quality = data.get("quality")
        return cls(format=fmt, quality=int(quality) if quality is not None else DEFAULT_QUALITY)


@dataclass(slots=True)
class UploadResult:
    url: str
    size: int
    width: int
    height: int
    format: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "size": self.size,
            "width": self.width,
            "height": self.height,
            "format": self.format,
        }
