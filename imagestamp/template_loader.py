from __future__ import annotations

import copy
import json
import math
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from imagestamp.constants import (
    DEFAULT_FONT_SIZE,
    DEFAULT_LINE_COLOR,
    DEFAULT_TEXT_COLOR,
    DEFAULT_Z_INDEX,
    ELEMENT_KINDS,
    IMAGE_KINDS,
    TEXT_ALIGNS,
    TRANSPARENT_KEYWORD,
)
from imagestamp.errors import ElementDrawError, TemplateError
from imagestamp.models import Element, ImagePayload, ShapePayload, Template, TextPayload

_TEMPLATE_SUFFIXES = (".json", ".yaml", ".yml")


def list_builtin_templates() -> list[str]:
    files = resources.files("imagestamp.templates")
    names = []
    for item in files.iterdir():
        if item.name.endswith(_TEMPLATE_SUFFIXES):
            names.append(Path(item.name).stem)
    return sorted(set(names))


def _parse_text(text: str, suffix: str, origin: str) -> dict[str, Any]:
    try:
        if suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise TemplateError(f"template file is not valid {suffix.lstrip('.')}: {origin}: {exc}") from exc
    if not isinstance(data, dict):
        raise TemplateError(f"template file is not a dict: {origin}")
    return data


def _load_file(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    return _parse_text(text, path.suffix.lower(), str(path))


def _load_builtin(name: str) -> dict[str, Any]:
    pkg = resources.files("imagestamp.templates")
    for suffix in _TEMPLATE_SUFFIXES:
        candidate = pkg / f"{name}{suffix}"
        if candidate.is_file():
            return _parse_text(candidate.read_text(encoding="utf-8"), suffix, f"builtin:{name}")
    raise FileNotFoundError(f"built-in template not found: {name}")


def _positive_int(value: Any, label: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise TemplateError(f"{label} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        raise TemplateError(f"{label} must be positive, got {parsed}")
    return parsed


def normalize_template_dict(data: Mapping[str, Any], fallback_name: str = "custom") -> Template:
    canvas = data.get("canvasSize")
    if not isinstance(canvas, Mapping):
        raise TemplateError("template is missing canvasSize")
    width = _positive_int(canvas.get("width"), "canvasSize.width")
    height = _positive_int(canvas.get("height"), "canvasSize.height")

    raw_elements = data.get("elements") or []
    if not isinstance(raw_elements, list):
        raise TemplateError("template elements must be a list")

    elements: list[Mapping[str, Any]] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_elements):
        if not isinstance(raw, Mapping):
            raise TemplateError(f"element #{index} is not a mapping")
        element_id = raw.get("id")
        if not element_id:
            raise TemplateError(f"element #{index} is missing an id")
        element_id = str(element_id)
        if element_id in seen:
            raise TemplateError(f"duplicate element id: {element_id}")
        seen.add(element_id)
        # 深拷贝后只读，渲染期间模板不可变
        elements.append(MappingProxyType(copy.deepcopy(dict(raw))))

    background = data.get("defaultBackground")
    thumbnail = data.get("thumbnail")
    return Template(
        name=str(data.get("name") or fallback_name),
        width=width,
        height=height,
        default_background=str(background) if background else None,
        elements=tuple(elements),
        thumbnail=str(thumbnail) if thumbnail else None,
    )


def load_template(template_name_or_path: str | Path) -> Template:
    path = Path(template_name_or_path)
    if path.exists():
        raw = _load_file(path)
        fallback = path.stem
    else:
        raw = _load_builtin(str(template_name_or_path))
        fallback = str(template_name_or_path)
    return normalize_template_dict(raw, fallback_name=fallback)


def _number(value: Any, label: str, element_id: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ElementDrawError(element_id, f"{label} must be a number, got {value!r}") from exc
    if not math.isfinite(parsed):
        raise ElementDrawError(element_id, f"{label} must be finite, got {value!r}")
    return parsed


def _pair(doc: Mapping[str, Any], key: str, fields: tuple[str, str], element_id: str) -> tuple[float, float]:
    value = doc.get(key)
    if not isinstance(value, Mapping):
        raise ElementDrawError(element_id, f"{key} must be a mapping, got {value!r}")
    first, second = fields
    return (
        _number(value.get(first), f"{key}.{first}", element_id),
        _number(value.get(second), f"{key}.{second}", element_id),
    )


def _color_text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


def normalize_element(doc: Mapping[str, Any]) -> Element:
    """Turn one (possibly overridden) element document into a typed Element.

    Raises ElementDrawError for documents that cannot be drawn.
    """
    element_id = str(doc.get("id") or "")
    kind = str(doc.get("type") or "").strip().lower()
    if kind not in ELEMENT_KINDS:
        raise ElementDrawError(element_id, f"unknown element type: {doc.get('type')!r}")

    x, y = _pair(doc, "position", ("x", "y"), element_id)
    width, height = _pair(doc, "size", ("width", "height"), element_id)
    if width < 0 or height < 0:
        raise ElementDrawError(element_id, f"size must be non-negative, got {width}x{height}")

    payload: TextPayload | ImagePayload | ShapePayload
    if kind == "text":
        font_size = doc.get("fontSize")
        align = str(doc.get("textAlign") or "left").strip().lower()
        payload = TextPayload(
            content=str(doc.get("content") or ""),
            font_family=str(doc.get("fontFamily") or "Arial"),
            font_size=_number(font_size if font_size is not None else DEFAULT_FONT_SIZE, "fontSize", element_id),
            font_weight=str(doc.get("fontWeight") or "normal"),
            color=_color_text(doc.get("color"), DEFAULT_TEXT_COLOR),
            text_align=align if align in TEXT_ALIGNS else "left",
        )
    elif kind in IMAGE_KINDS:
        source = doc.get("imageUrl")
        payload = ImagePayload(
            source=str(source) if source else None,
            background_color=_color_text(doc.get("backgroundColor"), TRANSPARENT_KEYWORD),
            border_width=_number(doc.get("borderWidth") or 0, "borderWidth", element_id),
            border_color=_color_text(doc.get("borderColor"), TRANSPARENT_KEYWORD),
        )
    else:
        shape_type = doc.get("shapeType")
        payload = ShapePayload(
            shape_type=str(shape_type).strip().lower() if shape_type else None,
            background_color=_color_text(doc.get("backgroundColor"), TRANSPARENT_KEYWORD),
            border_color=_color_text(doc.get("borderColor"), DEFAULT_LINE_COLOR),
            border_width=_number(doc.get("borderWidth") or 0, "borderWidth", element_id),
        )

    z_index = doc.get("zIndex")
    opacity = doc.get("opacity")
    opacity_value = _number(opacity, "opacity", element_id) if opacity is not None else 1.0
    return Element(
        id=element_id,
        kind=kind,
        x=math.floor(x),
        y=math.floor(y),
        width=int(round(width)),
        height=int(round(height)),
        payload=payload,
        z_index=int(_number(z_index, "zIndex", element_id)) if z_index is not None else DEFAULT_Z_INDEX,
        rotation=_number(doc.get("rotation") or 0, "rotation", element_id),
        opacity=max(0.0, min(1.0, opacity_value)),
        locked=bool(doc.get("isLocked", False)),
        editable=bool(doc.get("isEditable", True)),
    )
