import json
from pathlib import Path

import pytest

from imagestamp.errors import ElementDrawError, TemplateError
from imagestamp.models import ImagePayload, ShapePayload, TextPayload
from imagestamp.template_loader import (
    list_builtin_templates,
    load_template,
    normalize_element,
    normalize_template_dict,
)


def test_normalize_template_dict_reads_canvas_and_elements() -> None:
    template = normalize_template_dict(
        {
            "name": "custom",
            "canvasSize": {"width": 1080, "height": 1080},
            "defaultBackground": "#ffffff",
            "elements": [{"id": "a", "type": "text"}, {"id": "b", "type": "shape"}],
        }
    )
    assert template.name == "custom"
    assert template.size == (1080, 1080)
    assert template.default_background == "#ffffff"
    assert template.element_ids() == ["a", "b"]


@pytest.mark.parametrize(
    "data",
    [
        {"elements": []},
        {"canvasSize": {"width": 0, "height": 10}},
        {"canvasSize": {"width": "wide", "height": 10}},
        {"canvasSize": {"width": 10, "height": 10}, "elements": {"id": "a"}},
        {"canvasSize": {"width": 10, "height": 10}, "elements": [{"type": "text"}]},
        {"canvasSize": {"width": 10, "height": 10}, "elements": [{"id": "a"}, {"id": "a"}]},
    ],
)
def test_normalize_template_dict_rejects_bad_documents(data: dict) -> None:
    with pytest.raises(TemplateError):
        normalize_template_dict(data)


def test_template_elements_are_read_only_copies() -> None:
    raw = {"canvasSize": {"width": 10, "height": 10}, "elements": [{"id": "a", "content": "x"}]}
    template = normalize_template_dict(raw)
    raw["elements"][0]["content"] = "changed"

    assert template.elements[0]["content"] == "x"
    with pytest.raises(TypeError):
        template.elements[0]["content"] = "y"  # type: ignore[index]


def test_load_template_from_json_and_yaml(tmp_path: Path) -> None:
    json_path = tmp_path / "promo.json"
    json_path.write_text(json.dumps({"canvasSize": {"width": 20, "height": 10}}), encoding="utf-8")
    yaml_path = tmp_path / "card.yaml"
    yaml_path.write_text("name: Card\ncanvasSize: {width: 30, height: 15}\nelements: []\n", encoding="utf-8")

    assert load_template(json_path).name == "promo"
    assert load_template(str(yaml_path)).size == (30, 15)


def test_load_template_reports_bad_files(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(TemplateError):
        load_template(broken)
    with pytest.raises(FileNotFoundError):
        load_template("no_such_builtin_template")


def test_builtin_templates_load() -> None:
    names = list_builtin_templates()
    assert {"business_card", "event_announcement"} <= set(names)
    for name in names:
        template = load_template(name)
        assert template.width > 0
        assert template.elements


def test_normalize_text_element_defaults() -> None:
    element = normalize_element(
        {"id": "t", "type": "text", "position": {"x": 10.7, "y": 2.2}, "size": {"width": 99.6, "height": 20}}
    )
    assert (element.x, element.y, element.width, element.height) == (10, 2, 100, 20)
    assert element.z_index == 1
    assert element.opacity == 1.0
    assert isinstance(element.payload, TextPayload)
    assert element.payload.font_size == 16
    assert element.payload.color == "#000000"
    assert element.payload.text_align == "left"


def test_normalize_element_payload_kinds() -> None:
    base = {"position": {"x": 0, "y": 0}, "size": {"width": 1, "height": 1}}
    logo = normalize_element({"id": "l", "type": "LOGO", **base})
    shape = normalize_element({"id": "s", "type": "shape", "shapeType": "Circle", **base})

    assert logo.kind == "logo"
    assert isinstance(logo.payload, ImagePayload)
    assert logo.payload.source is None
    assert isinstance(shape.payload, ShapePayload)
    assert shape.payload.shape_type == "circle"
    assert shape.payload.background_color == "transparent"
    assert shape.payload.border_color == "#000000"


def test_normalize_element_clamps_opacity_and_alignment() -> None:
    base = {"id": "t", "type": "text", "position": {"x": 0, "y": 0}, "size": {"width": 1, "height": 1}}
    assert normalize_element({**base, "opacity": 1.5}).opacity == 1.0
    assert normalize_element({**base, "opacity": -0.2}).opacity == 0.0
    assert normalize_element({**base, "textAlign": "justify"}).payload.text_align == "left"
    assert normalize_element({**base, "zIndex": 0}).z_index == 0


@pytest.mark.parametrize(
    "doc",
    [
        {"id": "x", "type": "video", "position": {"x": 0, "y": 0}, "size": {"width": 1, "height": 1}},
        {"id": "x", "type": "text", "size": {"width": 1, "height": 1}},
        {"id": "x", "type": "text", "position": {"x": 0}, "size": {"width": 1, "height": 1}},
        {"id": "x", "type": "text", "position": {"x": 0, "y": 0}, "size": {"width": -1, "height": 1}},
        {"id": "x", "type": "text", "position": {"x": "left", "y": 0}, "size": {"width": 1, "height": 1}},
    ],
)
def test_normalize_element_rejects_undrawable_documents(doc: dict) -> None:
    with pytest.raises(ElementDrawError):
        normalize_element(doc)
