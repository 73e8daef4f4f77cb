import pytest

from imagestamp.errors import TemplateError
from imagestamp.models import ElementOverride
from imagestamp.render.overrides import build_override_map, resolve_elements


def _elements() -> list[dict]:
    return [
        {
            "id": "title",
            "type": "text",
            "position": {"x": 10, "y": 20},
            "size": {"width": 300, "height": 60},
            "content": "OLD",
            "color": "#111111",
            "fontSize": 32,
            "textAlign": "center",
        },
        {
            "id": "header",
            "type": "shape",
            "shapeType": "rectangle",
            "position": {"x": 0, "y": 0},
            "size": {"width": 100, "height": 20},
            "backgroundColor": "#2563eb",
        },
    ]


def test_override_changes_only_listed_fields() -> None:
    elements = _elements()
    resolved = resolve_elements(elements, [{"elementId": "title", "customData": {"content": "NEW"}}])

    assert resolved[0]["content"] == "NEW"
    for key in ("id", "type", "position", "size", "color", "fontSize", "textAlign"):
        assert resolved[0][key] == elements[0][key]
    assert resolved[1] is elements[1]


def test_template_documents_are_not_mutated() -> None:
    elements = _elements()
    resolve_elements(elements, [{"elementId": "title", "customData": {"content": "NEW"}}])
    assert elements[0]["content"] == "OLD"


def test_nested_override_replaces_whole_value() -> None:
    resolved = resolve_elements(_elements(), [{"elementId": "title", "customData": {"position": {"x": 5}}}])
    assert resolved[0]["position"] == {"x": 5}


def test_unmatched_overrides_are_ignored() -> None:
    elements = _elements()
    resolved = resolve_elements(elements, [{"elementId": "nope", "customData": {"content": "X"}}])
    assert resolved == elements


def test_template_order_is_kept_regardless_of_override_order() -> None:
    resolved = resolve_elements(
        _elements(),
        [
            ElementOverride("header", {"backgroundColor": "#000000"}),
            ElementOverride("title", {"content": "NEW"}),
        ],
    )
    assert [doc["id"] for doc in resolved] == ["title", "header"]
    assert resolved[1]["backgroundColor"] == "#000000"


def test_repeated_element_id_keeps_last_override() -> None:
    lookup = build_override_map(
        [
            {"elementId": "title", "customData": {"content": "first"}},
            {"elementId": "title", "customData": {"content": "second"}},
        ]
    )
    assert lookup == {"title": {"content": "second"}}


def test_malformed_override_is_rejected() -> None:
    with pytest.raises(TemplateError):
        resolve_elements(_elements(), [{"elementId": "title", "customData": "NEW"}])
    with pytest.raises(TemplateError):
        resolve_elements(_elements(), [{"customData": {"content": "NEW"}}])
