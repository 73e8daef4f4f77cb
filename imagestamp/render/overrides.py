from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from imagestamp.models import ElementOverride

LOGGER = logging.getLogger(__name__)


def _as_override(value: ElementOverride | Mapping[str, Any]) -> ElementOverride:
    if isinstance(value, ElementOverride):
        return value
    return ElementOverride.from_dict(value)


def build_override_map(
    overrides: Iterable[ElementOverride | Mapping[str, Any]] | None,
) -> dict[str, Mapping[str, Any]]:
    """Map elementId -> customData. A repeated id keeps the last entry."""
    lookup: dict[str, Mapping[str, Any]] = {}
    for raw in overrides or ():
        override = _as_override(raw)
        lookup[override.element_id] = override.custom_data
    return lookup


def resolve_elements(
    template_elements: Sequence[Mapping[str, Any]],
    overrides: Iterable[ElementOverride | Mapping[str, Any]] | None,
) -> list[Mapping[str, Any]]:
    """Apply user overrides to template element documents.

    The merge is shallow: every top-level key in ``customData`` replaces the
    template's value, nested mappings included (``{"position": {"x": 5}}``
    drops the template's ``position.y``). Template order is preserved so the
    later zIndex sort can break ties by declaration order. Overrides whose
    elementId matches nothing are ignored.
    """
    lookup = build_override_map(overrides)
    resolved: list[Mapping[str, Any]] = []
    matched: set[str] = set()
    for element in template_elements:
        element_id = str(element.get("id"))
        custom_data = lookup.get(element_id)
        if custom_data is None:
            resolved.append(element)
            continue
        matched.add(element_id)
        resolved.append({**element, **custom_data})

    unmatched = sorted(set(lookup) - matched)
    if unmatched:
        LOGGER.debug("ignoring overrides for unknown elements: %s", ", ".join(unmatched))
    return resolved
