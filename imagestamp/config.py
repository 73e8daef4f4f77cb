from __future__ import annotations

import copy
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from imagestamp.constants import (
    DEFAULT_FONT_SIZES,
    DEFAULT_LINE_HEIGHT_FACTOR,
    DEFAULT_NAME_TEMPLATE,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_QUALITY,
    PLACEHOLDER_COLOR,
    THUMBNAIL_SIZE,
)


def default_jobs() -> int:
    cpu_count = os.cpu_count() or 2
    return max(1, cpu_count - 1)


DEFAULT_CONFIG: dict[str, Any] = {
    "font_sizes": list(DEFAULT_FONT_SIZES),
    "font_path": None,
    "line_height_factor": DEFAULT_LINE_HEIGHT_FACTOR,
    "placeholder_color": PLACEHOLDER_COLOR,
    "output_format": DEFAULT_OUTPUT_FORMAT,
    "quality": DEFAULT_QUALITY,
    "jobs": default_jobs(),
    "http_timeout": 15.0,
    "output_dir": "output",
    "name_template": DEFAULT_NAME_TEMPLATE,
    "thumbnail_size": list(THUMBNAIL_SIZE),
}


def get_user_data_dir() -> Path:
    """返回用户可写的数据目录。"""
    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "ImageStamp"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "ImageStamp"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "ImageStamp"
    return Path.home() / ".config" / "ImageStamp"


def get_config_path() -> Path:
    override = os.environ.get("IMAGESTAMP_CONFIG")
    if override:
        return Path(override)
    return get_user_data_dir() / "config.yaml"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        cfg = copy.deepcopy(DEFAULT_CONFIG)
        cfg["jobs"] = default_jobs()
        return cfg

    text = cfg_path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        loaded = {}
    cfg = _deep_merge(DEFAULT_CONFIG, loaded)
    if not cfg.get("jobs"):
        cfg["jobs"] = default_jobs()
    return cfg


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["jobs"] = default_jobs()
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path


@dataclass(slots=True, frozen=True)
class RendererConfig:
    """Render settings handed to the Renderer at construction."""

    font_sizes: tuple[int, ...] = DEFAULT_FONT_SIZES
    line_height_factor: float = DEFAULT_LINE_HEIGHT_FACTOR
    placeholder_color: str = PLACEHOLDER_COLOR
    font_path: Path | None = None
    thumbnail_size: tuple[int, int] = THUMBNAIL_SIZE

    def __post_init__(self) -> None:
        sizes = tuple(sorted({int(size) for size in self.font_sizes}))
        if not sizes or sizes[0] <= 0:
            raise ValueError(f"font_sizes must be positive integers, got {self.font_sizes!r}")
        object.__setattr__(self, "font_sizes", sizes)
        if self.line_height_factor <= 0:
            raise ValueError(f"line_height_factor must be positive, got {self.line_height_factor}")
        width, height = (int(value) for value in self.thumbnail_size)
        if width <= 0 or height <= 0:
            raise ValueError(f"thumbnail_size must be positive, got {self.thumbnail_size!r}")
        object.__setattr__(self, "thumbnail_size", (width, height))

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> RendererConfig:
        font_path = cfg.get("font_path")
        return cls(
            font_sizes=tuple(cfg.get("font_sizes") or DEFAULT_FONT_SIZES),
            line_height_factor=float(cfg.get("line_height_factor") or DEFAULT_LINE_HEIGHT_FACTOR),
            placeholder_color=str(cfg.get("placeholder_color") or PLACEHOLDER_COLOR),
            font_path=Path(font_path) if font_path else None,
            thumbnail_size=tuple(cfg.get("thumbnail_size") or THUMBNAIL_SIZE),  # type: ignore[arg-type]
        )
