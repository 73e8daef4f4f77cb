from __future__ import annotations

import re
from pathlib import Path

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def sanitize_token(value: str | None, fallback: str = "NA") -> str:
    text = (value or "").strip()
    if not text:
        text = fallback
    text = INVALID_FILENAME_CHARS.sub("_", text)
    text = re.sub(r"\s+", "_", text)
    text = text.strip(" ._")
    return text or fallback


def sanitize_filename(value: str, fallback: str = "output") -> str:
    text = INVALID_FILENAME_CHARS.sub("_", value).strip(" .")
    return text or fallback


def build_output_name(
    name_template: str,
    job_id: str,
    extension: str,
    template_name: str | None = None,
) -> str:
    ext = extension.lower().lstrip(".")
    values = {
        "job": sanitize_token(job_id, fallback="job"),
        "template": sanitize_token(template_name, fallback="template"),
        "ext": ext,
    }
    try:
        rendered = name_template.format(**values)
    except KeyError as exc:
        missing = str(exc).strip("'")
        raise ValueError(f"name template contains unknown key: {missing}") from exc

    rendered = sanitize_filename(rendered, fallback=f"generated_{values['job']}.{ext}")
    if not Path(rendered).suffix:
        rendered = f"{rendered}.{ext}"
    return rendered
