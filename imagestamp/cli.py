from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer

from imagestamp.config import RendererConfig, load_config, write_default_config
from imagestamp.decoders.image_decoder import ImageSourceLoader
from imagestamp.errors import ImageStampError
from imagestamp.jobs import JobStatus, RenderJob, RenderService
from imagestamp.models import ElementOverride, OutputOptions, Template
from imagestamp.render.encoder import resolve_output_format
from imagestamp.render.pipeline import Renderer, paint_order
from imagestamp.storage import JobRecordStore, LocalUploader
from imagestamp.template_loader import list_builtin_templates, load_template

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Render layered templates onto photos.")
LOGGER = logging.getLogger("imagestamp")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_template_or_exit(template: str) -> Template:
    try:
        return load_template(template)
    except (ImageStampError, FileNotFoundError, OSError) as exc:
        typer.secho(f"Template load failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)


def _load_overrides(path: Path | None) -> list[ElementOverride]:
    if path is None:
        return []
    data: Any = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("customElements") or []
    if not isinstance(data, list):
        raise ValueError("overrides file must be a list of {elementId, customData}")
    return [ElementOverride.from_dict(item) for item in data]


def _build_renderer(cfg: dict[str, Any], base_dir: Path | None = None) -> Renderer:
    loader = ImageSourceLoader(timeout=float(cfg.get("http_timeout") or 15.0), base_dir=base_dir)
    return Renderer(RendererConfig.from_config(cfg), image_loader=loader)


@app.command()
def render(
    template: str = typer.Argument(..., help="Built-in template name or .json/.yaml file."),
    background: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True),
    overrides: Path | None = typer.Option(
        None, "--overrides", exists=True, dir_okay=False, help="JSON list of {elementId, customData}."
    ),
    out: Path | None = typer.Option(None, "--out", help="Output root directory."),
    output_format: str | None = typer.Option(None, "--format", help="png|jpeg|webp"),
    quality: int | None = typer.Option(None, "--quality", min=1, max=100),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render one template with a background photo and store the result."""
    _setup_logging(log_level)
    cfg = load_config()

    fmt_str = output_format or str(cfg.get("output_format", "png"))
    try:
        fmt = resolve_output_format(fmt_str)
    except ImageStampError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    quality_val = int(quality if quality is not None else cfg.get("quality", 90))

    tpl = _load_template_or_exit(template)
    try:
        custom_elements = _load_overrides(overrides)
    except (ValueError, ImageStampError) as exc:
        typer.secho(f"Overrides load failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    out_dir = out or Path(str(cfg.get("output_dir") or "output"))
    records = JobRecordStore(out_dir / "jobs")
    job = RenderJob(
        template=tpl,
        background=background.read_bytes(),
        overrides=custom_elements,
        options=OutputOptions(format=fmt, quality=quality_val),
    )
    records.create(job)

    template_dir = Path(template).parent if Path(template).exists() else None
    service = RenderService(
        _build_renderer(cfg, base_dir=template_dir),
        LocalUploader(out_dir),
        workers=int(cfg.get("jobs") or 1),
        name_template=str(cfg.get("name_template") or "generated_{job}.{ext}"),
    )
    with service:
        job = service.generate(job, records).result()

    if job.status is JobStatus.COMPLETED and job.result is not None:
        typer.echo(f"Done. job={job.job_id} url={job.result.url} size={job.result.size}")
        return
    typer.secho(f"Render failed: {job.error_message}", err=True, fg=typer.colors.RED)
    raise typer.Exit(1)


@app.command()
def thumbnail(
    template: str = typer.Argument(..., help="Built-in template name or .json/.yaml file."),
    background: Path | None = typer.Option(None, "--background", exists=True, dir_okay=False, resolve_path=True),
    out: Path = typer.Option(Path("thumbnail.png"), "--out", help="Output PNG file."),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Render a small PNG preview of a template."""
    _setup_logging(log_level)
    cfg = load_config()
    tpl = _load_template_or_exit(template)
    renderer = _build_renderer(cfg, base_dir=Path(template).parent if Path(template).exists() else None)
    data = renderer.render_thumbnail(tpl, background.read_bytes() if background else None)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    typer.echo(f"Thumbnail written: {out}")


@app.command("inspect")
def inspect_template(
    template: str = typer.Argument(..., help="Built-in template name or .json/.yaml file."),
) -> None:
    """Print template canvas and element paint order as JSON."""
    tpl = _load_template_or_exit(template)
    payload = {
        "name": tpl.name,
        "canvasSize": {"width": tpl.width, "height": tpl.height},
        "defaultBackground": tpl.default_background,
        "paintOrder": [
            {"id": doc.get("id"), "type": doc.get("type"), "zIndex": doc.get("zIndex", 1)}
            for doc in paint_order(tpl.elements)
        ],
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("templates")
def templates() -> None:
    """List built-in templates."""
    for name in list_builtin_templates():
        typer.echo(name)


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
