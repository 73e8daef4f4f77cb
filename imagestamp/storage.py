"""Reference storage collaborators: a local-disk uploader and JSON job records."""
from __future__ import annotations

import io
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from PIL import Image, UnidentifiedImageError

from imagestamp.constants import DEFAULT_STORAGE_FOLDER
from imagestamp.errors import StorageError
from imagestamp.models import UploadResult

if TYPE_CHECKING:
    from imagestamp.jobs import RenderJob

LOGGER = logging.getLogger(__name__)


class Uploader(Protocol):
    def upload(self, data: bytes, *, name: str, format: str) -> UploadResult: ...


def _image_size(data: bytes) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as exc:
        raise StorageError(f"uploaded bytes are not an image: {exc}") from exc


class LocalUploader:
    def __init__(self, root: Path, folder: str = DEFAULT_STORAGE_FOLDER) -> None:
        self.root = Path(root)
        self.folder = folder

    def upload(self, data: bytes, *, name: str, format: str) -> UploadResult:
        target = self.root / self.folder / name
        width, height = _image_size(data)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"failed to store {target}: {exc}") from exc
        LOGGER.debug("stored %s (%d bytes)", target, len(data))
        return UploadResult(
            url=target.resolve().as_uri(),
            size=len(data),
            width=width,
            height=height,
            format=format,
        )


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class JobRecordStore:
    """One JSON file per job id, updated on every lifecycle event."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _record_path(self, job_id: str) -> Path:
        return self.directory / f"{job_id}.json"

    def get(self, job_id: str) -> dict[str, Any] | None:
        path = self._record_path(job_id)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, job_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            record = self.get(job_id) or {"jobId": job_id}
            record.update(changes)
            record["updatedAt"] = datetime.now(timezone.utc).isoformat()
            self._record_path(job_id).write_text(json.dumps(record, indent=2), encoding="utf-8")
            return record

    def create(self, job: RenderJob) -> dict[str, Any]:
        return self._write(
            job.job_id,
            {
                "templateName": job.template.name,
                "status": job.status.value,
                "format": job.options.format,
                "quality": job.options.quality,
            },
        )

    def on_start(self, job: RenderJob) -> None:
        self._write(
            job.job_id,
            {
                "status": job.status.value,
                "processingLog": {"startTime": _isoformat(job.started_at)},
            },
        )

    def on_complete(self, job: RenderJob, result: UploadResult) -> None:
        self._write(
            job.job_id,
            {
                "status": job.status.value,
                "generatedImage": result.to_dict(),
                "processingLog": {
                    "startTime": _isoformat(job.started_at),
                    "endTime": _isoformat(job.finished_at),
                },
                "metadata": {"generationTime": job.generation_time_ms},
            },
        )

    def on_fail(self, job: RenderJob, message: str) -> None:
        self._write(
            job.job_id,
            {
                "status": job.status.value,
                "processingLog": {
                    "startTime": _isoformat(job.started_at),
                    "endTime": _isoformat(job.finished_at),
                    "errorMessage": message,
                },
            },
        )
