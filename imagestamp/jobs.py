from __future__ import annotations

import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Sequence

from imagestamp.constants import DEFAULT_NAME_TEMPLATE
from imagestamp.errors import ImageStampError, InvalidTransition
from imagestamp.models import ElementOverride, OutputOptions, Template, UploadResult
from imagestamp.naming import build_output_name
from imagestamp.render.encoder import encode_image, resolve_output_format
from imagestamp.render.overrides import resolve_elements
from imagestamp.render.pipeline import Renderer
from imagestamp.storage import Uploader

LOGGER = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class RenderJob:
    template: Template
    background: bytes | None
    overrides: Sequence[ElementOverride | Mapping[str, Any]] = ()
    options: OutputOptions = field(default_factory=OutputOptions)
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    result: UploadResult | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.status]

    @property
    def generation_time_ms(self) -> int | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return int(round((self.finished_at - self.started_at).total_seconds() * 1000))


class JobListener:
    """Receives lifecycle events; the surrounding system persists them."""

    def on_start(self, job: RenderJob) -> None:
        pass

    def on_complete(self, job: RenderJob, result: UploadResult) -> None:
        pass

    def on_fail(self, job: RenderJob, message: str) -> None:
        pass


class JobLifecycle:
    """pending -> processing -> completed | failed, nothing else."""

    def __init__(self, job: RenderJob, listener: JobListener | None = None) -> None:
        self.job = job
        self.listener = listener or JobListener()

    def _transition(self, target: JobStatus) -> None:
        current = self.job.status
        if target not in _TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)
        self.job.status = target

    def _emit(self, event: str, *args: Any) -> None:
        try:
            getattr(self.listener, event)(self.job, *args)
        except Exception:
            LOGGER.exception("job %s: listener %s failed", self.job.job_id, event)

    def start(self) -> None:
        self._transition(JobStatus.PROCESSING)
        self.job.started_at = _now()
        LOGGER.info("job %s: processing template %s", self.job.job_id, self.job.template.name)
        self._emit("on_start")

    def complete(self, result: UploadResult) -> None:
        self._transition(JobStatus.COMPLETED)
        self.job.finished_at = _now()
        self.job.result = result
        LOGGER.info(
            "job %s: completed -> %s (%d bytes, %s ms)",
            self.job.job_id,
            result.url,
            result.size,
            self.job.generation_time_ms,
        )
        self._emit("on_complete", result)

    def fail(self, message: str) -> None:
        self._transition(JobStatus.FAILED)
        self.job.finished_at = _now()
        self.job.error_message = message
        LOGGER.error("job %s: failed: %s", self.job.job_id, message)
        self._emit("on_fail", message)


def run_job(
    job: RenderJob,
    renderer: Renderer,
    uploader: Uploader,
    listener: JobListener | None = None,
    name_template: str = DEFAULT_NAME_TEMPLATE,
) -> RenderJob:
    """Render, encode and hand one job to storage, reporting through the listener."""
    lifecycle = JobLifecycle(job, listener)
    lifecycle.start()
    try:
        fmt = resolve_output_format(job.options.format)
        elements = resolve_elements(job.template.elements, job.overrides)
        canvas = renderer.render(job.template, job.background, elements)
        data = encode_image(canvas, fmt, job.options.quality)
        name = build_output_name(name_template, job.job_id, fmt, template_name=job.template.name)
        result = uploader.upload(data, name=name, format=fmt)
    except ImageStampError as exc:
        lifecycle.fail(str(exc))
        return job
    except Exception as exc:
        LOGGER.exception("job %s: unexpected error", job.job_id)
        lifecycle.fail(f"{type(exc).__name__}: {exc}")
        return job
    lifecycle.complete(result)
    return job


class RenderService:
    """Runs jobs on a worker pool; callers get a Future back immediately."""

    def __init__(
        self,
        renderer: Renderer,
        uploader: Uploader,
        *,
        workers: int | None = None,
        name_template: str = DEFAULT_NAME_TEMPLATE,
    ) -> None:
        self.renderer = renderer
        self.uploader = uploader
        self.name_template = name_template
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="imagestamp-render")

    def generate(self, job: RenderJob, listener: JobListener | None = None) -> Future[RenderJob]:
        if job.status is not JobStatus.PENDING:
            raise InvalidTransition(job.status.value, JobStatus.PROCESSING.value)
        LOGGER.debug("job %s: queued", job.job_id)
        return self._executor.submit(self.generate_now, job, listener)

    def generate_now(self, job: RenderJob, listener: JobListener | None = None) -> RenderJob:
        return run_job(job, self.renderer, self.uploader, listener, name_template=self.name_template)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> RenderService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)
