"""Session-scoped job registry with a single sequential worker.

Every public operation calls ``cleanup_expired_jobs`` first. Expired jobs are
swept lazily on real traffic, there is no background timer, so a stale job
disappears on the next read or write rather than at an exact wall-clock time.

All state lives on one asyncio event loop; callers must not touch a queue
from other threads.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import uuid
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

from dccon.core.errors import DcconError, NotFoundError, NotReadyError, ValidationError
from dccon.core.settings import settings
from dccon.models.entities import (
    COMPLETED,
    FAILED,
    PROCESSING,
    QUEUED,
    Job,
    JobOptions,
    PackageArchive,
    PackageResult,
)
from dccon.schemas.contracts import PublicJob
from dccon.services.dccon_downloader import ProgressReporter
from dccon.services.projection import to_public_job
from dccon.utils.package_id import extract_package_id

logger = logging.getLogger(__name__)


class PackageFetcher(Protocol):
    async def fetch_package(self, package_id: str, resize: Optional[int], report: ProgressReporter) -> PackageResult:
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_resize(value: Any, low: int | None = None, high: int | None = None) -> Optional[int]:
    """``None`` for anything non-numeric or <= 0, otherwise rounded and clamped to [low, high]."""
    low = settings.resize_min if low is None else low
    high = settings.resize_max if high is None else high
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric) or numeric <= 0:
        return None
    return min(high, max(low, math.floor(numeric + 0.5)))


def require_session_id(session_id: Any) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise ValidationError("세션 식별자가 필요합니다.")
    return session_id.strip()


class JobQueue:
    def __init__(
        self,
        fetcher: PackageFetcher,
        *,
        ttl: timedelta | None = None,
        max_jobs_per_session: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.fetcher = fetcher
        self.ttl = ttl if ttl is not None else timedelta(minutes=settings.job_ttl_minutes)
        self.max_jobs_per_session = max_jobs_per_session or settings.max_jobs_per_session
        self.clock = clock

        self._jobs: dict[str, Job] = {}
        self._session_jobs: dict[str, list[str]] = {}
        self._pending: deque[str] = deque()
        self._processing_job: Optional[str] = None
        self._wakeup = asyncio.Event()
        self._worker_task: Optional[asyncio.Task] = None

    # ── Public operations ───────────────────────────────────────────────────
    def create_job(self, url: str, session_id: str, options: dict | None = None) -> PublicJob:
        sid = require_session_id(session_id)
        self.cleanup_expired_jobs()

        trimmed = (url or "").strip()
        package_id = extract_package_id(trimmed)
        if not package_id:
            raise ValidationError("유효한 디시콘 URL이 아닙니다.")

        now = self.clock()
        job = Job(
            id=uuid.uuid4().hex,
            session_id=sid,
            url=trimmed,
            package_id=package_id,
            options=JobOptions(resize=normalize_resize((options or {}).get("resize"))),
            created_at=now,
            updated_at=now,
        )
        self._jobs[job.id] = job
        self._session_jobs.setdefault(sid, []).append(job.id)
        self._trim_session(sid)

        self._pending.append(job.id)
        self._wakeup.set()
        logger.info(f"Job {job.id} queued for package {package_id} (resize={job.options.resize})")
        return to_public_job(job)

    def list_jobs(self, session_id: str) -> list[PublicJob]:
        sid = require_session_id(session_id)
        self.cleanup_expired_jobs()

        order = self._session_jobs.get(sid)
        if not order:
            return []
        order[:] = [job_id for job_id in order if job_id in self._jobs]
        if not order:
            del self._session_jobs[sid]
        return [to_public_job(self._jobs[job_id]) for job_id in order]

    def get_job(self, session_id: str, job_id: str) -> Optional[PublicJob]:
        job = self._owned_job(session_id, job_id)
        return to_public_job(job) if job else None

    def get_job_download_data(self, session_id: str, job_id: str) -> PackageArchive:
        job = self._owned_job(session_id, job_id)
        if job is None:
            raise NotFoundError("작업을 찾을 수 없습니다.")
        if job.status != COMPLETED or job.archive is None:
            raise NotReadyError("아직 다운로드할 수 없습니다.")
        return job.archive

    def remove_job(self, job_id: str) -> bool:
        job = self._jobs.get(job_id)
        if job is None or job.status == PROCESSING:
            return False

        del self._jobs[job_id]
        order = self._session_jobs.get(job.session_id)
        if order is not None:
            if job_id in order:
                order.remove(job_id)
            if not order:
                del self._session_jobs[job.session_id]
        if job_id in self._pending:
            self._pending = deque(pending for pending in self._pending if pending != job_id)
        return True

    def cleanup_expired_jobs(self) -> int:
        cutoff = self.clock() - self.ttl
        expired = [job_id for job_id, job in self._jobs.items() if job.is_terminal and job.updated_at < cutoff]
        removed = sum(1 for job_id in expired if self.remove_job(job_id))
        if removed:
            logger.info(f"Removed {removed} expired job(s)")
        return removed

    # ── Worker ──────────────────────────────────────────────────────────────
    @property
    def processing_job_id(self) -> Optional[str]:
        return self._processing_job

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self.run_worker(), name="dccon-job-worker")

    async def stop(self) -> None:
        task, self._worker_task = self._worker_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_worker(self) -> None:
        logger.info("Job worker started")
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            while True:
                try:
                    if not await self.process_next():
                        break
                except Exception:
                    logger.exception("Job worker step failed")

    async def process_next(self) -> bool:
        """Run at most one pending job. Returns False when idle or when a job is already running."""
        if self._processing_job is not None or not self._pending:
            return False

        job_id = self._pending.popleft()
        job = self._jobs.get(job_id)
        if job is None or job.status != QUEUED:
            logger.debug(f"Skipping stale queue entry {job_id}")
            return True

        self._processing_job = job.id
        try:
            await self._run_job(job)
        except Exception as exc:
            if job.status == PROCESSING:
                self._mark_failed(job, exc)
            else:
                logger.exception(f"Job {job.id} raised after reaching {job.status}")
        finally:
            self._processing_job = None
        return True

    def _mark_failed(self, job: Job, exc: Exception) -> None:
        job.status = FAILED
        job.stage = "failed"
        job.error = str(exc) or "알 수 없는 오류가 발생했습니다."
        job.message = job.error
        job.updated_at = self.clock()
        logger.warning(f"Job {job.id} failed: {job.error}", exc_info=not isinstance(exc, DcconError))

    async def _run_job(self, job: Job) -> None:
        now = self.clock()
        job.status = PROCESSING
        job.stage = "initializing"
        job.progress = 0.01
        job.message = "작업을 준비하는 중입니다."
        job.started_at = now
        job.updated_at = now
        logger.info(f"Job {job.id} started (package {job.package_id})")

        def report(stage: str, progress: float, message: str) -> None:
            job.stage = stage
            job.progress = min(1.0, max(job.progress, progress, 0.0))
            job.message = message
            job.updated_at = self.clock()

        try:
            result = await self.fetcher.fetch_package(job.package_id, job.options.resize, report)
            title = result.info.get("title")
            package_title = str(title) if title is not None else None
            package_info = dict(result.info)
            items, previews, archive = list(result.items), list(result.previews), result.archive
            if archive is None:
                raise ValueError("package result has no archive")
        except Exception as exc:
            self._mark_failed(job, exc)
            return

        job.package_title = package_title
        job.package_info = package_info
        job.items = items
        job.previews = previews
        job.archive = archive
        job.status = COMPLETED
        job.stage = "completed"
        job.progress = 1.0
        job.message = "다운로드가 완료되었습니다."
        job.completed_at = self.clock()
        job.updated_at = job.completed_at
        logger.info(f"Job {job.id} completed with {len(job.items)} item(s)")

    # ── Internals ───────────────────────────────────────────────────────────
    def _owned_job(self, session_id: str, job_id: str) -> Optional[Job]:
        sid = require_session_id(session_id)
        self.cleanup_expired_jobs()
        job = self._jobs.get(job_id)
        if job is None or job.session_id != sid:
            return None
        return job

    def _trim_session(self, session_id: str) -> None:
        order = self._session_jobs.get(session_id)
        while order and len(order) > self.max_jobs_per_session:
            oldest = order[0]
            if not self.remove_job(oldest):
                break
            logger.info(f"Evicted job {oldest} from session over the {self.max_jobs_per_session}-job cap")
