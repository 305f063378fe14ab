from __future__ import annotations

from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status

from dccon.core.errors import NotFoundError, ValidationError
from dccon.schemas.contracts import CreateJobRequest, PublicJob
from dccon.services.job_queue import JobQueue

router = APIRouter(prefix="/api", tags=["jobs"])

# encodeURIComponent's unreserved set
FILENAME_SAFE = "!*'()~"


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


def resolve_session_id(request: Request) -> str:
    """First non-blank ``x-session-id`` header, then the ``session_id`` query parameter."""
    for value in request.headers.getlist("x-session-id")[:1] + request.query_params.getlist("session_id")[:1]:
        if value.strip():
            return value.strip()
    raise ValidationError("세션 식별자가 필요합니다.")


@router.get("/jobs", response_model=List[PublicJob])
async def list_jobs(session_id: str = Depends(resolve_session_id), queue: JobQueue = Depends(get_job_queue)):
    return queue.list_jobs(session_id)


@router.get("/jobs/{job_id}", response_model=PublicJob)
async def get_job(job_id: str, session_id: str = Depends(resolve_session_id), queue: JobQueue = Depends(get_job_queue)):
    job = queue.get_job(session_id, job_id)
    if job is None:
        raise NotFoundError("작업을 찾을 수 없습니다.")
    return job


@router.post("/jobs", response_model=PublicJob, status_code=status.HTTP_201_CREATED)
async def create_job(
    req: CreateJobRequest,
    session_id: str = Depends(resolve_session_id),
    queue: JobQueue = Depends(get_job_queue),
):
    if not req.url or not req.url.strip():
        raise ValidationError("URL을 입력해주세요.")
    return queue.create_job(req.url, session_id, {"resize": req.resize})


@router.get("/jobs/{job_id}/download")
async def download_job(job_id: str, session_id: str = Depends(resolve_session_id), queue: JobQueue = Depends(get_job_queue)):
    archive = queue.get_job_download_data(session_id, job_id)
    return Response(
        content=archive.buffer,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{quote(archive.filename, safe=FILENAME_SAFE)}"'},
    )
