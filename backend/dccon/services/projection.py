"""Maps in-memory jobs to their public shape: image buffers become data URLs, archive bytes are withheld."""
from __future__ import annotations

from dccon.models.entities import Job, PackageItem
from dccon.schemas.contracts import ArchiveOut, JobItemOut, JobOptionsOut, PreviewOut, PublicJob
from dccon.services.dccon_downloader import to_data_url
from dccon.utils.files import format_bytes


def summarise_item(item: PackageItem) -> JobItemOut:
    data_url = to_data_url(item.buffer, item.mime_type) if item.buffer and item.mime_type else None
    return JobItemOut(
        idx=item.idx,
        sort=item.sort,
        title=item.title,
        ext=item.ext,
        size=item.size,
        size_label=format_bytes(item.size),
        mime_type=item.mime_type,
        resized=item.resized,
        data_url=data_url,
    )


def to_public_job(job: Job) -> PublicJob:
    archive = None
    if job.archive is not None:
        archive = ArchiveOut(
            filename=job.archive.filename,
            size=job.archive.size,
            size_label=format_bytes(job.archive.size),
        )
    return PublicJob(
        id=job.id,
        url=job.url,
        package_id=job.package_id,
        options=JobOptionsOut(resize=job.options.resize),
        status=job.status,
        stage=job.stage,
        progress=job.progress,
        message=job.message,
        error=job.error,
        package_title=job.package_title,
        package_info=job.package_info,
        item_count=len(job.items),
        items=[summarise_item(item) for item in job.items],
        previews=[
            PreviewOut(idx=p.idx, title=p.title, mime_type=p.mime_type, data_url=p.data_url)
            for p in job.previews
        ],
        archive=archive,
        created_at=job.created_at,
        updated_at=job.updated_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )
