"""In-memory job records. Nothing here outlives the process."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATUSES = (COMPLETED, FAILED)


@dataclass
class PackageItem:
    idx: Any
    package_idx: Any
    title: str
    sort: int
    ext: str
    path: str
    buffer: bytes
    mime_type: str
    resized: bool = False

    @property
    def size(self) -> int:
        return len(self.buffer)


@dataclass
class Preview:
    idx: Any
    title: str
    mime_type: str
    data_url: str


@dataclass
class PackageArchive:
    buffer: bytes
    filename: str

    @property
    def size(self) -> int:
        return len(self.buffer)


@dataclass
class PackageResult:
    info: dict
    items: list[PackageItem]
    previews: list[Preview]
    archive: PackageArchive


@dataclass
class JobOptions:
    resize: Optional[int] = None   # edge length in px, None keeps source size


@dataclass
class Job:
    id: str
    session_id: str
    url: str
    package_id: str
    options: JobOptions
    created_at: datetime
    updated_at: datetime
    status: str = QUEUED
    progress: float = 0.0
    stage: str = "queued"
    message: str = "다운로드 대기 중"
    package_title: Optional[str] = None
    package_info: Optional[dict] = None
    items: list[PackageItem] = field(default_factory=list)
    previews: list[Preview] = field(default_factory=list)
    archive: Optional[PackageArchive] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
