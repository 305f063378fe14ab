from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateJobRequest(BaseModel):
    url: Optional[str] = None
    resize: Any = None


class JobOptionsOut(CamelModel):
    resize: Optional[int] = None


class JobItemOut(CamelModel):
    idx: Any = None
    sort: int
    title: str
    ext: str
    size: int
    size_label: str
    mime_type: Optional[str] = None
    resized: bool = False
    data_url: Optional[str] = None


class PreviewOut(CamelModel):
    idx: Any = None
    title: str
    mime_type: str
    data_url: str


class ArchiveOut(CamelModel):
    filename: str
    size: int
    size_label: str


class PublicJob(CamelModel):
    id: str
    url: str
    package_id: str
    options: JobOptionsOut
    status: str
    stage: str
    progress: float
    message: str
    error: Optional[str] = None
    package_title: Optional[str] = None
    package_info: Optional[Dict[str, Any]] = None
    item_count: int = 0
    items: List[JobItemOut] = []
    previews: List[PreviewOut] = []
    archive: Optional[ArchiveOut] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
