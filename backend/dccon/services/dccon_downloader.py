"""Sequential dccon package download: session handshake, detail lookup, per-image fetch."""
from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from dccon.core.errors import DetailError, ImageFetchError, ResizeError, SessionError
from dccon.core.settings import settings
from dccon.models.entities import PackageItem, PackageResult, Preview
from dccon.services.archive import build_zip
from dccon.services.image_resize import can_resize, resize_contain
from dccon.utils.files import build_archive_filename

logger = logging.getLogger(__name__)

ACCEPT_LANGUAGE = "ko,en-US;q=0.9,en;q=0.8"
CSRF_COOKIE = "ci_c"

IMAGE_PROGRESS_START = 0.15
IMAGE_PROGRESS_SPAN = 0.75


class ProgressReporter(Protocol):
    def __call__(self, stage: str, progress: float, message: str) -> None:
        ...


@dataclass
class OriginSession:
    cookie_header: str
    csrf_token: str


def to_data_url(buffer: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(buffer).decode('ascii')}"


class DcconDownloader:
    def __init__(
        self,
        base_url: str | None = None,
        image_endpoint: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        preview_count: int | None = None,
    ):
        self.base_url = (base_url or settings.dccon_base_url).rstrip("/")
        self.image_endpoint = image_endpoint or settings.dccon_image_endpoint
        self.transport = transport
        self.preview_count = settings.preview_count if preview_count is None else preview_count

    async def fetch_package(
        self,
        package_id: str,
        resize: Optional[int],
        report: ProgressReporter,
    ) -> PackageResult:
        async with self._client() as client:
            session = await self.init_session(client)
            report("session", 0.05, "세션을 초기화하는 중입니다.")

            detail = await self.fetch_detail(client, session, package_id)
            report("detail", 0.15, "디시콘 상세 정보를 불러왔습니다.")

            entries = detail["detail"]
            items: list[PackageItem] = []
            for index, entry in enumerate(entries):
                item = await self._download_item(client, session, entry, index, resize)
                items.append(item)
                suffix = " (리사이즈 적용)" if item.resized else ""
                report(
                    "image",
                    IMAGE_PROGRESS_START + (index + 1) / len(entries) * IMAGE_PROGRESS_SPAN,
                    f"{index + 1}/{len(entries)}개의 이미지를 저장했습니다.{suffix}",
                )

        info = detail.get("info") if isinstance(detail.get("info"), dict) else {}
        archive = await asyncio.to_thread(build_zip, items, build_archive_filename(info.get("title"), package_id))
        report("archive", 0.95, "ZIP 파일을 생성했습니다.")

        previews = [
            Preview(idx=item.idx, title=item.title, mime_type=item.mime_type, data_url=to_data_url(item.buffer, item.mime_type))
            for item in items[: self.preview_count]
        ]
        report("complete", 1.0, "모든 작업이 완료되었습니다.")
        return PackageResult(info=info, items=items, previews=previews, archive=archive)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.request_timeout_s,
            follow_redirects=True,
            transport=self.transport,
            headers={"User-Agent": settings.user_agent, "Accept-Language": ACCEPT_LANGUAGE},
        )

    async def init_session(self, client: httpx.AsyncClient) -> OriginSession:
        try:
            resp = await client.get(
                f"{self.base_url}/",
                headers={
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
                    "Upgrade-Insecure-Requests": "1",
                },
            )
        except httpx.HTTPError as exc:
            raise SessionError("초기 연결에 실패했습니다.") from exc
        if not resp.is_success:
            raise SessionError("초기 연결에 실패했습니다.")

        pairs = [raw.split(";", 1)[0].strip() for raw in resp.headers.get_list("set-cookie") if raw]
        pairs = [p for p in pairs if p]
        csrf = next((p for p in pairs if p.startswith(f"{CSRF_COOKIE}=")), None)
        if not csrf:
            raise SessionError("인증 토큰을 가져오지 못했습니다.")
        return OriginSession(cookie_header="; ".join(pairs), csrf_token=csrf.split("=", 1)[1])

    async def fetch_detail(self, client: httpx.AsyncClient, session: OriginSession, package_id: str) -> dict:
        try:
            resp = await client.post(
                f"{self.base_url}/index/package_detail",
                data={"ci_t": session.csrf_token, "package_idx": package_id, "code": ""},
                headers={
                    "Accept": "*/*",
                    "Cookie": session.cookie_header,
                    "Referer": f"{self.base_url}/",
                    "X-Requested-With": "XMLHttpRequest",
                },
            )
        except httpx.HTTPError as exc:
            raise DetailError("디시콘 정보를 불러오지 못했습니다.") from exc
        if not resp.is_success:
            raise DetailError("디시콘 정보를 불러오지 못했습니다.")

        try:
            data = resp.json()
        except ValueError as exc:
            raise DetailError("디시콘 정보 형식이 올바르지 않습니다.") from exc
        entries = data.get("detail") if isinstance(data, dict) else None
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise DetailError("디시콘 정보 형식이 올바르지 않습니다.")
        return data

    async def fetch_image(self, client: httpx.AsyncClient, session: OriginSession, path: str) -> tuple[bytes, str]:
        try:
            resp = await client.get(
                f"{self.image_endpoint}{path}",
                headers={
                    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
                    "Cookie": session.cookie_header,
                    "Referer": f"{self.base_url}/",
                },
            )
        except httpx.HTTPError as exc:
            raise ImageFetchError("이미지를 다운로드하지 못했습니다.") from exc
        if not resp.is_success:
            raise ImageFetchError("이미지를 다운로드하지 못했습니다.")
        mime_type = resp.headers.get("content-type", "").split(";")[0].strip()
        return resp.content, mime_type or "image/png"

    async def _download_item(
        self,
        client: httpx.AsyncClient,
        session: OriginSession,
        entry: dict,
        index: int,
        resize: Optional[int],
    ) -> PackageItem:
        buffer, mime_type = await self.fetch_image(client, session, entry.get("path", ""))
        ext = str(entry.get("ext") or "png")
        resized = False

        if resize and can_resize(ext, mime_type):
            try:
                out = await asyncio.to_thread(resize_contain, buffer, resize)
                buffer, ext, mime_type, resized = out.buffer, out.ext, out.mime_type, True
            except ResizeError as exc:
                logger.warning(f"Resize failed for item {entry.get('idx')}, keeping original: {exc}")

        try:
            sort = int(entry.get("sort"))
        except (TypeError, ValueError):
            sort = 0
        return PackageItem(
            idx=entry.get("idx"),
            package_idx=entry.get("package_idx"),
            title=str(entry.get("title") or ""),
            sort=sort or index + 1,
            ext=ext,
            path=entry.get("path", ""),
            buffer=buffer,
            mime_type=mime_type,
            resized=resized,
        )
