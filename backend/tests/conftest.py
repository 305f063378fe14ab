"""Shared fixtures: fake clock, fake package fetcher, fake origin site."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from io import BytesIO
from urllib.parse import parse_qs

import httpx
import pytest
from PIL import Image

from dccon.core.errors import DetailError
from dccon.models.entities import PackageItem, PackageResult, Preview
from dccon.services.archive import build_zip

BASE_URL = "https://dccon.test"
IMAGE_ENDPOINT = "https://img.test/dccon.php?no="


def make_image(fmt: str = "PNG", size: tuple[int, int] = (40, 20), color=(255, 0, 0, 255)) -> bytes:
    mode = "RGB" if fmt in ("JPEG", "GIF") else "RGBA"
    im = Image.new(mode, size, color[:3] if mode == "RGB" else color)
    buf = BytesIO()
    im.save(buf, format=fmt)
    return buf.getvalue()


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Stands in for DcconDownloader. Set ``hold`` to keep a job in processing until ``release``."""

    def __init__(self, item_count: int = 3, error: Exception | None = None, hold: bool = False):
        self.item_count = item_count
        self.error = error
        self.hold = hold
        self.calls: list[tuple[str, object]] = []
        self.active = 0
        self.max_active = 0
        self._gate: asyncio.Event | None = None

    def release(self) -> None:
        self.hold = False
        if self._gate is not None:
            self._gate.set()

    async def fetch_package(self, package_id, resize, report):
        self.calls.append((package_id, resize))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            report("session", 0.05, "session ready")
            if self.hold:
                self._gate = asyncio.Event()
                await self._gate.wait()
            await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            items = [
                PackageItem(
                    idx=i,
                    package_idx=package_id,
                    title=f"item {i}",
                    sort=i + 1,
                    ext="png",
                    path=f"path-{i}",
                    buffer=make_image(),
                    mime_type="image/png",
                )
                for i in range(self.item_count)
            ]
            report("image", 0.9, f"{self.item_count}/{self.item_count}")
            previews = [Preview(idx=i.idx, title=i.title, mime_type=i.mime_type, data_url="data:image/png;base64,") for i in items[:4]]
            report("complete", 1.0, "done")
            return PackageResult(
                info={"title": f"pack {package_id}"},
                items=items,
                previews=previews,
                archive=build_zip(items, f"pack_{package_id}.zip"),
            )
        finally:
            self.active -= 1


class FakeOrigin:
    """Routes httpx requests to canned home, detail and image responses."""

    def __init__(self, entries: list[dict], images: dict[str, tuple[bytes, str]], title: str = "My:Pack*"):
        self.entries = entries
        self.images = images
        self.title = title
        self.home_status = 200
        self.set_cookies = ["ci_c=csrf-token; path=/", "PHPSESSID=abc123; path=/; HttpOnly"]
        self.detail_body: bytes | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.method == "GET" and url == f"{BASE_URL}/":
            headers = [("set-cookie", c) for c in self.set_cookies]
            return httpx.Response(self.home_status, headers=headers, text="<html></html>")
        if request.method == "POST" and url == f"{BASE_URL}/index/package_detail":
            form = parse_qs(request.content.decode())
            if form.get("ci_t") != ["csrf-token"]:
                return httpx.Response(403)
            if self.detail_body is not None:
                return httpx.Response(200, content=self.detail_body)
            body = {"info": {"title": self.title, "package_idx": form["package_idx"][0]}, "detail": self.entries}
            return httpx.Response(200, content=json.dumps(body).encode(), headers={"content-type": "application/json"})
        if request.method == "GET" and url.startswith(IMAGE_ENDPOINT):
            path = url[len(IMAGE_ENDPOINT):]
            if path not in self.images:
                return httpx.Response(404)
            content, mime_type = self.images[path]
            return httpx.Response(200, content=content, headers={"content-type": mime_type})
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def failing_fetcher():
    return FakeFetcher(error=DetailError("디시콘 정보를 불러오지 못했습니다."))


@pytest.fixture
def held_fetcher():
    return FakeFetcher(hold=True)


@pytest.fixture
def origin():
    entries = [
        {"idx": 11, "path": "p1", "title": "first", "sort": "1", "ext": "png", "package_idx": 123},
        {"idx": 12, "path": "p2", "title": "second/slash", "sort": "2", "ext": "jpg", "package_idx": 123},
        {"idx": 13, "path": "p3", "title": "third", "sort": "3", "ext": "gif", "package_idx": 123},
    ]
    images = {
        "p1": (make_image("PNG", (40, 20)), "image/png"),
        "p2": (make_image("JPEG", (30, 60)), "image/jpeg"),
        "p3": (make_image("GIF", (10, 10)), "image/gif"),
    }
    return FakeOrigin(entries, images)
