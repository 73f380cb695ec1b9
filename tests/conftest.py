"""
Shared fixtures: an in-memory search API and content host behind httpx.MockTransport.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import httpx
import pytest

from ripper.config import RipperConfig, SearchAPIConfig

API_BASE = "https://search.test/reddit/search/submission"


def make_post(post_id: str, created: int, *, domain: str = "i.redd.it", url: str | None = None,
              title: str = "A title", **extra) -> dict:
    return {
        "id": post_id,
        "created_utc": created,
        "domain": domain,
        "url": url or f"https://{domain}/{post_id}.jpg",
        "is_self": False,
        "title": title,
        **extra,
    }


class FakeWeb:
    """Pushshift-like search over ``posts`` plus a table of downloadable files."""

    def __init__(self, posts: list[dict] | None = None) -> None:
        self.posts = sorted(posts or [], key=lambda p: p["created_utc"], reverse=True)
        self.files: dict[str, bytes] = {}
        self.search_requests: list[httpx.Request] = []
        self.downloads: list[str] = []
        self.on_download: Callable[[httpx.Request], None] | None = None

    def serve_all(self) -> None:
        """Make every post's URL downloadable."""
        for post in self.posts:
            self.files.setdefault(post["url"], f"content of {post['id']}".encode())

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "search.test":
            return self._search(request)
        url = str(request.url)
        self.downloads.append(url)
        if self.on_download:
            self.on_download(request)
        if url in self.files:
            return httpx.Response(200, content=self.files[url])
        return httpx.Response(404)

    def _search(self, request: httpx.Request) -> httpx.Response:
        self.search_requests.append(request)
        params = request.url.params
        size = int(params["size"])
        before = params.get("before")
        after = params.get("after")
        items = [
            p for p in self.posts
            if (before is None or p["created_utc"] < int(before))
            and (after is None or p["created_utc"] > int(after))
        ]
        # Escaped to ASCII, so lone surrogates survive
        body = json.dumps({"data": items[:size]}).encode()
        return httpx.Response(200, content=body, headers={"Content-Type": "application/json"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def make_config(tmp_path: Path):
    """Build a RipperConfig writing below tmp_path, without throttling or retries."""
    def _make(**overrides) -> RipperConfig:
        scratch = tmp_path / "scratch"
        scratch.mkdir(exist_ok=True)
        api = overrides.pop("api", None) or SearchAPIConfig(
            api_base=API_BASE,
            page_size=overrides.pop("page_size", 2),
            request_delay=0.0,
            max_retries=1,
        )
        values = {"output": tmp_path / "out", "temp_dir": scratch}
        values.update(overrides)
        return RipperConfig(api=api, **values)
    return _make
