"""Pushshift API client – rate-limited, paginated search."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from .config import SearchAPIConfig
from .errors import MalformedResponseError, TransportError, UpstreamError
from .target import Target

logger = logging.getLogger("ripper.api")

# Fields every query needs for resumption and dispatch.
BASE_FIELDS = ("created_utc", "id", "domain", "url", "is_self", "secure_media")


@dataclass(frozen=True)
class Post:
    """A single submission as returned by the search API."""
    id: str
    domain: str
    url: str
    is_self: bool
    created_utc: int
    selftext: str | None = None
    secure_media: dict | None = None
    fields: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, data: Any) -> Post:
        """Build a post from a raw item, raising ``ValueError`` if it is malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        post_id = data.get("id")
        url = data.get("url")
        domain = data.get("domain")
        created = data.get("created_utc")
        is_self = data.get("is_self", False)
        if not isinstance(post_id, str) or not post_id:
            raise ValueError("field 'id' missing")
        if not isinstance(url, str):
            raise ValueError(f"post {post_id}: field 'url' missing")
        if not isinstance(domain, str):
            raise ValueError(f"post {post_id}: field 'domain' missing")
        if not isinstance(is_self, bool):
            raise ValueError(f"post {post_id}: field 'is_self' is not a boolean")
        if isinstance(created, bool) or not isinstance(created, (int, float)):
            raise ValueError(f"post {post_id}: field 'created_utc' is not a number")
        media = data.get("secure_media")
        selftext = data.get("selftext")
        return cls(
            id=post_id,
            domain=domain,
            url=url,
            is_self=is_self,
            created_utc=int(created),
            selftext=selftext if isinstance(selftext, str) else None,
            secure_media=media if isinstance(media, dict) else None,
            fields=data,
        )


@dataclass(frozen=True)
class Page:
    """One page of search results and the cursor for the next one."""
    posts: list[Post]
    cursor: int | None
    size: int = 0

    @property
    def is_empty(self) -> bool:
        return self.size == 0


class SearchAPI:
    """Thin wrapper around the Pushshift submission search with rate limiting.

    Results are always returned from new to old, so the ``created_utc`` of
    the last item of a page is the ``before`` bound of the next page.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cfg: SearchAPIConfig | None = None,
        *,
        template_fields: Iterable[str] = (),
        selfposts: bool = False,
        after: int | None = None,
        allow: Iterable[str] = (),
        exclude: Iterable[str] = (),
    ) -> None:
        self.cfg = cfg or SearchAPIConfig()
        self._client = client
        self.selfposts = selfposts
        self.after = after
        self.allow = tuple(allow)
        self.exclude = tuple(exclude)
        self.fields = self._field_list(template_fields)
        self._last_request: float = 0.0

    def _field_list(self, template_fields: Iterable[str]) -> str:
        wanted = list(BASE_FIELDS)
        if self.selfposts:
            wanted.append("selftext")
        for name in template_fields:
            if name not in wanted and name != "test":
                wanted.append(name)
        return ",".join(wanted)

    # ── rate limiting ────────────────────────────────────────────
    async def _throttle(self) -> None:
        elapsed = time.monotonic() - self._last_request
        if elapsed < self.cfg.request_delay:
            await asyncio.sleep(self.cfg.request_delay - elapsed)
        self._last_request = time.monotonic()

    def build_params(self, target: Target, cursor: int | None) -> dict[str, str]:
        params = {
            target.query_param: target.name,
            "sort_type": "created_utc",
            "sort": "desc",
            "size": str(self.cfg.page_size),
            "fields": self.fields,
        }
        if not self.selfposts:
            params["is_self"] = "false"
        if self.allow:
            params["domain"] = ",".join(self.allow)
        elif self.exclude:
            params["domain"] = ",".join(f"!{d}" for d in self.exclude)
        if self.after is not None:
            params["after"] = str(self.after)
        if cursor is not None:
            params["before"] = str(cursor)
        return params

    async def _get_json(self, params: dict[str, str]) -> Any:
        url = self.cfg.api_base
        for attempt in range(1, self.cfg.max_retries + 1):
            await self._throttle()
            try:
                resp = await self._client.get(url, params=params, headers={"Accept": "application/json"})
                if not resp.is_success:
                    raise UpstreamError(resp.status_code, url)
                logger.debug("Received %d from %s", resp.status_code, resp.url)
                try:
                    return resp.json()
                except ValueError as exc:
                    raise MalformedResponseError(f"Unexpectedly received invalid JSON: {exc}") from exc
            except (UpstreamError, httpx.TransportError) as exc:
                logger.warning("Attempt %d/%d failed for %s: %s", attempt, self.cfg.max_retries, url, exc)
                if attempt == self.cfg.max_retries:
                    if isinstance(exc, httpx.TransportError):
                        raise TransportError(f"Essential HTTP request failed: {exc}") from exc
                    raise
                await asyncio.sleep(2 ** attempt)
        return None  # unreachable but keeps mypy happy

    # ── public API ───────────────────────────────────────────────

    async def next_page(self, target: Target, cursor: int | None) -> Page:
        """Fetch the page of posts older than ``cursor``.

        An empty page means the target has been read completely.
        """
        data = await self._get_json(self.build_params(target, cursor))
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise MalformedResponseError("Search response has no 'data' array")
        if not items:
            return Page([], cursor)

        last = items[-1]
        created = last.get("created_utc") if isinstance(last, dict) else None
        if isinstance(created, bool) or not isinstance(created, (int, float)):
            raise MalformedResponseError("Last search result has no numeric 'created_utc'")

        posts = []
        for raw in items:
            try:
                posts.append(Post.from_json(raw))
            except ValueError as exc:
                logger.warning("Skipping malformed post in %s: %s", target, exc)
        return Page(posts, int(created), size=len(items))
