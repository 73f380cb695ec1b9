"""Core ripping logic – orchestrates search API → download queue → disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import httpx

from .api import Page, Post, SearchAPI
from .config import RipperConfig
from .errors import OutputDirectoryError
from .marker import ResumeMarkerStore
from .net import make_client
from .queue import BoundedTaskQueue
from .sites import FetchOutcome, FetchTask, fetch, file_extension
from .target import Target

logger = logging.getLogger("ripper.core")


class Ripper:
    """Downloads every post of a list of subreddits and profiles.

    Pages are read one at a time; the posts of a page are downloaded
    concurrently through a :class:`BoundedTaskQueue` which is drained
    before the next page is requested.
    """

    def __init__(self, cfg: RipperConfig | None = None, *, client: httpx.AsyncClient | None = None) -> None:
        self.cfg = cfg or RipperConfig()
        self._owns_client = client is None
        self.client = client or make_client(self.cfg.api.timeout)
        self.api = SearchAPI(
            self.client,
            self.cfg.api,
            template_fields=self.cfg.title.fields,
            selfposts=self.cfg.selfposts,
            after=self.cfg.after,
            allow=self.cfg.allow,
            exclude=self.cfg.exclude,
        )
        self.markers = ResumeMarkerStore()
        self.queue: BoundedTaskQueue[FetchOutcome] = BoundedTaskQueue(self.cfg.queue_size, self._report)
        # Stats
        self.stats = {"pages": 0, "posts": 0, "saved": 0, "failed": 0, "skipped": 0}

    # ── outcomes ─────────────────────────────────────────────────

    def _report(self, outcome: FetchOutcome) -> None:
        if outcome.ok:
            logger.info("Saved %s", outcome.task.output.name)
            self.stats["saved"] += 1
        else:
            logger.warning("Failed to retrieve %s:\n    %s", outcome.task.url, outcome.error)
            self.stats["failed"] += 1

    # ── task building ────────────────────────────────────────────

    def target_dir(self, target: Target) -> Path:
        if self.cfg.no_parent:
            return self.cfg.output
        return self.cfg.output / target.path_segment

    def file_name(self, post: Post) -> str:
        """``{id}-{title}`` (or the configured title) plus the extension."""
        extension = file_extension(post.url, self.cfg.gfycat_type, post.is_self, post.domain) or ""
        budget = self.cfg.max_file_name_length - len(extension)
        return self.cfg.title.format(post.fields, budget) + extension

    def build_task(self, post: Post, directory: Path) -> FetchTask:
        return FetchTask(
            client=self.client,
            config=self.cfg,
            output=directory / self.file_name(post),
            domain=post.domain,
            url=post.url,
            is_selfpost=post.is_self,
            text=post.selftext,
            media=post.secure_media,
            temp_dir=self.cfg.temp_dir,
        )

    def _validate(self, post: Post) -> bool:
        if post.is_self and not self.cfg.selfposts:
            logger.debug("Skipping self post %s", post.id)
            return False
        if not post.is_self:
            try:
                url = httpx.URL(post.url)
            except httpx.InvalidURL as exc:
                logger.warning("Invalid URL %r: %s", post.url, exc)
                return False
            if url.scheme not in ("http", "https"):
                logger.warning("Invalid URL %r: not an http(s) link", post.url)
                return False
        return True

    # ── target ripping ───────────────────────────────────────────

    async def rip_target(self, target: Target) -> int:
        """Download one subreddit or profile. Returns the number of posts queued."""
        directory = self.target_dir(target)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(f"Failed to create directory {directory}: {exc}") from exc

        resume_id = self.markers.read(directory) if self.cfg.update else None
        marker_written = False
        queued = 0
        cursor = self.cfg.before

        logger.info("Started ripping %s to %s", target, directory)

        while True:
            page: Page = await self.api.next_page(target, cursor)
            if page.is_empty:
                break
            if cursor is not None and page.cursor is not None and page.cursor >= cursor:
                logger.warning("Search API did not return posts older than %d for %s, stopping", cursor, target)
                break
            self.stats["pages"] += 1
            cursor = page.cursor
            logger.debug("Read %d posts from %s", page.size, target)

            reached_marker = False
            for post in page.posts:
                if resume_id is not None and post.id == resume_id:
                    logger.info("Reached the previous download of %s at post %s", target, post.id)
                    reached_marker = True
                    break
                self.stats["posts"] += 1
                if not marker_written:
                    # Must happen before the first submit of this run
                    self.markers.write(directory, post.id)
                    marker_written = True
                if not self._validate(post):
                    self.stats["skipped"] += 1
                    continue
                await self.queue.submit(fetch(self.build_task(post, directory)))
                queued += 1

            await self.queue.drain()
            if reached_marker:
                break

        logger.info("Finished %s: %d posts queued", target, queued)
        return queued

    async def rip(self, targets: Iterable[Target]) -> dict[str, int]:
        """Rip the targets sequentially and return the run statistics."""
        for target in targets:
            await self.rip_target(target)
        return self.stats

    # ── lifecycle ────────────────────────────────────────────────

    async def close(self) -> None:
        await self.queue.cancel()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> Ripper:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
