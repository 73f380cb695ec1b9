"""Configuration and environment settings for the ripper."""

from __future__ import annotations

import enum
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .title import Title


class GfycatType(str, enum.Enum):
    """The media type Gfycat and Redgifs videos are downloaded in."""
    MP4 = "mp4"
    WEBM = "webm"

    @property
    def extension(self) -> str:
        return f".{self.value}"


@dataclass(frozen=True)
class VRedditMode:
    """How videos from v.redd.it are downloaded.

    ``no-audio`` fetches the fallback stream, ``ffmpeg`` merges the video and
    audio streams locally, anything else is a website URL in which ``{}`` is
    replaced by the video id.
    """
    value: str = "no-audio"

    NO_AUDIO = "no-audio"
    FFMPEG = "ffmpeg"

    @property
    def is_no_audio(self) -> bool:
        return self.value == self.NO_AUDIO

    @property
    def is_ffmpeg(self) -> bool:
        return self.value == self.FFMPEG

    def website_url(self, video_id: str) -> str:
        return self.value.replace("{}", video_id, 1)


@dataclass(frozen=True)
class SearchAPIConfig:
    """Pushshift search API configuration."""
    api_base: str = "https://api.pushshift.io/reddit/search/submission"
    page_size: int = 100
    request_delay: float = 1.0  # seconds between search requests
    max_retries: int = 3
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> SearchAPIConfig:
        return cls(
            api_base=os.getenv("RIPPER_API_BASE", "https://api.pushshift.io/reddit/search/submission"),
            page_size=int(os.getenv("RIPPER_PAGE_SIZE", "100")),
            request_delay=float(os.getenv("RIPPER_REQUEST_DELAY", "1.0")),
            max_retries=int(os.getenv("RIPPER_MAX_RETRIES", "3")),
            timeout=float(os.getenv("RIPPER_TIMEOUT", "30")),
        )


@dataclass
class RipperConfig:
    api: SearchAPIConfig = field(default_factory=SearchAPIConfig.from_env)
    output: Path = field(default_factory=Path)
    title: Title = field(default_factory=lambda: Title("{id}-{title}"))
    max_file_name_length: int = 255
    queue_size: int = 16
    force: bool = False
    update: bool = False
    no_parent: bool = False
    selfposts: bool = False
    after: int | None = None
    before: int | None = None
    allow: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    gfycat_type: GfycatType = GfycatType.MP4
    vreddit_mode: VRedditMode = field(default_factory=VRedditMode)
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
