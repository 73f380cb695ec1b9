"""Download jobs and the hosts they can be dispatched to."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable
from urllib.parse import urlsplit

import httpx

from ..config import GfycatType

if TYPE_CHECKING:
    from ..config import RipperConfig


class Host(str, enum.Enum):
    """Every domain with a dedicated download strategy."""
    I_REDDIT = "i.redd.it"
    V_REDDIT = "v.redd.it"
    I_IMGUR = "i.imgur.com"
    IMGUR = "imgur.com"
    GFYCAT = "gfycat.com"
    THUMBS_GFYCAT = "thumbs.gfycat.com"
    GIANT_GFYCAT = "giant.gfycat.com"
    REDGIFS = "redgifs.com"
    THUMBS_REDGIFS = "thumbs1.redgifs.com"
    PINTEREST = "i.pinimg.com"
    POSTIMAGES = "i.postimg.cc"

    @classmethod
    def from_domain(cls, domain: str) -> Host | None:
        try:
            return cls(domain)
        except ValueError:
            return None


# Hosts whose URLs never carry the real file extension.
VIDEO_HOSTS = (Host.GFYCAT, Host.REDGIFS)


@dataclass(frozen=True)
class FetchTask:
    """Everything needed to download the contents of one post."""
    client: httpx.AsyncClient
    config: RipperConfig
    output: Path
    domain: str
    url: str
    is_selfpost: bool = False
    text: str | None = None
    media: dict | None = None
    temp_dir: Path | None = None

    @property
    def host(self) -> Host | None:
        return Host.from_domain(self.domain)


@dataclass(frozen=True)
class FetchOutcome:
    task: FetchTask
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


Strategy = Callable[[FetchTask], Awaitable[None]]


def file_extension(
    url: str, gfycat_type: GfycatType, is_selfpost: bool, domain: str | None = None
) -> str | None:
    """Return the extension of the file ``url`` points to, with the dot.

    The host is taken from ``domain`` when it names one, so the extension
    agrees with the strategy the post is dispatched to.
    """
    if is_selfpost:
        return ".txt"

    parts = urlsplit(url)
    host = Host.from_domain(domain or "") or Host.from_domain(parts.hostname or "")
    if host is Host.V_REDDIT:
        return ".mp4"
    if host in VIDEO_HOSTS:
        return gfycat_type.extension

    path = parts.path
    dot = path.rfind(".")
    # Only the last path segment counts
    if dot == -1 or dot < path.rfind("/"):
        return None
    return path[dot:]
