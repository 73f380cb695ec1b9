"""Download support for the individual sites."""

from __future__ import annotations

import logging

from ..errors import MalformedResponseError, RipperError, UnsupportedDomain
from ..net import download, write_text
from . import gfycat, imgur, reddit
from .base import FetchOutcome, FetchTask, Host, Strategy, file_extension

logger = logging.getLogger("ripper.sites")

__all__ = [
    "FetchOutcome",
    "FetchTask",
    "Host",
    "STRATEGIES",
    "dispatch",
    "fetch",
    "file_extension",
    "supported_domains",
]


async def fetch_direct(task: FetchTask) -> None:
    await download(task.client, task.url, task.output)


STRATEGIES: dict[Host, Strategy] = {
    Host.I_REDDIT: reddit.fetch_image,
    Host.V_REDDIT: reddit.fetch_video,
    Host.I_IMGUR: imgur.fetch,
    Host.IMGUR: imgur.fetch_album,
    Host.GFYCAT: gfycat.fetch_gfycat,
    Host.THUMBS_GFYCAT: fetch_direct,
    Host.GIANT_GFYCAT: fetch_direct,
    Host.REDGIFS: gfycat.fetch_redgifs,
    Host.THUMBS_REDGIFS: fetch_direct,
    Host.PINTEREST: fetch_direct,
    Host.POSTIMAGES: fetch_direct,
}


async def dispatch(task: FetchTask) -> None:
    """Run the download strategy for ``task``.

    Self posts are written as text regardless of their domain. Unknown
    domains are only downloaded verbatim in force mode.
    """
    if task.is_selfpost:
        logger.debug("Detected self post %s", task.url)
        if task.text is None:
            raise MalformedResponseError("Malformed self post: field 'selftext' missing")
        write_text(task.output, task.text)
        return

    logger.debug("Fetching %s", task.url)
    host = task.host
    if host is not None:
        await STRATEGIES[host](task)
    elif task.config.force:
        await fetch_direct(task)
    else:
        raise UnsupportedDomain(task.domain)


async def fetch(task: FetchTask) -> FetchOutcome:
    """Run ``task`` and capture any per-post failure in the outcome."""
    # ValueError also covers names the file system cannot encode
    try:
        await dispatch(task)
    except (RipperError, OSError, ValueError) as exc:
        return FetchOutcome(task, exc)
    return FetchOutcome(task)


def supported_domains() -> str:
    return "\n".join(host.value for host in Host)
