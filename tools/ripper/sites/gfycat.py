"""Gfycat and Redgifs downloads."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from ..config import GfycatType
from ..errors import MalformedResponseError, RipperError
from ..net import download, get_json
from .base import FetchTask

logger = logging.getLogger("ripper.sites.gfycat")


def extract_id(path: str) -> tuple[str, bool]:
    """Extract the Gfycat id from a URL path.

    Ids show up all-lowercase, properly cased, and with the title appended
    after a ``-``. Only a properly cased id (any upper-case letter) can be
    used to download directly without asking the API.
    """
    dash = path.find("-")
    gfy_id = path[1:dash] if dash != -1 else path[1:]
    return gfy_id, any(c.isascii() and c.isupper() for c in gfy_id)


async def fetch_gfycat(task: FetchTask) -> None:
    gfy_id, well_formed = extract_id(urlsplit(task.url).path)
    kind = task.config.gfycat_type
    if well_formed and await _try_direct(task, f"https://giant.gfycat.com/{gfy_id}.{kind.value}"):
        return
    await api(task, f"https://api.gfycat.com/v1/gfycats/{gfy_id}", kind)


async def fetch_redgifs(task: FetchTask) -> None:
    path = urlsplit(task.url).path
    if len(path) < 6:
        raise MalformedResponseError(f"Malformed URL {task.url}")
    # Cut off the `/watch`
    gfy_id, well_formed = extract_id(path[6:])
    kind = task.config.gfycat_type
    if well_formed and await _try_direct(task, f"https://thumbs1.redgifs.com/{gfy_id}.{kind.value}"):
        return
    await api(task, f"https://api.redgifs.com/v1/gfycats/{gfy_id}", kind)


async def _try_direct(task: FetchTask, url: str) -> bool:
    logger.debug("Trying to download directly from %s", url)
    try:
        await download(task.client, url, task.output)
    except RipperError as exc:
        logger.debug("Direct download of %s failed, asking the API: %s", url, exc)
        return False
    return True


async def api(task: FetchTask, url: str, kind: GfycatType) -> None:
    """Ask the Gfycat API for the download link."""
    logger.debug("Querying Gfycat api about %s", url)
    data = await get_json(task.client, url)
    key = "mp4Url" if kind is GfycatType.MP4 else "webmUrl"
    try:
        media_url = data["gfyItem"][key]
    except (KeyError, TypeError) as exc:
        raise MalformedResponseError(f"Gfycat response has no {key}") from exc
    if not isinstance(media_url, str):
        raise MalformedResponseError(f"Gfycat response has no {key}")
    await download(task.client, media_url, task.output)
