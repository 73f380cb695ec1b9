"""Imgur downloads – ``i.imgur.com`` images, ``imgur.com`` albums and galleries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from ..errors import MalformedResponseError, RipperError
from ..net import download, get_json, get_text
from .base import FetchTask

logger = logging.getLogger("ripper.sites.imgur")


@dataclass(frozen=True)
class Image:
    hash: str
    ext: str


def _images(raw: Any) -> list[Image]:
    try:
        return [Image(hash=str(i["hash"]), ext=str(i["ext"])) for i in raw]
    except (KeyError, TypeError) as exc:
        raise MalformedResponseError(f"Imgur parser error: {exc}") from exc


async def fetch(task: FetchTask) -> None:
    # Imgur answers missing images with a redirect to imgur.com instead of a 404
    await download(
        task.client, task.url, task.output,
        follow_redirects=False, redirect_is_missing=True,
    )


async def fetch_album(task: FetchTask) -> None:
    """Fetch Imgur albums and galleries into a directory."""
    path = urlsplit(task.url).path
    if path.startswith("/a/"):
        images = await album(task.client, path[3:].split("/")[0])
    elif path.startswith("/gallery/"):
        images = await gallery(task.client, path[9:].rstrip("/"))
    else:
        # A direct link without the `i.` prefix
        logger.debug("Trying to directly download image %s", task.url)
        await download(
            task.client, f"https://i.imgur.com{path}", task.output,
            follow_redirects=False, redirect_is_missing=True,
        )
        return
    await download_images(task, images)


def parse_embed(html: str) -> list[Image]:
    """Extract the image list from the ``album: {...},`` line of an embed page."""
    for line in html.splitlines():
        if not line.lstrip().startswith("album"):
            continue
        colon = line.find(":")
        if colon == -1:
            break
        try:
            data = json.loads(line[colon + 1:].rstrip().rstrip(","))
            return _images(data["album_images"]["images"])
        except (ValueError, KeyError, TypeError) as exc:
            raise MalformedResponseError(f"Imgur parser error: {exc}") from exc
    raise MalformedResponseError("Imgur parser error")


async def album(client: httpx.AsyncClient, album_id: str) -> list[Image]:
    html = await get_text(client, f"https://imgur.com/a/{album_id}/embed")
    return parse_embed(html)


async def gallery(client: httpx.AsyncClient, gallery_id: str) -> list[Image]:
    data = await get_json(client, f"https://imgur.com/gallery/{gallery_id}.json")
    try:
        raw = data["data"]["image"]["album_images"]["images"]
    except (KeyError, TypeError) as exc:
        raise MalformedResponseError(f"Imgur parser error: {exc}") from exc
    return _images(raw)


async def download_images(task: FetchTask, images: list[Image]) -> None:
    logger.debug("Found Imgur gallery containing %d entries", len(images))
    task.output.mkdir(parents=True, exist_ok=True)
    for index, image in enumerate(images):
        logger.debug("Saving individual image %s%s", image.hash, image.ext)
        try:
            await download(
                task.client,
                f"https://i.imgur.com/{image.hash}{image.ext}",
                task.output / f"{index}{image.ext}",
            )
        except RipperError as exc:
            logger.warning("Failed to save %s%s from %s: %s", image.hash, image.ext, task.url, exc)
