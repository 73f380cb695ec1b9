"""HTTP helpers shared by the fetchers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from .errors import MalformedResponseError, NotFound, TransportError, UnexpectedStatus

logger = logging.getLogger("ripper.net")

USER_AGENT = "ripper/0.3"


def make_client(timeout: float = 30.0) -> httpx.AsyncClient:
    """Create the HTTP client shared by the search API and every fetch task."""
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )


def check_status(resp: httpx.Response, *, redirect_is_missing: bool = False) -> None:
    status = resp.status_code
    if resp.is_success:
        logger.debug("Received %d from %s", status, resp.url)
        return
    if status == 404 or (redirect_is_missing and status == 302):
        raise NotFound(str(resp.url))
    raise UnexpectedStatus(status, str(resp.url))


async def download(
    client: httpx.AsyncClient,
    url: str,
    output: Path,
    *,
    follow_redirects: bool = True,
    redirect_is_missing: bool = False,
) -> None:
    """Stream the body of ``url`` into ``output``."""
    try:
        async with client.stream("GET", url, follow_redirects=follow_redirects) as resp:
            check_status(resp, redirect_is_missing=redirect_is_missing)
            with open(output, "wb") as fh:
                async for chunk in resp.aiter_bytes():
                    fh.write(chunk)
    except httpx.RequestError as exc:
        raise TransportError(f"{url}: {exc}") from exc


async def get_text(client: httpx.AsyncClient, url: str, **headers: str) -> str:
    try:
        resp = await client.get(url, headers=headers or None)
    except httpx.RequestError as exc:
        raise TransportError(f"{url}: {exc}") from exc
    check_status(resp)
    return resp.text


async def get_json(client: httpx.AsyncClient, url: str) -> Any:
    text = await get_text(client, url, Accept="application/json")
    try:
        return json.loads(text)
    except ValueError as exc:
        raise MalformedResponseError(f"Invalid JSON from {url}: {exc}") from exc


def write_text(output: Path, text: str) -> None:
    output.write_text(text, encoding="utf-8")
