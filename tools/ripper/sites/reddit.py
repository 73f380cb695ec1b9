"""reddit downloads – ``i.redd.it`` images and ``v.redd.it`` videos."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterator
from urllib.parse import urlsplit

from ..errors import ExternalToolError, ExternalToolMissing, MalformedResponseError
from ..net import download
from .base import FetchTask

logger = logging.getLogger("ripper.sites.reddit")

FFMPEG = "ffmpeg"


async def fetch_image(task: FetchTask) -> None:
    await download(task.client, task.url, task.output)


async def fetch_video(task: FetchTask) -> None:
    """Download a ``v.redd.it`` video the way ``--vreddit-mode`` asks for."""
    video = (task.media or {}).get("reddit_video")
    if not isinstance(video, dict):
        raise MalformedResponseError("No downloadable media found")

    video_id = urlsplit(task.url).path.strip("/").split("/")[0]
    mode = task.config.vreddit_mode

    if mode.is_no_audio:
        fallback = video.get("fallback_url")
        if not isinstance(fallback, str):
            raise MalformedResponseError("Video has no 'fallback_url'")
        await download(task.client, fallback, task.output)
    elif mode.is_ffmpeg:
        height = video.get("height")
        if not isinstance(height, int):
            raise MalformedResponseError("Video has no 'height'")
        await merge_streams(task, video_id, height)
    else:
        await download(task.client, mode.website_url(video_id), task.output)


@contextlib.contextmanager
def scratch_dir(parent: Path | None, prefix: str) -> Iterator[Path]:
    """A private temporary directory, removed on every way out."""
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except OSError as exc:
            logger.warning("Failed to remove temporary files in %s: %s", path, exc)


async def merge_streams(task: FetchTask, video_id: str, height: int) -> None:
    """Download video and audio, then ``ffmpeg -y -i video -i audio -c copy out``."""
    video_url = f"https://v.redd.it/{video_id}/DASH_{height}"
    audio_url = f"https://v.redd.it/{video_id}/audio"

    with scratch_dir(task.temp_dir, f"v_redd_it_{video_id}_") as scratch:
        video_path = scratch / "video"
        audio_path = scratch / "audio"

        video, audio = await asyncio.gather(
            download(task.client, video_url, video_path),
            download(task.client, audio_url, audio_path),
            return_exceptions=True,
        )
        if isinstance(video, BaseException):
            raise video
        if isinstance(audio, BaseException):
            # Silent videos have no audio stream
            logger.debug("No audio for %s (%s), keeping the video stream only", video_id, audio)
            shutil.move(str(video_path), str(task.output))
            return

        logger.debug("Generating file %s with `ffmpeg`", task.output)
        try:
            proc = await asyncio.create_subprocess_exec(
                FFMPEG, "-y",
                "-i", str(video_path),
                "-i", str(audio_path),
                "-c", "copy",
                str(task.output),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError as exc:
            raise ExternalToolMissing(f"Failed to spawn ffmpeg command: {exc}") from exc
        except OSError as exc:
            raise ExternalToolError(f"Failed to spawn ffmpeg command: {exc}") from exc

        status = await proc.wait()
        if status != 0:
            raise ExternalToolError(f"ffmpeg returned error status {status}")
