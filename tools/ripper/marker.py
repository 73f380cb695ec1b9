"""Resume markers – remember where the previous run of a target started."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("ripper.marker")

MARKER_NAME = ".ripper-resume"


class ResumeMarkerStore:
    """Read and write the resume marker of a target directory.

    The first line of the marker is the id of the newest post seen when the
    last run started; everything after it is a comment for humans.
    """

    def __init__(self, name: str = MARKER_NAME) -> None:
        self.name = name

    def path(self, target_dir: Path) -> Path:
        return target_dir / self.name

    def read(self, target_dir: Path) -> str | None:
        path = self.path(target_dir)
        try:
            with open(path, encoding="utf-8") as fh:
                first = fh.readline().strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read resume marker %s: %s", path, exc)
            return None
        return first or None

    def write(self, target_dir: Path, post_id: str) -> bool:
        """Store ``post_id`` as the marker. Returns False if that failed."""
        path = self.path(target_dir)
        now = datetime.now(timezone.utc)
        try:
            path.write_text(
                f"{post_id}\n"
                f"# Newest post when the download started at {now:%Y-%m-%d %H:%M:%S} UTC.\n"
                "# Runs with --update stop at this post.\n",
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Could not write resume marker %s, this run is not resumable: %s", path, exc)
            return False
        logger.debug("Wrote resume marker %s (%s)", path, post_id)
        return True
