"""Collection targets – subreddits and user profiles."""

from __future__ import annotations

import enum
from dataclasses import dataclass

MAX_NAME_LENGTH = 21


class TargetKind(enum.Enum):
    SUBREDDIT = "subreddit"
    PROFILE = "author"


@dataclass(frozen=True)
class Target:
    """A subreddit or a user's post stream."""
    kind: TargetKind
    name: str

    @property
    def is_profile(self) -> bool:
        return self.kind is TargetKind.PROFILE

    @property
    def query_param(self) -> str:
        """Search API parameter that selects this target."""
        return self.kind.value

    @property
    def display_name(self) -> str:
        return f"/u/{self.name}" if self.is_profile else f"/r/{self.name}"

    @property
    def path_segment(self) -> str:
        # Profiles get a prefix so /u/foo and /r/foo never share a directory.
        return f"u_{self.name}" if self.is_profile else self.name

    def __str__(self) -> str:
        return self.display_name


def verify_name(name: str) -> None:
    """Raise ``ValueError`` if ``name`` is not a valid subreddit or user name."""
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Subreddit names have a maximum length of {MAX_NAME_LENGTH} characters")
    for c in name:
        if not c.isalnum() and c not in "-_":
            raise ValueError(f"Subreddit names can only contain alphanumeric characters, '{c}' found")


def parse_target(value: str) -> Target:
    """Parse ``name``, ``r/name``, ``/r/name``, ``u/name`` or ``/u/name``.

    Anything without a ``u/`` prefix is a subreddit.
    """
    for prefix, kind in (
        ("/u/", TargetKind.PROFILE),
        ("u/", TargetKind.PROFILE),
        ("/r/", TargetKind.SUBREDDIT),
        ("r/", TargetKind.SUBREDDIT),
    ):
        if value.startswith(prefix):
            name = value[len(prefix):]
            verify_name(name)
            return Target(kind, name)
    verify_name(value)
    return Target(TargetKind.SUBREDDIT, value)
