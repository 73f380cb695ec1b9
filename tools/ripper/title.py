"""File name formatting from post attributes."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

# Field name → type, in the order shown by ``--formatting-fields``.
# ``test`` is only used by the test suite and is not advertised.
FIELD_TYPES: dict[str, str] = {
    "allow_live_comments": "bool",
    "author": "string",
    "author_flair_text": "string",
    "author_fullname": "string",
    "author_patreon_flair": "bool",
    "author_premium": "bool",
    "can_mod_post": "bool",
    "contest_mode": "bool",
    "created_utc": "integer",
    "crosspost_parent": "string",
    "domain": "string",
    "full_link": "string",
    "id": "string",
    "is_crosspostable": "bool",
    "is_meta": "bool",
    "is_original_content": "bool",
    "is_reddit_media_domain": "bool",
    "is_robot_indexable": "bool",
    "is_self": "bool",
    "is_video": "bool",
    "link_flair_background_color": "string",
    "link_flair_text_color": "string",
    "link_flair_text": "string",
    "link_flair_type": "string",
    "locked": "bool",
    "media_only": "bool",
    "no_follow": "bool",
    "num_comments": "integer",
    "num_crossposts": "integer",
    "over_18": "bool",
    "parent_whitelist_status": "string",
    "permalink": "string",
    "pinned": "bool",
    "post_hint": "string",
    "pwls": "integer",
    "removed_by_category": "string",
    "retrieved_on": "integer",
    "score": "integer",
    "selftext": "string",
    "send_replies": "bool",
    "spoiler": "bool",
    "stickied": "bool",
    "subreddit": "string",
    "subreddit_id": "string",
    "subreddit_subscribers": "integer",
    "subreddit_type": "string",
    "thumbnail": "string",
    "title": "string",
    "total_awards_received": "integer",
    "url": "string",
    "whitelist_status": "string",
    "wls": "integer",
}

FIELDS: tuple[str, ...] = ("test", *FIELD_TYPES)

# Characters that are not allowed in file names on common file systems.
_UNSAFE = str.maketrans({c: "_" for c in '/\\|?<>:*"'})


def clean(text: str) -> str:
    """Replace characters that are illegal in file names with ``_``.

    The result always has exactly ``len(text)`` characters.
    """
    return text.translate(_UNSAFE)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return clean(value)
    return clean(json.dumps(value))


class Title:
    """A compiled file name template.

    Placeholders are field names in curly braces, e.g. ``{author}_{id}``.
    Only names from :data:`FIELDS` are recognised; anything else stays
    literal text.
    """

    def __init__(self, template: str) -> None:
        self.template = clean(template)
        self.fields: tuple[str, ...] = tuple(
            name for name in FIELDS if f"{{{name}}}" in self.template
        )
        self._pattern: re.Pattern[str] | None = None
        if self.fields:
            self._pattern = re.compile(
                "|".join(re.escape(f"{{{name}}}") for name in self.fields)
            )

    def utilizes_id(self) -> bool:
        """Whether the ``{id}`` placeholder is in the template."""
        return "id" in self.fields

    def __iter__(self):
        return iter(self.fields)

    def __repr__(self) -> str:
        return f"Title({self.template!r})"

    def format(self, values: Mapping[str, Any] | None, length: int) -> str:
        """Substitute the placeholders with ``values`` and cut to ``length``.

        Missing and null values become an empty string.
        """
        values = values or {}
        if self._pattern is None:
            text = self.template
        else:
            text = self._pattern.sub(
                lambda m: _stringify(values.get(m.group(0)[1:-1])), self.template
            )
        # TODO: truncation may split a grapheme cluster or exceed a byte limit
        return text[:max(length, 0)]


def formatting_help() -> str:
    """Return the list of supported fields and their respective type."""
    return "".join(f"{name}: {kind}\n" for name, kind in FIELD_TYPES.items())
