"""Detection of human-issued "ignore" markers on MR discussions."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ..models import coerce_discussions

logger = logging.getLogger(__name__)

IGNORE_PATTERNS = (
    re.compile(r"@gemini\s+ignore", re.IGNORECASE),
    re.compile(r"/gemini\s+ignore", re.IGNORECASE),
    re.compile(r"<!--.*?gemini-ignore.*?-->", re.IGNORECASE | re.DOTALL),
)


def matches_ignore_marker(text: Any) -> bool:
    if not isinstance(text, str) or not text:
        return False
    return any(pattern.search(text) for pattern in IGNORE_PATTERNS)


def find_ignored_discussion_ids(discussions: Any) -> set[str]:
    """Return the IDs of discussions where any note carries an ignore marker.

    Accepts raw API payloads or parsed discussions; malformed entries are
    treated as carrying no marker.
    """
    ignored: set[str] = set()
    for discussion in coerce_discussions(discussions):
        if not discussion.key:
            continue
        if any(matches_ignore_marker(note.body) for note in discussion.notes):
            ignored.add(discussion.key)
    return ignored


def parse_ignored_discussions(raw: str | None) -> frozenset[str]:
    """Parse a JSON array of discussion IDs (the ``IGNORED_DISCUSSIONS`` variable).

    Anything other than a JSON array yields an empty set.
    """
    if not raw:
        return frozenset()
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("IGNORED_DISCUSSIONS is not valid JSON; ignoring it")
        return frozenset()
    if not isinstance(data, list):
        logger.warning("IGNORED_DISCUSSIONS is not a JSON array; ignoring it")
        return frozenset()
    return frozenset(
        str(item)
        for item in data
        if isinstance(item, (str, int)) and not isinstance(item, bool) and str(item)
    )
