"""Lookup over existing MR discussions: by diff position and by issue signature."""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from ..models import Discussion, Position, User

_WHITESPACE_RE = re.compile(r"\s+")

FALLBACK_MARKER = "<!-- anchor-fallback:"


def issue_signature(body: str | None) -> str | None:
    """Fingerprint a finding by its first non-blank line.

    Lower-cased, internal whitespace collapsed and trimmed; emoji and
    punctuation are kept. Blank bodies have no signature.
    """
    if not body:
        return None
    for line in body.splitlines():
        normalized = _WHITESPACE_RE.sub(" ", line).strip()
        if normalized:
            return normalized.lower()
    return None


def positions_match(a: Position | None, b: Position | None) -> bool:
    if a is None or b is None:
        return False
    if a.line is None or b.line is None:
        return False
    return a.path is not None and a.path == b.path and a.line == b.line


def _matching(discussions: Iterable[Discussion], position: Position) -> list[Discussion]:
    return [
        d for d in discussions if any(positions_match(n.position, position) for n in d.notes)
    ]


def find_by_position(discussions: Iterable[Discussion], position: Position) -> Discussion | None:
    matches = _matching(discussions, position)
    return matches[0] if matches else None


@dataclass(frozen=True)
class IgnoredMatch:
    """A human suppressed the thread at this position; nothing may be written."""

    discussion_id: str
    ignored: bool = True


@dataclass(frozen=True)
class ReusableNote:
    """An earlier note by the same author for the same issue; update it in place."""

    discussion_id: str
    note_id: int


def find_reusable_note(
    discussions: Iterable[Discussion],
    acting_user: User | None,
    position: Position,
    signature: str | None,
    ignored_ids: Collection[str],
) -> IgnoredMatch | ReusableNote | None:
    """Decide skip / update / create for a finding at *position*.

    An ignored thread at the position always wins over a reusable note.
    """
    matches = _matching(discussions, position)

    for discussion in matches:
        if discussion.key and discussion.key in ignored_ids:
            return IgnoredMatch(discussion.key)

    if acting_user is None or signature is None:
        return None

    for discussion in matches:
        for note in reversed(discussion.notes):
            if note.system or note.id is None:
                continue
            if not acting_user.same_identity(note.author):
                continue
            if issue_signature(note.body) == signature:
                return ReusableNote(discussion.key, note.id)
    return None


def find_fallback_note(
    discussions: Iterable[Discussion], acting_user: User | None, signature: str | None
) -> ReusableNote | None:
    """An earlier unanchored fallback note by the same author for the same issue."""
    if acting_user is None or signature is None:
        return None
    for discussion in discussions:
        for note in reversed(discussion.notes):
            if note.system or note.id is None or FALLBACK_MARKER not in (note.body or ""):
                continue
            if acting_user.same_identity(note.author) and issue_signature(note.body) == signature:
                return ReusableNote(discussion.key, note.id)
    return None
