"""Compact textual summary of prior MR discussions for the reviewing agent."""

from __future__ import annotations

import json
import logging
import re
import shlex
from dataclasses import dataclass, field
from typing import Any

from ..client import GitLabClient
from ..models import Discussion, Note, Position, coerce_discussions
from .ignore import find_ignored_discussion_ids, matches_ignore_marker

logger = logging.getLogger(__name__)

NO_DISCUSSIONS = "No existing discussions found."
NOT_SUMMARIZED = "Existing discussions could not be summarized."
UNAVAILABLE = "Existing discussions unavailable."

DEFAULT_MAX_DISCUSSIONS = 20
DEFAULT_MAX_PREVIEW = 220

_MARKDOWN_RE = re.compile(r"([`\\*_])")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class MrContextSummary:
    context: str
    ignored_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"context": self.context, "ignored_ids": list(self.ignored_ids)}


def escape_markdown(text: str) -> str:
    return _MARKDOWN_RE.sub(r"\\\1", text)


def build_preview(body: str | None, max_length: int = DEFAULT_MAX_PREVIEW) -> str:
    if not body:
        return "_no text_"
    normalized = _WHITESPACE_RE.sub(" ", body).strip()
    if len(normalized) <= max_length:
        return escape_markdown(normalized)
    return f"{escape_markdown(normalized[: max(max_length - 3, 0)])}..."


def build_location(position: Position | None) -> str:
    if position is None:
        return "General"
    file = position.path or "unknown-file"
    return f"{file}:{position.line}" if position.line else file


def _representative_note(notes: list[Note]) -> Note:
    for note in reversed(notes):
        if not note.system and isinstance(note.body, str):
            return note
    return notes[-1]


def _resolved_state(discussion: Discussion) -> str:
    if discussion.resolved is not None:
        return "resolved" if discussion.resolved else "unresolved"
    return "resolved" if discussion.notes[-1].resolved is True else "unresolved"


def _summarize_one(discussion: Discussion, max_preview: int) -> str:
    notes = discussion.notes
    latest = _representative_note(notes)
    if discussion.position is not None:
        location = build_location(discussion.position)
    elif latest.resolvable:
        location = "Thread (no diff position)"
    else:
        location = "General"

    author = latest.author.display_name if latest.author is not None else "unknown"
    flags = [_resolved_state(discussion)]
    if any(matches_ignore_marker(n.body) for n in notes):
        flags.append("ignored")
    if latest.author is not None and latest.author.bot:
        flags.append("bot")

    return (
        f"- **{discussion.key}** ({location}, {', '.join(flags)})"
        f" – last by `{author}`: {build_preview(latest.body, max_preview)}"
    )


def summarize_discussions(
    discussions: Any,
    max_discussions: int = DEFAULT_MAX_DISCUSSIONS,
    max_preview: int = DEFAULT_MAX_PREVIEW,
) -> MrContextSummary:
    """Summarize up to *max_discussions* threads.

    Ignore markers are collected from every discussion passed in, including
    those past the cap, so suppression does not lapse as a thread list grows.
    """
    parsed = coerce_discussions(discussions)
    if not parsed:
        return MrContextSummary(NO_DISCUSSIONS, [])

    summaries = [
        _summarize_one(d, max_preview) for d in parsed[:max_discussions] if d.notes
    ]
    ignored_set = find_ignored_discussion_ids(parsed)
    ignored = list(dict.fromkeys(d.key for d in parsed if d.key in ignored_set))
    return MrContextSummary("\n".join(summaries) if summaries else NOT_SUMMARIZED, ignored)


async def build_mr_context(
    client: GitLabClient,
    project_id: str,
    mr_iid: int,
    max_discussions: int = DEFAULT_MAX_DISCUSSIONS,
    max_preview: int = DEFAULT_MAX_PREVIEW,
) -> MrContextSummary:
    """Fetch and summarize all discussions of an MR. Never raises."""
    try:
        discussions = await client.list_mr_discussions(project_id, mr_iid)
        return summarize_discussions(discussions, max_discussions, max_preview)
    except Exception:
        logger.exception("Failed to build MR context for %s!%s", project_id, mr_iid)
        return MrContextSummary(UNAVAILABLE, [])


def render_exports(summary: MrContextSummary) -> str:
    """Render the summary as shell ``export`` lines for a CI job to ``eval``."""
    lines = [
        f"export EXISTING_FEEDBACK_CONTEXT={shlex.quote(summary.context)}",
        f"export IGNORED_DISCUSSIONS={shlex.quote(json.dumps(summary.ignored_ids))}",
    ]
    return "\n".join(lines) + "\n"
