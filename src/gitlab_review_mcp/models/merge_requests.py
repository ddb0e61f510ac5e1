"""Merge request discussion models."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .base import GitLabModel
from .common import DiffRefs, User

logger = logging.getLogger(__name__)


class Position(GitLabModel):
    """A (file, line, SHA-triple) coordinate anchoring a note to one diff version."""

    position_type: str = "text"
    base_sha: str | None = None
    start_sha: str | None = None
    head_sha: str | None = None
    old_path: str | None = None
    new_path: str | None = None
    old_line: int | None = None
    new_line: int | None = None

    @property
    def path(self) -> str | None:
        return self.new_path or self.old_path or None

    @property
    def line(self) -> int | None:
        return self.new_line if self.new_line is not None else self.old_line

    def has_sha_triple(self) -> bool:
        return bool(self.base_sha and self.start_sha and self.head_sha)

    def is_well_formed(self) -> bool:
        if self.new_line is not None and self.new_path:
            return True
        return self.old_line is not None and bool(self.old_path)

    @classmethod
    def from_refs(
        cls, refs: DiffRefs, new_path: str, new_line: int, old_path: str | None = None
    ) -> Position:
        return cls(
            base_sha=refs.base_sha,
            start_sha=refs.start_sha,
            head_sha=refs.head_sha,
            new_path=new_path,
            old_path=old_path or new_path,
            new_line=new_line,
        )


class Note(GitLabModel):
    id: int | None = None
    body: str | None = None
    author: User | None = None
    created_at: str = ""
    updated_at: str = ""
    system: bool = False
    resolvable: bool = False
    resolved: bool | None = None
    position: Position | None = None
    type: str | None = None


class Discussion(GitLabModel):
    id: str | int | None = None
    individual_note: bool = False
    resolved: bool | None = None
    notes: list[Note] = []

    @property
    def key(self) -> str:
        return "" if self.id is None else str(self.id)

    @property
    def position(self) -> Position | None:
        """Position of the first positioned note, if any."""
        for note in self.notes:
            if note.position is not None:
                return note.position
        return None


class MergeRequest(GitLabModel):
    id: int | None = None
    iid: int | None = None
    title: str = ""
    state: str = ""
    source_branch: str = ""
    target_branch: str = ""
    author: User | None = None
    web_url: str = ""
    diff_refs: DiffRefs | None = None


def coerce_discussions(raw: Any) -> list[Discussion]:
    """Turn an API payload into discussions, skipping entries that do not validate."""
    if not isinstance(raw, list):
        return []
    result: list[Discussion] = []
    for item in raw:
        if isinstance(item, Discussion):
            result.append(item)
            continue
        if not isinstance(item, dict):
            continue
        try:
            result.append(Discussion.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed discussion %s: %s", item.get("id"), e.errors()[:1]
            )
    return result
