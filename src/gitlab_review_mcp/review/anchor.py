"""Computing diff positions for new inline comments."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..models import Diff, DiffRefs, Position
from .diff import find_first_added_line

MISSING_DIFF_REFS = "missing_diff_refs"
NO_ADDED_LINE = "no_added_line"
FILE_NOT_IN_DIFF = "file_not_in_diff"
POSITION_REJECTED = "position_rejected"


@dataclass(frozen=True)
class TargetLine:
    """The file and new-side line a finding is about."""

    path: str
    line: int
    old_path: str | None = None

    def as_position(self) -> Position:
        return Position(new_path=self.path, old_path=self.old_path or self.path, new_line=self.line)


@dataclass(frozen=True)
class Anchored:
    position: Position


@dataclass(frozen=True)
class AnchorFailure:
    reason: str
    detail: str


def locate_target(
    changes: Sequence[Diff], file_path: str | None = None, line: int | None = None
) -> TargetLine | AnchorFailure:
    """Pick the line a finding should be anchored to.

    With *file_path* and *line* the caller's choice is used as-is. With only
    *file_path* the first added line of that file is used; with neither, the
    first added line of the first change that has one.
    """
    if file_path:
        change = next((c for c in changes if c.touches(file_path)), None)
        if line is not None:
            if change is None:
                return TargetLine(path=file_path, line=line)
            # A renamed file may be named by its old path; positions use the new one.
            return TargetLine(
                path=change.new_path or file_path, line=line, old_path=change.old_path
            )
        if change is None:
            return AnchorFailure(FILE_NOT_IN_DIFF, f"{file_path} is not part of the MR diff")
        first = find_first_added_line(change.diff)
        if first is None:
            return AnchorFailure(NO_ADDED_LINE, f"No added line found in {file_path}")
        return TargetLine(path=change.new_path or file_path, line=first, old_path=change.old_path)

    for change in changes:
        first = find_first_added_line(change.diff)
        if first is not None and change.new_path:
            return TargetLine(path=change.new_path, line=first, old_path=change.old_path)
    return AnchorFailure(NO_ADDED_LINE, "Could not determine a valid added line to anchor")


def build_position(diff_refs: DiffRefs | None, target: TargetLine) -> Anchored | AnchorFailure:
    if diff_refs is None or not diff_refs.is_complete:
        return AnchorFailure(MISSING_DIFF_REFS, "Missing diff_refs for MR; cannot anchor")
    return Anchored(
        Position.from_refs(diff_refs, target.path, target.line, old_path=target.old_path)
    )
