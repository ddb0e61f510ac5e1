"""Tests for choosing and building diff positions."""

from __future__ import annotations

from gitlab_review_mcp.models import Diff, DiffRefs
from gitlab_review_mcp.review.anchor import (
    FILE_NOT_IN_DIFF,
    MISSING_DIFF_REFS,
    NO_ADDED_LINE,
    Anchored,
    AnchorFailure,
    TargetLine,
    build_position,
    locate_target,
)

REFS = DiffRefs(base_sha="base", start_sha="start", head_sha="head")

CHANGES = [
    Diff(old_path="docs/old.md", new_path="docs/new.md", diff="@@ -1,2 +1,1 @@\n-a\n b\n"),
    Diff(old_path="src/app.py", new_path="src/app.py", diff="@@ -3,2 +3,3 @@\n x\n+y\n z\n"),
    Diff(old_path="src/lib.py", new_path="src/lib.py", diff="@@ -0,0 +1,1 @@\n+first\n"),
]


class TestLocateTarget:
    def test_first_change_with_an_added_line(self):
        assert locate_target(CHANGES) == TargetLine("src/app.py", 4, "src/app.py")

    def test_named_file(self):
        assert locate_target(CHANGES, "src/lib.py") == TargetLine("src/lib.py", 1, "src/lib.py")

    def test_named_file_by_old_path(self):
        result = locate_target(CHANGES, "docs/old.md")
        assert isinstance(result, AnchorFailure)
        assert result.reason == NO_ADDED_LINE

    def test_explicit_line_is_used_as_is(self):
        assert locate_target(CHANGES, "src/app.py", 42) == TargetLine("src/app.py", 42, "src/app.py")

    def test_explicit_line_for_file_outside_diff(self):
        assert locate_target(CHANGES, "README.md", 3) == TargetLine("README.md", 3, None)

    def test_explicit_line_on_renamed_file_uses_new_path(self):
        result = locate_target(CHANGES, "docs/old.md", 1)
        assert result == TargetLine("docs/new.md", 1, "docs/old.md")
        assert result.as_position().new_path == "docs/new.md"
        assert result.as_position().old_path == "docs/old.md"

    def test_file_not_in_diff(self):
        result = locate_target(CHANGES, "README.md")
        assert isinstance(result, AnchorFailure)
        assert result.reason == FILE_NOT_IN_DIFF
        assert "README.md" in result.detail

    def test_no_added_lines_anywhere(self):
        result = locate_target(CHANGES[:1])
        assert isinstance(result, AnchorFailure)
        assert result.reason == NO_ADDED_LINE

    def test_empty_changes(self):
        assert locate_target([]) == AnchorFailure(
            NO_ADDED_LINE, "Could not determine a valid added line to anchor"
        )


class TestBuildPosition:
    def test_builds_full_position(self):
        result = build_position(REFS, TargetLine("src/app.py", 4, "src/app.py"))
        assert isinstance(result, Anchored)
        assert result.position.to_dict() == {
            "position_type": "text",
            "base_sha": "base",
            "start_sha": "start",
            "head_sha": "head",
            "old_path": "src/app.py",
            "new_path": "src/app.py",
            "new_line": 4,
        }

    def test_old_path_defaults_to_new_path(self):
        result = build_position(REFS, TargetLine("src/app.py", 4))
        assert isinstance(result, Anchored)
        assert result.position.old_path == "src/app.py"

    def test_missing_start_sha(self):
        refs = DiffRefs(base_sha="base", head_sha="head")
        result = build_position(refs, TargetLine("src/app.py", 4))
        assert result == AnchorFailure(MISSING_DIFF_REFS, "Missing diff_refs for MR; cannot anchor")

    def test_no_refs(self):
        assert isinstance(build_position(None, TargetLine("a.py", 1)), AnchorFailure)
