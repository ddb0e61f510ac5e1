"""Common GitLab models shared across domains."""

from __future__ import annotations

from .base import GitLabModel


class User(GitLabModel):
    id: int | None = None
    username: str = ""
    name: str = ""
    state: str = ""
    bot: bool | None = None
    web_url: str = ""

    def same_identity(self, other: User | None) -> bool:
        """Compare by numeric id when both sides have one, else by username."""
        if other is None:
            return False
        if self.id is not None and other.id is not None:
            return self.id == other.id
        return bool(self.username) and self.username == other.username

    @property
    def display_name(self) -> str:
        return self.username or self.name or "unknown"


class DiffRefs(GitLabModel):
    base_sha: str | None = None
    head_sha: str | None = None
    start_sha: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.base_sha and self.start_sha and self.head_sha)


class Diff(GitLabModel):
    old_path: str = ""
    new_path: str = ""
    a_mode: str = ""
    b_mode: str = ""
    diff: str = ""
    new_file: bool = False
    renamed_file: bool = False
    deleted_file: bool = False

    def touches(self, path: str) -> bool:
        return path in (self.new_path, self.old_path)
