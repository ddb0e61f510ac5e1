"""Typed views over GitLab API payloads."""

from .base import GitLabModel
from .common import Diff, DiffRefs, User
from .merge_requests import Discussion, MergeRequest, Note, Position, coerce_discussions

__all__ = [
    "Diff",
    "DiffRefs",
    "Discussion",
    "GitLabModel",
    "MergeRequest",
    "Note",
    "Position",
    "User",
    "coerce_discussions",
]
