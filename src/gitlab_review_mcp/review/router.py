"""Routing of review findings to skip, update or create on a merge request.

Every finding passes through the same sequence:

1. **Ignore check**: a thread at the target position that a human marked
   ignored means nothing is written at all.
2. **Reuse check**: a note by the acting user with the same issue signature
   at the same position is updated in place.
3. **Anchoring**: the target line plus the MR's diff refs must form a valid
   position, otherwise an unanchored note is posted with a reason suffix.
   An earlier fallback note of the acting user for the same issue is
   updated instead.
4. **Anchored create**: a new positioned discussion.

Steps 1 and 2 only read; they always complete before any write is issued.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from ..client import GitLabClient
from ..exceptions import FindingPostError, GitLabApiError, GitLabError
from ..models import Diff, DiffRefs, Discussion, MergeRequest, User, coerce_discussions
from .anchor import (
    POSITION_REJECTED,
    AnchorFailure,
    TargetLine,
    build_position,
    locate_target,
)
from .ignore import find_ignored_discussion_ids
from .index import (
    FALLBACK_MARKER,
    IgnoredMatch,
    ReusableNote,
    find_fallback_note,
    find_reusable_note,
    issue_signature,
)

logger = logging.getLogger(__name__)

Action = Literal["created", "updated", "skipped"]


@dataclass(frozen=True)
class Finding:
    body: str
    file_path: str | None = None
    line: int | None = None

    @property
    def signature(self) -> str | None:
        return issue_signature(self.body)

    def to_dict(self) -> dict[str, Any]:
        return {"body": self.body, "file_path": self.file_path, "line": self.line}


@dataclass
class MrReviewContext:
    """Fresh per-call view of one merge request."""

    project_id: str
    mr_iid: int
    diff_refs: DiffRefs | None
    changes: list[Diff]
    discussions: list[Discussion]
    ignored_ids: frozenset[str]
    acting_user: User | None = None


@dataclass
class RoutingOutcome:
    action: Action
    anchored: bool = False
    discussion_id: str | None = None
    note_id: int | None = None
    fallback_reason: str | None = None
    resource: dict[str, Any] | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def fallback_body(body: str, failure: AnchorFailure) -> str:
    return (
        f"{body}\n\n_(Auto-anchoring unavailable: {failure.detail})_\n"
        f"{FALLBACK_MARKER}{failure.reason} -->"
    )


class ReviewCommentRouter:
    def __init__(self, client: GitLabClient) -> None:
        self._client = client

    async def load_context(
        self,
        project_id: str,
        mr_iid: int,
        preset_ignored: Collection[str] = frozenset(),
    ) -> MrReviewContext:
        mr = MergeRequest.model_validate(
            await self._client.get_merge_request(project_id, mr_iid) or {}
        )
        changes_resp = await self._client.get_merge_request_changes(project_id, mr_iid) or {}
        changes = Diff.parse_many(changes_resp.get("changes"))
        discussions = coerce_discussions(
            await self._client.list_mr_discussions(project_id, mr_iid)
        )
        ignored = frozenset(preset_ignored) | find_ignored_discussion_ids(discussions)

        return MrReviewContext(
            project_id=project_id,
            mr_iid=mr_iid,
            diff_refs=mr.diff_refs,
            changes=changes,
            discussions=discussions,
            ignored_ids=ignored,
            acting_user=await self._acting_user(),
        )

    async def _acting_user(self) -> User | None:
        try:
            data = await self._client.get_current_user()
        except GitLabApiError as e:
            # Job tokens cannot read /user; reuse of earlier notes is then disabled.
            logger.warning("Could not resolve acting user (%s); note reuse disabled", e.status_code)
            return None
        return User.model_validate(data) if isinstance(data, dict) else None

    async def post_finding(self, context: MrReviewContext, finding: Finding) -> RoutingOutcome:
        target = locate_target(context.changes, finding.file_path, finding.line)

        if isinstance(target, TargetLine):
            match = find_reusable_note(
                context.discussions,
                context.acting_user,
                target.as_position(),
                finding.signature,
                context.ignored_ids,
            )
            if isinstance(match, IgnoredMatch):
                logger.info(
                    "Skipping finding at %s:%d; discussion %s is ignored",
                    target.path,
                    target.line,
                    match.discussion_id,
                )
                return RoutingOutcome(action="skipped", discussion_id=match.discussion_id)
            if isinstance(match, ReusableNote):
                return await self._update(context, finding, match)

            anchor = build_position(context.diff_refs, target)
        else:
            anchor = target

        if isinstance(anchor, AnchorFailure):
            return await self._fallback(context, finding, anchor)

        payload = {"body": finding.body, "position": anchor.position.to_dict()}
        try:
            created = await self._client.create_mr_discussion(
                context.project_id, context.mr_iid, payload
            )
        except GitLabApiError as e:
            if e.status_code != 400:
                raise FindingPostError(finding.to_dict(), e) from e
            logger.warning("GitLab rejected position %s: %s", payload["position"], e.body[:200])
            failure = AnchorFailure(POSITION_REJECTED, "GitLab rejected the diff position")
            return await self._fallback(context, finding, failure)
        except GitLabError as e:
            raise FindingPostError(finding.to_dict(), e) from e

        return RoutingOutcome(
            action="created",
            anchored=True,
            discussion_id=_str_or_none(created, "id"),
            note_id=_first_note_id(created),
            resource=created,
        )

    async def _update(
        self, context: MrReviewContext, finding: Finding, match: ReusableNote
    ) -> RoutingOutcome:
        logger.info("Updating note %s in discussion %s", match.note_id, match.discussion_id)
        try:
            updated = await self._client.update_mr_note(
                context.project_id, context.mr_iid, match.note_id, finding.body
            )
        except GitLabError as e:
            raise FindingPostError(finding.to_dict(), e) from e
        return RoutingOutcome(
            action="updated",
            anchored=True,
            discussion_id=match.discussion_id,
            note_id=match.note_id,
            resource=updated,
        )

    async def _fallback(
        self, context: MrReviewContext, finding: Finding, failure: AnchorFailure
    ) -> RoutingOutcome:
        body = fallback_body(finding.body, failure)
        earlier = find_fallback_note(context.discussions, context.acting_user, finding.signature)
        if earlier is not None:
            logger.info(
                "Anchoring failed (%s); updating fallback note %s", failure.reason, earlier.note_id
            )
            try:
                updated = await self._client.update_mr_note(
                    context.project_id, context.mr_iid, earlier.note_id, body
                )
            except GitLabError as e:
                raise FindingPostError(finding.to_dict(), e) from e
            return RoutingOutcome(
                action="updated",
                anchored=False,
                discussion_id=earlier.discussion_id or None,
                note_id=earlier.note_id,
                fallback_reason=failure.reason,
                resource=updated,
            )

        logger.info("Anchoring failed (%s); posting top-level note", failure.reason)
        try:
            note = await self._client.add_mr_note(context.project_id, context.mr_iid, body)
        except GitLabError as e:
            raise FindingPostError(finding.to_dict(), e) from e
        return RoutingOutcome(
            action="created",
            anchored=False,
            note_id=note.get("id") if isinstance(note, dict) else None,
            fallback_reason=failure.reason,
            resource=note,
        )


def _str_or_none(data: Any, key: str) -> str | None:
    if isinstance(data, dict) and data.get(key) is not None:
        return str(data[key])
    return None


def _first_note_id(discussion: Any) -> int | None:
    if not isinstance(discussion, dict):
        return None
    notes = discussion.get("notes") or []
    if notes and isinstance(notes[0], dict):
        return notes[0].get("id")
    return None
