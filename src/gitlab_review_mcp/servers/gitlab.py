"""GitLab review MCP server — all tool registrations."""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field, ValidationError

from ..client import GitLabClient
from ..config import GitLabConfig
from ..exceptions import (
    FindingPostError,
    GitLabApiError,
    GitLabAuthError,
    GitLabNotFoundError,
    GitLabWriteDisabledError,
)
from ..middleware import ToolCallLoggingMiddleware
from ..models import Position
from ..review.router import Finding, ReviewCommentRouter
from ..review.summary import build_mr_context

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    config = GitLabConfig.from_env()
    config.validate()
    client = GitLabClient(config)
    logger.info("Connected to %s (token header: %s)", config.api_url, config.token_header.value)
    try:
        yield {"client": client, "config": config}
    finally:
        await client.close()


mcp = FastMCP(
    name="GitLab Review MCP Server",
    instructions=(
        "Provides GitLab merge request, pipeline, issue and file tools for code review."
        " Prefer create_anchored_discussion_auto for review findings: it skips threads"
        " marked ignored and updates your earlier note instead of duplicating it."
    ),
    lifespan=lifespan,
)
mcp.add_middleware(ToolCallLoggingMiddleware())


def _get_client(ctx: Context) -> GitLabClient:
    return ctx.request_context.lifespan_context["client"]


def _get_config(ctx: Context) -> GitLabConfig:
    return ctx.request_context.lifespan_context["config"]


def _check_write(ctx: Context) -> None:
    if _get_config(ctx).read_only:
        raise GitLabWriteDisabledError


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _err(error: Exception) -> str:
    detail: dict[str, Any] = {"error": str(error)}
    if isinstance(error, FindingPostError):
        detail["finding"] = error.finding
        error = error.cause
        detail["message"] = str(error)

    if isinstance(error, GitLabNotFoundError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        detail["hint"] = "Verify the project ID/path and merge request or issue IID."
    elif isinstance(error, GitLabAuthError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        detail["hint"] = (
            "Check the token and GITLAB_TOKEN_HEADER. The token needs 'api' scope."
        )
    elif isinstance(error, GitLabWriteDisabledError):
        detail["hint"] = "Server is in read-only mode. Set GITLAB_READ_ONLY=false to enable writes."
    elif isinstance(error, GitLabApiError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        if error.status_code == 409:
            detail["hint"] = "Conflict — resource may already exist or be locked."
        elif error.status_code == 422:
            detail["hint"] = "Validation failed — check required fields and formats."
        elif error.status_code == 429:
            detail["hint"] = "Rate limited. Wait before retrying."
    elif isinstance(error, (ValueError, ValidationError)):
        detail["hint"] = "Invalid input. Check the tool arguments."
    return json.dumps(detail, indent=2, ensure_ascii=False)


def _tool_error(error: Exception) -> ToolError:
    return ToolError(_err(error))


# ════════════════════════════════════════════════════════════════════
# Repository files
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "files", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_file_contents(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    file_path: Annotated[str, Field(description="Path to the file", min_length=1)],
    ref: Annotated[
        str | None, Field(description="Branch/tag/commit; defaults to the default branch")
    ] = None,
) -> str:
    """Get the decoded contents of a file from a GitLab project."""
    try:
        client = _get_client(ctx)
        if not ref:
            try:
                project = await client.get_project(project_id)
                ref = project.get("default_branch") or "main"
            except GitLabApiError as e:
                logger.debug("Default branch lookup failed (%s); using main", e.status_code)
                ref = "main"
        file = await client.get_file(project_id, file_path, ref)
        encoded = file.get("content") or ""
        if file.get("encoding", "base64") != "base64":
            return encoded
        return base64.b64decode(encoded).decode("utf-8", errors="replace")
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "files", "write"},
    annotations={"readOnlyHint": False, "idempotentHint": True, "openWorldHint": True},
)
async def create_or_update_file(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    file_path: Annotated[str, Field(description="Path of the file to create/update", min_length=1)],
    content: Annotated[str, Field(description="New file content")],
    commit_message: Annotated[str, Field(description="Commit message", min_length=1)],
    branch: Annotated[str, Field(description="Branch to commit to", min_length=1)],
) -> str:
    """Create a file, or update it if it already exists on the branch."""
    try:
        _check_write(ctx)
        client = _get_client(ctx)
        params = {"branch": branch, "commit_message": commit_message, "content": content}
        try:
            await client.get_file(project_id, file_path, branch)
        except GitLabNotFoundError:
            data = await client.create_file(project_id, file_path, params)
        else:
            data = await client.update_file(project_id, file_path, params)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "labels", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def list_project_labels(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    per_page: Annotated[
        int | None, Field(description="Results per page (1-100)", ge=1, le=100)
    ] = None,
) -> str:
    """List labels configured in a project."""
    try:
        params = {"per_page": per_page} if per_page else None
        data = await _get_client(ctx).list_labels(project_id, params)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


# ════════════════════════════════════════════════════════════════════
# Merge Requests
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "merge_requests", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def create_merge_request(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    title: Annotated[str, Field(description="MR title", min_length=1)],
    source_branch: Annotated[str, Field(description="Branch containing changes", min_length=1)],
    target_branch: Annotated[str, Field(description="Branch to merge into", min_length=1)],
    description: Annotated[str | None, Field(description="MR description")] = None,
) -> str:
    """Create a new merge request."""
    try:
        _check_write(ctx)
        params: dict[str, Any] = {
            "title": title,
            "source_branch": source_branch,
            "target_branch": target_branch,
            "description": description or "",
        }
        data = await _get_client(ctx).create_merge_request(project_id, params)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """Get merge request details, including diff_refs."""
    try:
        data = await _get_client(ctx).get_merge_request(project_id, merge_request_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request_commits(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """Get commits in a merge request."""
    try:
        data = await _get_client(ctx).get_merge_request_commits(project_id, merge_request_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request_changes(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """Get file changes of a merge request with per-file unified diffs."""
    try:
        data = await _get_client(ctx).get_merge_request_changes(project_id, merge_request_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def list_merge_requests(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    state: Annotated[str | None, Field(description="opened, closed, or merged")] = None,
    per_page: Annotated[
        int | None, Field(description="Results per page (1-100)", ge=1, le=100)
    ] = None,
) -> str:
    """List merge requests in a project."""
    try:
        params: dict[str, Any] = {}
        if state:
            params["state"] = state
        if per_page:
            params["per_page"] = per_page
        data = await _get_client(ctx).list_merge_requests(project_id, params or None)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request_participants(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """Get the users involved in a merge request."""
    try:
        data = await _get_client(ctx).get_merge_request_participants(
            project_id, merge_request_iid
        )
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def list_merge_request_diffs(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """List detailed diffs for a merge request."""
    try:
        data = await _get_client(ctx).list_merge_request_diffs(project_id, merge_request_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "merge_requests", "pipelines", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request_pipelines(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """Get pipelines for a merge request."""
    try:
        data = await _get_client(ctx).get_merge_request_pipelines(project_id, merge_request_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


# ════════════════════════════════════════════════════════════════════
# MR Discussions & Notes
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "discussions", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def discussion_list(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """List all discussions on a merge request (every page, system notes included)."""
    try:
        data = await _get_client(ctx).list_mr_discussions(project_id, merge_request_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "discussions", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def discussion_add_note(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
    body: Annotated[str, Field(description="Comment body (markdown)", min_length=1)],
    discussion_id: Annotated[
        str | None, Field(description="Discussion ID to reply to; omit for a new comment")
    ] = None,
) -> str:
    """Add a comment to a merge request, or reply to an existing discussion."""
    try:
        _check_write(ctx)
        client = _get_client(ctx)
        if discussion_id:
            data = await client.reply_to_discussion(
                project_id, merge_request_iid, discussion_id, body
            )
        else:
            data = await client.add_mr_note(project_id, merge_request_iid, body)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "notes", "write"},
    annotations={"readOnlyHint": False, "idempotentHint": True, "openWorldHint": True},
)
async def update_note(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
    note_id: Annotated[int, Field(description="Note ID to update")],
    body: Annotated[str, Field(description="New note body", min_length=1)],
) -> str:
    """Replace the body of an existing merge request note."""
    try:
        _check_write(ctx)
        data = await _get_client(ctx).update_mr_note(project_id, merge_request_iid, note_id, body)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "discussions", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def create_mr_discussion_with_position(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
    body: Annotated[str, Field(description="Discussion body (markdown)", min_length=1)],
    position: Annotated[
        dict[str, Any],
        Field(
            description=(
                "GitLab diff position: {position_type: 'text', base_sha, start_sha, head_sha,"
                " new_path, old_path?, new_line?, old_line?}"
            )
        ),
    ],
) -> str:
    """Create a discussion at an explicit diff position.

    Does not check for ignored or duplicate threads; prefer
    create_anchored_discussion_auto for review findings.
    """
    try:
        _check_write(ctx)
        parsed = Position.model_validate(position)
        if not parsed.has_sha_triple():
            msg = "position requires base_sha, start_sha and head_sha"
            raise ValueError(msg)
        if not parsed.is_well_formed():
            msg = "position requires new_line with new_path, or old_line with old_path"
            raise ValueError(msg)
        payload = {"body": body, "position": parsed.to_dict()}
        data = await _get_client(ctx).create_mr_discussion(project_id, merge_request_iid, payload)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "discussions", "write", "review"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def create_anchored_discussion_auto(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
    body: Annotated[str, Field(description="Finding text (markdown)", min_length=1)],
    file_path: Annotated[
        str | None, Field(description="File to anchor to; defaults to the first changed file")
    ] = None,
    line: Annotated[
        int | None,
        Field(
            description="New-file line (requires file_path); defaults to first added line",
            ge=1,
        ),
    ] = None,
) -> str:
    """Post a review finding anchored to the MR diff without duplicating earlier feedback.

    Skips positions whose thread was marked ignored (@gemini ignore), updates your
    own earlier note for the same issue, otherwise creates an anchored discussion.
    Falls back to a top-level note when no valid position can be built.
    """
    finding = Finding(body=body, file_path=file_path, line=line)
    try:
        if line is not None and not file_path:
            msg = "line requires file_path"
            raise ValueError(msg)
        _check_write(ctx)
        router = ReviewCommentRouter(_get_client(ctx))
        context = await router.load_context(
            project_id, merge_request_iid, _get_config(ctx).ignored_discussions
        )
        outcome = await router.post_finding(context, finding)
        return _ok(outcome.to_dict())
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "discussions", "read", "review"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_mr_review_context(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    merge_request_iid: Annotated[int, Field(description="Merge request IID")],
) -> str:
    """Summarize earlier discussions on a merge request and list ignored discussion IDs.

    Read this before reviewing so existing feedback is not repeated.
    """
    config = _get_config(ctx)
    summary = await build_mr_context(
        _get_client(ctx),
        project_id,
        merge_request_iid,
        config.max_discussions,
        config.max_preview,
    )
    return _ok(summary.to_dict())


# ════════════════════════════════════════════════════════════════════
# Pipelines
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "pipelines", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def list_pipelines(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    status: Annotated[
        str | None,
        Field(description="Filter by status (running, pending, success, failed, etc.)"),
    ] = None,
    ref: Annotated[str | None, Field(description="Filter by branch/tag")] = None,
    per_page: Annotated[
        int | None, Field(description="Results per page (1-100)", ge=1, le=100)
    ] = None,
) -> str:
    """List pipelines for a project."""
    try:
        params: dict[str, Any] = {}
        if status:
            params["status"] = status
        if ref:
            params["ref"] = ref
        if per_page:
            params["per_page"] = per_page
        data = await _get_client(ctx).list_pipelines(project_id, params or None)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "pipelines", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_pipeline(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    pipeline_id: Annotated[int, Field(description="Pipeline ID")],
) -> str:
    """Get pipeline details."""
    try:
        data = await _get_client(ctx).get_pipeline(project_id, pipeline_id)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "pipelines", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_pipeline_jobs(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    pipeline_id: Annotated[int, Field(description="Pipeline ID")],
) -> str:
    """Get jobs in a pipeline."""
    try:
        data = await _get_client(ctx).list_pipeline_jobs(project_id, pipeline_id)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "pipelines", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def trigger_pipeline(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    ref: Annotated[str, Field(description="Branch or tag to run the pipeline for", min_length=1)],
    variables: Annotated[
        dict[str, str] | None, Field(description="Pipeline variables as key-value pairs")
    ] = None,
) -> str:
    """Trigger a new pipeline."""
    try:
        _check_write(ctx)
        var_list = [{"key": k, "value": v} for k, v in (variables or {}).items()]
        data = await _get_client(ctx).create_pipeline(project_id, ref, var_list or None)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "pipelines", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def retry_pipeline(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    pipeline_id: Annotated[int, Field(description="Pipeline ID")],
) -> str:
    """Retry all failed jobs in a pipeline."""
    try:
        _check_write(ctx)
        data = await _get_client(ctx).retry_pipeline(project_id, pipeline_id)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "pipelines", "write"},
    annotations={"destructiveHint": True, "readOnlyHint": False, "openWorldHint": True},
)
async def cancel_pipeline(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    pipeline_id: Annotated[int, Field(description="Pipeline ID")],
) -> str:
    """Cancel a running pipeline."""
    try:
        _check_write(ctx)
        data = await _get_client(ctx).cancel_pipeline(project_id, pipeline_id)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "jobs", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_job_log(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    job_id: Annotated[int, Field(description="Job ID")],
    tail_lines: Annotated[
        int | None, Field(description="Only return this many lines from the end", ge=1)
    ] = None,
) -> str:
    """Get the raw log (trace) output of a job as plain text."""
    try:
        log_text = await _get_client(ctx).get_job_log(project_id, job_id)
        if tail_lines:
            lines = log_text.splitlines()
            if len(lines) > tail_lines:
                return "\n".join(lines[-tail_lines:])
        return log_text
    except Exception as e:
        raise _tool_error(e) from e


# ════════════════════════════════════════════════════════════════════
# Issues
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_issue(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    issue_iid: Annotated[int, Field(description="Issue IID")],
) -> str:
    """Get details of an issue."""
    try:
        data = await _get_client(ctx).get_issue(project_id, issue_iid)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def list_issues(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    state: Annotated[str | None, Field(description="opened, closed, or all")] = None,
    labels: Annotated[list[str] | None, Field(description="Labels to filter by")] = None,
    per_page: Annotated[
        int | None, Field(description="Results per page (1-100)", ge=1, le=100)
    ] = None,
) -> str:
    """List issues in a project."""
    try:
        params: dict[str, Any] = {}
        if state:
            params["state"] = state
        if labels:
            params["labels"] = ",".join(labels)
        if per_page:
            params["per_page"] = per_page
        data = await _get_client(ctx).list_issues(project_id, params or None)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "issues", "write"},
    annotations={"readOnlyHint": False, "idempotentHint": True, "openWorldHint": True},
)
async def add_issue_labels(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    issue_iid: Annotated[int, Field(description="Issue IID")],
    labels: Annotated[list[str], Field(description="Labels to add", min_length=1)],
) -> str:
    """Add labels to an issue, keeping its existing labels."""
    try:
        _check_write(ctx)
        data = await _get_client(ctx).update_issue(
            project_id, issue_iid, {"add_labels": ",".join(labels)}
        )
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e


@mcp.tool(
    tags={"gitlab", "issues", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def create_issue_note(
    ctx: Context,
    project_id: Annotated[
        str,
        Field(
            description="Project ID or URL-encoded path (e.g. 'my-group/my-project')", min_length=1
        ),
    ],
    issue_iid: Annotated[int, Field(description="Issue IID")],
    body: Annotated[str, Field(description="Comment body (markdown)", min_length=1)],
) -> str:
    """Add a comment to an issue."""
    try:
        _check_write(ctx)
        data = await _get_client(ctx).add_issue_comment(project_id, issue_iid, body)
        return _ok(data)
    except Exception as e:
        raise _tool_error(e) from e
