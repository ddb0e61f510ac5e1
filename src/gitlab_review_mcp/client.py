"""GitLab API client using httpx."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote, unquote

import httpx

from .config import GitLabConfig
from .exceptions import GitLabApiError, GitLabAuthError, GitLabNotFoundError

logger = logging.getLogger(__name__)

MAX_PAGES = 50


class GitLabClient:
    """Async HTTP client for the GitLab REST API v4."""

    def __init__(self, config: GitLabConfig | None = None) -> None:
        self.config = config or GitLabConfig.from_env()
        self.config.validate()
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            headers={
                **self.config.auth_headers(),
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
            verify=self.config.ssl_verify,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ── HTTP helpers ──────────────────────────────────────────────

    @staticmethod
    def _encode_id(project_id: str | int) -> str:
        """Encode a project ID. Numeric IDs pass through; paths are URL-encoded once."""
        if isinstance(project_id, int):
            return str(project_id)
        try:
            return str(int(project_id))
        except ValueError:
            return quote(unquote(project_id), safe="")

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json_data: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request and map non-success statuses to exceptions."""
        kwargs: dict[str, Any] = {"params": params}
        if json_data is not None:
            kwargs["json"] = json_data

        logger.debug("GitLab %s %s", method, path)
        resp = await self._client.request(method, path, **kwargs)

        if resp.status_code in (401, 403):
            raise GitLabAuthError(resp.status_code, resp.text)
        if resp.status_code == 404:
            raise GitLabNotFoundError(resp.text)
        if not resp.is_success:
            raise GitLabApiError(resp.status_code, resp.reason_phrase or "", resp.text)
        return resp

    @staticmethod
    def _parse(resp: httpx.Response, *, raw: bool = False) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None

        if raw:
            return resp.text

        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            msg = "Unexpected HTML response — check URL and authentication"
            raise GitLabApiError(resp.status_code, msg, resp.text[:500])

        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise GitLabApiError(
                resp.status_code,
                f"JSON parse error: {e}",
                resp.text[:500],
            ) from e

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any = None,
        params: dict[str, Any] | None = None,
        raw: bool = False,
    ) -> Any:
        """Make an API request and return parsed JSON (or raw text if raw=True)."""
        resp = await self._send(method, path, json_data=json_data, params=params)
        return self._parse(resp, raw=raw)

    async def get(
        self, path: str, params: dict[str, Any] | None = None, *, raw: bool = False
    ) -> Any:
        return await self._request("GET", path, params=params, raw=raw)

    async def get_all(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """GET every page of a list endpoint by following ``X-Next-Page``."""
        items: list[Any] = []
        page = 1
        while page:
            p = {"per_page": 100, **(params or {}), "page": page}
            resp = await self._send("GET", path, params=p)
            data = self._parse(resp)
            if not isinstance(data, list):
                break
            items.extend(data)
            next_page = resp.headers.get("x-next-page", "").strip()
            page = int(next_page) if next_page.isdigit() else 0
            if page > MAX_PAGES:
                logger.warning("Stopping pagination of %s after %d pages", path, MAX_PAGES)
                break
        return items

    async def post(self, path: str, json_data: Any = None, **kwargs: Any) -> Any:
        return await self._request("POST", path, json_data=json_data, **kwargs)

    async def put(self, path: str, json_data: Any = None, **kwargs: Any) -> Any:
        return await self._request("PUT", path, json_data=json_data, **kwargs)

    # ── Paths ─────────────────────────────────────────────────────

    def _project(self, project_id: str | int, suffix: str = "") -> str:
        return f"/projects/{self._encode_id(project_id)}{suffix}"

    def _mr(self, project_id: str | int, mr_iid: int, suffix: str = "") -> str:
        return self._project(project_id, f"/merge_requests/{mr_iid}{suffix}")

    def _file(self, project_id: str | int, file_path: str) -> str:
        return self._project(project_id, f"/repository/files/{quote(file_path, safe='')}")

    # ── Users & projects ──────────────────────────────────────────

    async def get_current_user(self) -> dict:
        """The identity behind the configured token (fails for job tokens)."""
        return await self.get("/user")

    async def get_project(self, project_id: str | int) -> dict:
        return await self.get(self._project(project_id))

    async def list_labels(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        p = {"per_page": 100, **(params or {})}
        return await self.get(self._project(project_id, "/labels"), p)

    # ── Repository files ──────────────────────────────────────────

    async def get_file(self, project_id: str | int, file_path: str, ref: str) -> dict:
        return await self.get(self._file(project_id, file_path), {"ref": ref})

    async def create_file(
        self, project_id: str | int, file_path: str, params: dict[str, Any]
    ) -> dict:
        return await self.post(self._file(project_id, file_path), params)

    async def update_file(
        self, project_id: str | int, file_path: str, params: dict[str, Any]
    ) -> dict:
        return await self.put(self._file(project_id, file_path), params)

    # ── Merge Requests ────────────────────────────────────────────

    async def list_merge_requests(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        p = {"per_page": 20, **(params or {})}
        return await self.get(self._project(project_id, "/merge_requests"), p)

    async def create_merge_request(self, project_id: str | int, params: dict[str, Any]) -> dict:
        return await self.post(self._project(project_id, "/merge_requests"), params)

    async def get_merge_request(self, project_id: str | int, mr_iid: int) -> dict:
        """MR details; ``diff_refs`` carries the SHA triple for positions."""
        return await self.get(self._mr(project_id, mr_iid))

    async def get_merge_request_commits(self, project_id: str | int, mr_iid: int) -> list[dict]:
        return await self.get(self._mr(project_id, mr_iid, "/commits"))

    async def get_merge_request_changes(self, project_id: str | int, mr_iid: int) -> dict:
        return await self.get(self._mr(project_id, mr_iid, "/changes"))

    async def list_merge_request_diffs(self, project_id: str | int, mr_iid: int) -> list[dict]:
        return await self.get(self._mr(project_id, mr_iid, "/diffs"))

    async def get_merge_request_participants(
        self, project_id: str | int, mr_iid: int
    ) -> list[dict]:
        return await self.get(self._mr(project_id, mr_iid, "/participants"))

    async def get_merge_request_pipelines(self, project_id: str | int, mr_iid: int) -> list[dict]:
        return await self.get(self._mr(project_id, mr_iid, "/pipelines"))

    # ── MR notes & discussions ────────────────────────────────────

    async def add_mr_note(self, project_id: str | int, mr_iid: int, body: str) -> dict:
        return await self.post(self._mr(project_id, mr_iid, "/notes"), {"body": body})

    async def update_mr_note(
        self, project_id: str | int, mr_iid: int, note_id: int, body: str
    ) -> dict:
        return await self.put(self._mr(project_id, mr_iid, f"/notes/{note_id}"), {"body": body})

    async def list_mr_discussions(self, project_id: str | int, mr_iid: int) -> list[dict]:
        """Every discussion on the MR, across all pages, system notes included."""
        return await self.get_all(self._mr(project_id, mr_iid, "/discussions"))

    async def create_mr_discussion(
        self, project_id: str | int, mr_iid: int, params: dict[str, Any]
    ) -> dict:
        return await self.post(self._mr(project_id, mr_iid, "/discussions"), params)

    async def reply_to_discussion(
        self, project_id: str | int, mr_iid: int, discussion_id: str, body: str
    ) -> dict:
        path = self._mr(project_id, mr_iid, f"/discussions/{quote(discussion_id, safe='')}/notes")
        return await self.post(path, {"body": body})

    # ── Pipelines & jobs ──────────────────────────────────────────

    async def list_pipelines(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        p = {"per_page": 20, **(params or {})}
        return await self.get(self._project(project_id, "/pipelines"), p)

    async def get_pipeline(self, project_id: str | int, pipeline_id: int) -> dict:
        return await self.get(self._project(project_id, f"/pipelines/{pipeline_id}"))

    async def list_pipeline_jobs(self, project_id: str | int, pipeline_id: int) -> list[dict]:
        path = self._project(project_id, f"/pipelines/{pipeline_id}/jobs")
        return await self.get(path, {"per_page": 100})

    async def create_pipeline(
        self,
        project_id: str | int,
        ref: str,
        variables: list[dict[str, str]] | None = None,
    ) -> dict:
        data: dict[str, Any] = {"ref": ref}
        if variables:
            data["variables"] = variables
        return await self.post(self._project(project_id, "/pipeline"), data)

    async def retry_pipeline(self, project_id: str | int, pipeline_id: int) -> dict:
        return await self.post(self._project(project_id, f"/pipelines/{pipeline_id}/retry"))

    async def cancel_pipeline(self, project_id: str | int, pipeline_id: int) -> dict:
        return await self.post(self._project(project_id, f"/pipelines/{pipeline_id}/cancel"))

    async def get_job_log(self, project_id: str | int, job_id: int) -> str:
        """Raw trace text of a job; empty string when GitLab has none yet."""
        text = await self.get(self._project(project_id, f"/jobs/{job_id}/trace"), raw=True)
        return text or ""

    # ── Issues ────────────────────────────────────────────────────

    async def list_issues(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        p = {"per_page": 20, **(params or {})}
        return await self.get(self._project(project_id, "/issues"), p)

    async def get_issue(self, project_id: str | int, issue_iid: int) -> dict:
        return await self.get(self._project(project_id, f"/issues/{issue_iid}"))

    async def update_issue(
        self, project_id: str | int, issue_iid: int, params: dict[str, Any]
    ) -> dict:
        return await self.put(self._project(project_id, f"/issues/{issue_iid}"), params)

    async def add_issue_comment(self, project_id: str | int, issue_iid: int, body: str) -> dict:
        path = self._project(project_id, f"/issues/{issue_iid}/notes")
        return await self.post(path, {"body": body})
