"""Tests for GitLab API client."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from gitlab_review_mcp.client import MAX_PAGES, GitLabClient
from gitlab_review_mcp.config import GitLabConfig, TokenHeader
from gitlab_review_mcp.exceptions import GitLabApiError, GitLabAuthError, GitLabNotFoundError

BASE = "https://gitlab.example.com/api/v4"


def _make_client(token_header: TokenHeader = TokenHeader.AUTHORIZATION) -> GitLabClient:
    return GitLabClient(
        GitLabConfig(url="https://gitlab.example.com", token="test-token", token_header=token_header)
    )


class TestEncodeId:
    def test_numeric_string(self):
        assert GitLabClient._encode_id("123") == "123"

    def test_integer(self):
        assert GitLabClient._encode_id(123) == "123"

    def test_path(self):
        assert GitLabClient._encode_id("my-group/my-project") == "my-group%2Fmy-project"

    def test_already_encoded_path(self):
        assert GitLabClient._encode_id("my-group%2Fmy-project") == "my-group%2Fmy-project"


class TestAuthHeaders:
    @pytest.mark.parametrize(
        ("token_header", "name", "value"),
        [
            (TokenHeader.AUTHORIZATION, "authorization", "Bearer test-token"),
            (TokenHeader.PRIVATE_TOKEN, "private-token", "test-token"),
            (TokenHeader.JOB_TOKEN, "job-token", "test-token"),
        ],
    )
    async def test_token_attached_per_strategy(self, token_header, name, value):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/user").mock(return_value=httpx.Response(200, json={"id": 1}))
            client = _make_client(token_header)
            await client.get_current_user()
            request = route.calls.last.request
            assert request.headers[name] == value
            others = {"authorization", "private-token", "job-token"} - {name}
            assert not any(h in request.headers for h in others)
            await client.close()


class TestRequest:
    @pytest.mark.asyncio
    async def test_get_project(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(
                return_value=httpx.Response(200, json={"id": 123, "name": "test"})
            )
            client = _make_client()
            result = await client.get_project(123)
            assert result["id"] == 123
            assert result["name"] == "test"

    @pytest.mark.asyncio
    async def test_auth_error_401(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(return_value=httpx.Response(401, text="Unauthorized"))
            client = _make_client()
            with pytest.raises(GitLabAuthError) as exc_info:
                await client.get_project(123)
            assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_not_found_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/999").mock(return_value=httpx.Response(404, text="Not Found"))
            client = _make_client()
            with pytest.raises(GitLabNotFoundError):
                await client.get_project(999)

    @pytest.mark.asyncio
    async def test_server_error_keeps_body(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(
                return_value=httpx.Response(500, text="Internal Server Error")
            )
            client = _make_client()
            with pytest.raises(GitLabApiError) as exc_info:
                await client.get_project(123)
            assert exc_info.value.status_code == 500
            assert exc_info.value.body == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_html_response_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(
                return_value=httpx.Response(
                    200,
                    text="<html><body>Login</body></html>",
                    headers={"content-type": "text/html"},
                )
            )
            client = _make_client()
            with pytest.raises(GitLabApiError, match="HTML"):
                await client.get_project(123)

    @pytest.mark.asyncio
    async def test_empty_response(self):
        async with respx.mock(base_url=BASE) as router:
            router.post("/projects/123/pipelines/9/cancel").mock(
                return_value=httpx.Response(204)
            )
            client = _make_client()
            result = await client.cancel_pipeline(123, 9)
            assert result is None

    @pytest.mark.asyncio
    async def test_create_merge_request(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.post("/projects/123/merge_requests").mock(
                return_value=httpx.Response(201, json={"iid": 1, "title": "Test MR"})
            )
            client = _make_client()
            result = await client.create_merge_request(
                123,
                {
                    "source_branch": "feature",
                    "target_branch": "main",
                    "title": "Test MR",
                },
            )
            assert result["iid"] == 1
            assert json.loads(route.calls.last.request.content)["source_branch"] == "feature"

    @pytest.mark.asyncio
    async def test_get_job_log_is_raw_text(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/jobs/456/trace").mock(
                return_value=httpx.Response(
                    200, text="line1\nline2\nline3", headers={"content-type": "text/plain"}
                )
            )
            client = _make_client()
            result = await client.get_job_log(123, 456)
            assert result == "line1\nline2\nline3"

    @pytest.mark.asyncio
    async def test_get_job_log_empty(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/jobs/456/trace").mock(return_value=httpx.Response(200))
            client = _make_client()
            assert await client.get_job_log(123, 456) == ""

    @pytest.mark.asyncio
    async def test_path_encoding(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/my-group%2Fmy-project").mock(
                return_value=httpx.Response(200, json={"id": 1})
            )
            client = _make_client()
            await client.get_project("my-group/my-project")
            assert route.called

    @pytest.mark.asyncio
    async def test_file_path_encoding(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/1/repository/files/src%2Fapp.py").mock(
                return_value=httpx.Response(200, json={"file_path": "src/app.py"})
            )
            client = _make_client()
            await client.get_file(1, "src/app.py", "main")
            assert route.called
            assert route.calls.last.request.url.params["ref"] == "main"


class TestPagination:
    @pytest.mark.asyncio
    async def test_follows_next_page_header(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/1/merge_requests/5/discussions").mock(
                side_effect=[
                    httpx.Response(200, json=[{"id": "a"}], headers={"x-next-page": "2"}),
                    httpx.Response(200, json=[{"id": "b"}], headers={"x-next-page": ""}),
                ]
            )
            client = _make_client()
            result = await client.list_mr_discussions(1, 5)
            assert [d["id"] for d in result] == ["a", "b"]
            assert route.call_count == 2
            pages = [call.request.url.params["page"] for call in route.calls]
            assert pages == ["1", "2"]
            assert route.calls.last.request.url.params["per_page"] == "100"

    @pytest.mark.asyncio
    async def test_stops_without_header(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/1/merge_requests/5/discussions").mock(
                return_value=httpx.Response(200, json=[{"id": "a"}])
            )
            client = _make_client()
            result = await client.list_mr_discussions(1, 5)
            assert len(result) == 1
            assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_page_cap(self):
        async with respx.mock(base_url=BASE) as router:

            def _page(request: httpx.Request) -> httpx.Response:
                page = int(request.url.params["page"])
                return httpx.Response(
                    200, json=[{"id": str(page)}], headers={"x-next-page": str(page + 1)}
                )

            route = router.get("/projects/1/merge_requests/5/discussions").mock(side_effect=_page)
            client = _make_client()
            result = await client.list_mr_discussions(1, 5)
            assert route.call_count == MAX_PAGES
            assert len(result) == MAX_PAGES
