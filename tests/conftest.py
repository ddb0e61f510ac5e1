"""Shared test fixtures for gitlab-review-mcp."""

from __future__ import annotations

import pytest
import respx

from gitlab_review_mcp.client import GitLabClient
from gitlab_review_mcp.config import GitLabConfig

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"


@pytest.fixture
def config() -> GitLabConfig:
    return GitLabConfig(url=TEST_URL, token=TEST_TOKEN)


@pytest.fixture
async def client(config: GitLabConfig):
    c = GitLabClient(config)
    yield c
    await c.close()


@pytest.fixture
def mock_api() -> respx.MockRouter:
    with respx.mock(base_url=f"{TEST_URL}/api/v4", assert_all_called=False) as router:
        yield router
