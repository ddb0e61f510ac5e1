"""GitLab review MCP server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

from .review.ignore import parse_ignored_discussions


class TokenHeader(str, Enum):
    """How the access token is attached to outbound requests."""

    AUTHORIZATION = "authorization"
    PRIVATE_TOKEN = "private-token"
    JOB_TOKEN = "job-token"

    @classmethod
    def parse(cls, value: str | None) -> TokenHeader:
        key = (value or "").strip().lower()
        if key in ("", "authorization", "bearer"):
            return cls.AUTHORIZATION
        try:
            return cls(key)
        except ValueError:
            msg = (
                f"Unsupported GITLAB_TOKEN_HEADER '{value}'. "
                "Use one of: Authorization, PRIVATE-TOKEN, JOB-TOKEN"
            )
            raise ValueError(msg) from None


LOG_LEVELS = ("error", "warn", "warning", "info", "debug")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class GitLabConfig:
    """Configuration for the GitLab review MCP server, loaded from environment variables.

    Built once at startup and treated as immutable afterwards.
    """

    url: str = ""
    token: str = ""
    token_header: TokenHeader = TokenHeader.AUTHORIZATION
    read_only: bool = False
    timeout: int = 30
    ssl_verify: bool = True
    log_level: str = "info"
    max_discussions: int = 20
    max_preview: int = 220
    ignored_discussions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_env(cls) -> GitLabConfig:
        url = (
            os.getenv("GITLAB_API_URL")
            or os.getenv("CI_API_V4_URL")
            or os.getenv("GITLAB_URL", "")
        ).rstrip("/")
        token = (
            os.getenv("GITLAB_TOKEN")
            or os.getenv("GITLAB_PERSONAL_ACCESS_TOKEN")
            or os.getenv("GITLAB_PAT")
            or os.getenv("GITLAB_API_TOKEN")
            or os.getenv("GITLAB_REVIEW_PAT", "")
        )
        read_only = os.getenv("GITLAB_READ_ONLY", "false").lower() in (
            "true",
            "1",
            "yes",
        )
        timeout = _env_int("GITLAB_TIMEOUT", 30)
        ssl_verify = os.getenv("GITLAB_SSL_VERIFY", "true").lower() not in (
            "false",
            "0",
            "no",
        )
        log_level = (
            os.getenv("GITLAB_MCP_LOG_LEVEL")
            or os.getenv("GITLAB_MCP_LOG")
            or os.getenv("MCP_LOG_LEVEL")
            or "info"
        ).lower()
        if log_level not in LOG_LEVELS:
            log_level = "info"

        return cls(
            url=url,
            token=token,
            token_header=TokenHeader.parse(os.getenv("GITLAB_TOKEN_HEADER")),
            read_only=read_only,
            timeout=timeout,
            ssl_verify=ssl_verify,
            log_level=log_level,
            max_discussions=_env_int("MR_CONTEXT_MAX_DISCUSSIONS", 20),
            max_preview=_env_int("MR_CONTEXT_MAX_PREVIEW", 220),
            ignored_discussions=parse_ignored_discussions(os.getenv("IGNORED_DISCUSSIONS")),
        )

    @property
    def api_url(self) -> str:
        if self.url.endswith("/api/v4"):
            return self.url
        return f"{self.url}/api/v4"

    def auth_headers(self) -> dict[str, str]:
        if self.token_header is TokenHeader.JOB_TOKEN:
            return {"JOB-TOKEN": self.token}
        if self.token_header is TokenHeader.PRIVATE_TOKEN:
            return {"PRIVATE-TOKEN": self.token}
        return {"Authorization": f"Bearer {self.token}"}

    def validate(self) -> None:
        if not self.url:
            msg = "GITLAB_URL (or GITLAB_API_URL) environment variable is required"
            raise ValueError(msg)
        if not self.token:
            msg = (
                "GitLab token is required. Set one of: GITLAB_TOKEN, "
                "GITLAB_PERSONAL_ACCESS_TOKEN, GITLAB_PAT, GITLAB_API_TOKEN, "
                "or GITLAB_REVIEW_PAT"
            )
            raise ValueError(msg)
