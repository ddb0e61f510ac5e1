"""MCP server for reviewing GitLab merge requests without duplicating feedback."""

import asyncio
import logging
import os
import sys

import click
from dotenv import load_dotenv

from .config import LOG_LEVELS

LOG_FORMAT = "%(asctime)s [gitlab-review-mcp] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Send all logging to stderr; stdout carries the MCP protocol stream."""
    name = (level or "info").lower()
    if name == "warn":
        name = "warning"
    logging.basicConfig(
        level=getattr(logging, name.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="MCP transport type",
)
@click.option("--port", default=8000, help="Port for HTTP transports")
@click.option("--host", default="127.0.0.1", help="Host for HTTP transports")
@click.option("--gitlab-url", envvar="GITLAB_URL", help="GitLab instance URL")
@click.option("--gitlab-token", envvar="GITLAB_TOKEN", help="GitLab access token")
@click.option(
    "--token-header",
    envvar="GITLAB_TOKEN_HEADER",
    help="Authorization (default), PRIVATE-TOKEN or JOB-TOKEN",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (overrides GITLAB_MCP_LOG_LEVEL)",
)
@click.option("--read-only", is_flag=True, help="Disable write operations")
def main(
    transport: str,
    port: int,
    host: str,
    gitlab_url: str | None,
    gitlab_token: str | None,
    token_header: str | None,
    log_level: str | None,
    read_only: bool,
) -> None:
    """Run the GitLab review MCP server."""
    load_dotenv()

    if gitlab_url:
        os.environ["GITLAB_URL"] = gitlab_url
    if gitlab_token:
        os.environ["GITLAB_TOKEN"] = gitlab_token
    if token_header:
        os.environ["GITLAB_TOKEN_HEADER"] = token_header
    if log_level:
        os.environ["GITLAB_MCP_LOG_LEVEL"] = log_level
    if read_only:
        os.environ["GITLAB_READ_ONLY"] = "true"

    from .config import GitLabConfig

    configure_logging(GitLabConfig.from_env().log_level)

    from .servers.gitlab import mcp

    run_kwargs: dict = {"transport": transport}
    if transport != "stdio":
        run_kwargs["host"] = host
        run_kwargs["port"] = port

    asyncio.run(mcp.run_async(show_banner=False, **run_kwargs))


@click.command()
@click.option("--project-id", envvar="CI_PROJECT_ID", help="Project ID or path")
@click.option("--mr-iid", envvar="CI_MERGE_REQUEST_IID", type=int, help="Merge request IID")
def context(project_id: str | None, mr_iid: int | None) -> None:
    """Print shell exports summarizing existing MR feedback.

    Intended for ``eval "$(gitlab-review-mcp-context)"`` in a CI job. Always
    exits 0 so a review job never fails on context gathering.
    """
    load_dotenv()

    from .config import GitLabConfig
    from .review.summary import UNAVAILABLE, MrContextSummary, build_mr_context, render_exports

    try:
        config = GitLabConfig.from_env()
    except ValueError as e:
        configure_logging()
        logging.getLogger(__name__).warning("Invalid configuration: %s", e)
        click.echo(render_exports(MrContextSummary(UNAVAILABLE, [])), nl=False)
        return
    configure_logging(config.log_level)
    logger = logging.getLogger(__name__)

    if not project_id or mr_iid is None:
        logger.warning("CI_PROJECT_ID or CI_MERGE_REQUEST_IID not set; skipping MR context")
        click.echo(render_exports(MrContextSummary(UNAVAILABLE, [])), nl=False)
        return

    async def _run() -> MrContextSummary:
        from .client import GitLabClient

        client = GitLabClient(config)
        try:
            return await build_mr_context(
                client, project_id, mr_iid, config.max_discussions, config.max_preview
            )
        finally:
            await client.close()

    try:
        summary = asyncio.run(_run())
    except ValueError as e:
        logger.warning("Cannot build MR context: %s", e)
        summary = MrContextSummary(UNAVAILABLE, [])
    click.echo(render_exports(summary), nl=False)


if __name__ == "__main__":
    main()
