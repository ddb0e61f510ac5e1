"""Tool-call logging middleware.

Logs every tool request and its outcome to the ``gitlab_review_mcp`` logger
(stderr; stdout carries the JSON-RPC stream). Free-text arguments are
redacted so review bodies and tokens never reach the log.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastmcp.server.middleware.middleware import CallNext, Middleware, MiddlewareContext

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = frozenset({"body", "content", "description", "token"})
PREVIEW_LENGTH = 120


def redact_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return f"[redacted {len(value)} chars]"
    if isinstance(value, (list, tuple)):
        return f"[redacted array({len(value)})]"
    if isinstance(value, dict):
        return "[redacted object]"
    return "[redacted]"


def sanitize_args(arguments: Any) -> Any:
    if not isinstance(arguments, dict):
        return arguments
    return {
        key: redact_value(value) if key in SENSITIVE_KEYS else value
        for key, value in arguments.items()
    }


def summarize_result(result: Any) -> dict[str, Any]:
    """Describe a tool result by content length and a short preview."""
    content = getattr(result, "content", None)
    if not isinstance(content, list):
        return {"type": type(result).__name__}
    items = []
    for index, item in enumerate(content):
        text = getattr(item, "text", None)
        summary: dict[str, Any] = {"index": index, "type": getattr(item, "type", None)}
        if isinstance(text, str):
            summary["length"] = len(text)
            summary["preview"] = text[:PREVIEW_LENGTH]
        items.append(summary)
    return {"content": items}


class ToolCallLoggingMiddleware(Middleware):
    async def on_call_tool(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        tool_name = getattr(context.message, "name", "unknown")
        arguments = getattr(context.message, "arguments", None)
        logger.info("Tool call requested: %s %s", tool_name, sanitize_args(arguments))

        start = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception as e:
            logger.error("Tool call failed: %s (%s)", tool_name, str(e)[:PREVIEW_LENGTH])
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("Tool call completed: %s in %.0fms", tool_name, duration_ms)
        logger.debug("Tool result %s: %s", tool_name, summarize_result(result))
        return result
