"""Unified diff helpers for anchoring inline MR comments."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# @@ -old_start[,old_len] +new_start[,new_len] @@
_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(?P<new_start>\d+)(?:,\d+)? @@")


def find_first_added_line(diff_text: str | None) -> int | None:
    """Return the new-file line number of the first added line in *diff_text*.

    Context lines advance the new-file counter, removed lines do not. Lines
    before the first valid hunk header are ignored. A malformed ``@@`` header
    is skipped without resetting the counter, so later lines keep counting
    from the previous hunk.
    """
    if not diff_text:
        return None

    new_line: int | None = None
    for raw in diff_text.splitlines():
        if raw.startswith("@@"):
            m = _HUNK_RE.match(raw)
            if m:
                new_line = int(m.group("new_start")) - 1
            else:
                logger.warning(
                    "Malformed hunk header %r; keeping line counter at %s", raw[:80], new_line
                )
            continue

        if new_line is None:
            continue
        if raw.startswith(("--- ", "+++ ")):
            continue

        if raw.startswith("+"):
            return new_line + 1
        if raw.startswith(" "):
            new_line += 1
        # "-" lines and "\ No newline at end of file" leave the counter alone

    return None
