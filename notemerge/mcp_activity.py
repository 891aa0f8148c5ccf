"""Append-only audit trail of markdown mutations.

Each committed merge or edit appends one JSON line to ``activity.log`` in the
user's library root, so agents can see who changed which note and when.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import Request

from notemerge.errors import McpError, success_response
from notemerge.mcp_constants import ACTIVITY_LOG_FILENAME, DEFAULT_ACTIVITY_LIMIT
from notemerge.mcp_payload import (
    _ensure_payload_dict,
    _optional_string,
    _reject_unknown_fields,
)
from notemerge.mcp_router import mcp_router
from notemerge.user_scope import get_request_library_root


@dataclass(frozen=True)
class ActivityEntry:
    operation: str
    path: str
    summary: str
    commit_sha: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, str]:
        return {
            "timestamp": self.timestamp,
            "operation": self.operation,
            "path": self.path,
            "summary": self.summary,
            "commitSha": self.commit_sha,
        }


def _build_activity_entry(
    operation: str, relative_path: Path, summary: str, commit_sha: str
) -> ActivityEntry:
    return ActivityEntry(
        operation=operation,
        path=relative_path.as_posix(),
        summary=summary,
        commit_sha=commit_sha,
    )


def _append_activity_log(library_root: Path, entry: ActivityEntry) -> None:
    line = json.dumps(entry.to_dict(), sort_keys=True, separators=(",", ":"))
    with (library_root / ACTIVITY_LOG_FILENAME).open("a", encoding="utf-8") as log:
        log.write(line + "\n")
        log.flush()
        os.fsync(log.fileno())


def _iter_activity_entries(library_root: Path) -> Iterator[dict[str, Any]]:
    """Yield logged entries oldest first, skipping lines that are not JSON."""
    log_path = library_root / ACTIVITY_LOG_FILENAME
    if not log_path.exists():
        return
    with log_path.open(encoding="utf-8") as log:
        for line in log:
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                yield entry


def _entry_time(entry: dict[str, Any]) -> datetime | None:
    try:
        return datetime.fromisoformat(entry["timestamp"])
    except (KeyError, TypeError, ValueError):
        return None


def _parse_since(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        since = datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise McpError(
            "INVALID_DATE",
            "since must be ISO date-time.",
            {"since": value},
        ) from exc
    # Naive bounds are read as UTC, matching the logged timestamps.
    return since if since.tzinfo else since.replace(tzinfo=timezone.utc)


@mcp_router.post("/tool:read_activity_log")
def read_activity_log(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Return the newest activity entries, optionally filtered by time, path or tool."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"limit", "since", "path", "operation"})

    limit = payload.get("limit", DEFAULT_ACTIVITY_LIMIT)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise McpError(
            "INVALID_TYPE",
            "limit must be a positive integer.",
            {"limit": str(limit)},
        )
    since = _parse_since(payload.get("since"))
    path = _optional_string(payload, "path")
    operation = _optional_string(payload, "operation")

    entries = []
    for entry in _iter_activity_entries(get_request_library_root(request)):
        if path is not None and entry.get("path") != path:
            continue
        if operation is not None and entry.get("operation") != operation:
            continue
        entry_time = _entry_time(entry)
        if since is not None and entry_time is not None and entry_time < since:
            continue
        entries.append(entry)
    return success_response({"entries": entries[-limit:]})
