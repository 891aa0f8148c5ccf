"""Operation helpers shared by the markdown MCP endpoints."""

from __future__ import annotations

import difflib
import re
from typing import Any

from notemerge.config import MergeLimits
from notemerge.errors import McpError
from notemerge.markdown_editor import (
    add_section,
    add_section_path,
    add_task,
    insert_task,
    remove_section,
    remove_task,
    remove_task_match,
    toggle_task,
    update_task_text,
)
from notemerge.markdown_nodes import Forest
from notemerge.mcp_constants import STRUCTURE_OPERATIONS
from notemerge.mcp_payload import (
    _optional_bool,
    _optional_string,
    _reject_unknown_fields,
    _require_string,
)

_OPERATION_FIELDS = {
    "add_task": {"heading", "text", "checked"},
    "insert_task": {"heading", "text", "checked", "parent", "before", "after"},
    "remove_task": {"heading", "text"},
    "remove_task_match": {"heading", "pattern", "regex"},
    "toggle_task": {"heading", "text", "checked"},
    "update_task_text": {"heading", "oldText", "newText"},
    "add_section": {"heading", "content", "forceReplace"},
    "add_section_path": {"headings", "content", "forceReplace", "requireExisting"},
    "remove_section": {"heading"},
}


def _validate_structure_operation(operation: Any) -> str:
    if not isinstance(operation, dict):
        raise McpError(
            "INVALID_TYPE",
            "Operation must be an object.",
            {"operation": str(operation), "type": type(operation).__name__},
        )

    op_type = _require_string(operation, "type", "MISSING_OPERATION_TYPE")
    if op_type not in STRUCTURE_OPERATIONS:
        raise McpError(
            "INVALID_OPERATION",
            "Unsupported operation type.",
            {"type": op_type, "allowed": sorted(STRUCTURE_OPERATIONS)},
        )
    _reject_unknown_fields(operation, _OPERATION_FIELDS[op_type] | {"type"})
    return op_type


def _apply_structure_operation(
    forest: Forest, operation: dict[str, Any], limits: MergeLimits
) -> tuple[bool, str]:
    """Apply one structural edit in place; return (changed, activity summary)."""
    op_type = _validate_structure_operation(operation)

    if op_type == "add_section_path":
        headings = operation.get("headings")
        if not isinstance(headings, list) or not headings or not all(
            isinstance(text, str) for text in headings
        ):
            raise McpError(
                "INVALID_TYPE",
                "headings must be a non-empty list of strings.",
                {"headings": str(headings)},
            )
        content = _require_string(operation, "content", "MISSING_CONTENT")
        add_section_path(
            forest,
            headings,
            content,
            force_replace=_optional_bool(operation, "forceReplace", False),
            require_existing=_optional_bool(operation, "requireExisting", False),
            limits=limits,
        )
        return True, f"{op_type} ({' > '.join(headings)})"

    heading = _require_string(operation, "heading", "MISSING_HEADING")
    summary = f"{op_type} ({heading})"

    if op_type == "add_task":
        text = _require_string(operation, "text", "MISSING_TEXT")
        checked = _optional_bool(operation, "checked", False)
        return add_task(forest, heading, text, checked), summary

    if op_type == "insert_task":
        text = _require_string(operation, "text", "MISSING_TEXT")
        checked = operation.get("checked")
        if checked is not None and not isinstance(checked, bool):
            raise McpError(
                "INVALID_TYPE",
                "checked must be a boolean.",
                {"checked": str(checked)},
            )
        changed = insert_task(
            forest,
            heading,
            text,
            parent=_optional_string(operation, "parent"),
            checked=checked,
            before=_optional_string(operation, "before"),
            after=_optional_string(operation, "after"),
        )
        return changed, summary

    if op_type == "remove_task":
        text = _require_string(operation, "text", "MISSING_TEXT")
        if not remove_task(forest, heading, text):
            raise McpError(
                "ITEM_NOT_FOUND",
                "Checklist item not found.",
                {"heading": heading, "text": text},
            )
        return True, summary

    if op_type == "remove_task_match":
        raw_pattern = _require_string(operation, "pattern", "MISSING_PATTERN")
        pattern: str | re.Pattern[str] = raw_pattern
        if _optional_bool(operation, "regex", False):
            try:
                pattern = re.compile(raw_pattern)
            except re.error as exc:
                raise McpError(
                    "INVALID_PATTERN",
                    "pattern is not a valid regular expression.",
                    {"pattern": raw_pattern},
                ) from exc
        return remove_task_match(forest, heading, pattern) > 0, summary

    if op_type == "toggle_task":
        text = _require_string(operation, "text", "MISSING_TEXT")
        checked = _optional_bool(operation, "checked", True)
        toggle_task(forest, heading, text, checked)
        return True, summary

    if op_type == "update_task_text":
        old_text = _require_string(operation, "oldText", "MISSING_TEXT")
        new_text = _require_string(operation, "newText", "MISSING_TEXT")
        found = update_task_text(forest, heading, old_text, new_text)
        # A missing item is filed under Unsorted, which is a change.
        return not found or old_text != new_text, summary

    if op_type == "add_section":
        content = _require_string(operation, "content", "MISSING_CONTENT")
        add_section(
            forest,
            heading,
            content,
            force_replace=_optional_bool(operation, "forceReplace", False),
            limits=limits,
        )
        return True, summary

    if not remove_section(forest, heading):
        raise McpError(
            "HEADING_NOT_FOUND",
            "Heading not found.",
            {"heading": heading},
        )
    return True, summary


# Upper bounds on changed lines for the "low" and "medium" preview risk.
_RISK_THRESHOLDS = (("low", 5), ("medium", 20))


def _build_unified_diff(
    before: str, after: str, relative_path: str
) -> tuple[str, int, int]:
    """Diff two renderings of a note; return (diff text, lines added, lines removed)."""
    diff_lines = list(
        difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            fromfile=relative_path,
            tofile=relative_path,
            lineterm="",
        )
    )
    # The first two lines are the ---/+++ file headers.
    body = diff_lines[2:]
    added = sum(1 for line in body if line.startswith("+"))
    removed = sum(1 for line in body if line.startswith("-"))
    return "\n".join(diff_lines), added, removed


def _format_preview_summary(summary: str, added: int, removed: int) -> str:
    if not (added or removed):
        return summary
    return f"{summary}: +{added} -{removed} lines"


def _assess_risk_level(added: int, removed: int) -> str:
    for level, ceiling in _RISK_THRESHOLDS:
        if added + removed <= ceiling:
            return level
    return "high"
