"""Shared constants for MCP endpoints."""

from __future__ import annotations

ALLOWED_MARKDOWN_EXTENSIONS = {".md", ".markdown"}
ACTIVITY_LOG_FILENAME = "activity.log"
STRUCTURE_OPERATIONS = {
    "add_task",
    "insert_task",
    "remove_task",
    "remove_task_match",
    "toggle_task",
    "update_task_text",
    "add_section",
    "add_section_path",
    "remove_section",
}
DEFAULT_ACTIVITY_LIMIT = 50
