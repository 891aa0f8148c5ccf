"""MCP handler registration."""

# ruff: noqa: F401

from __future__ import annotations

from fastapi import FastAPI

from notemerge.mcp_constants import ACTIVITY_LOG_FILENAME
from notemerge.mcp_router import mcp_router

# Import modules to register routes with the shared router.
from notemerge import mcp_activity, mcp_markdown, mcp_tools_endpoint

# Re-export endpoints for tests and direct imports.
from notemerge.mcp_activity import read_activity_log
from notemerge.mcp_git import _read_head_state, _resolve_git_head
from notemerge.mcp_markdown import (
    dedupe_markdown,
    edit_markdown_structure,
    merge_markdown,
    read_markdown,
    read_markdown_structure,
)
from notemerge.mcp_tools_endpoint import list_tool_schemas


def register_mcp_handlers(app: FastAPI) -> None:
    """Attach MCP routes to the FastAPI application."""
    app.include_router(mcp_router)
