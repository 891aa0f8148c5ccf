"""``GET /tools``: the definitions agents load before calling the tool routes."""

from __future__ import annotations

from typing import Any

from notemerge.errors import McpError, success_response
from notemerge.log import get_logger
from notemerge.mcp_router import mcp_router
from notemerge.tool_schemas import ToolSchemaError, load_tool_definitions

logger = get_logger(__name__)


@mcp_router.get("/tools")
def list_tool_schemas() -> dict[str, Any]:
    try:
        return success_response({"tools": load_tool_definitions()})
    except ToolSchemaError as exc:
        logger.error("tool definitions unavailable: %s", exc)
        raise McpError(
            "TOOL_SCHEMA_ERROR",
            "Tool definitions could not be loaded.",
            {"error": str(exc)},
        ) from exc
