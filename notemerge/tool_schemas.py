"""The function-calling definitions agents use to discover the merge tools.

``tool_schemas.json`` ships inside the package and is checked on every load,
so a broken edit surfaces as ``TOOL_SCHEMA_ERROR`` instead of a silent
mismatch between what agents are told and what the routes accept.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

TOOLS_JSON_PATH = Path(__file__).with_name("tool_schemas.json")


class ToolSchemaError(RuntimeError):
    """Raised when tool schema definitions are invalid or unavailable."""


def load_tool_definitions(path: Path | None = None) -> list[dict[str, Any]]:
    tool_path = path or TOOLS_JSON_PATH
    try:
        data = json.loads(tool_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ToolSchemaError(f"Tool definition file not found: {tool_path}") from exc
    except OSError as exc:
        raise ToolSchemaError(f"Unable to read tool definitions: {tool_path}") from exc
    except json.JSONDecodeError as exc:
        raise ToolSchemaError(f"Tool definitions JSON is invalid: {exc}") from exc

    if not isinstance(data, list):
        raise ToolSchemaError("Tool definitions must be a JSON array.")
    validate_tool_definitions(data)
    return data


def _function_name(index: int, tool: Any) -> str:
    if not isinstance(tool, dict) or tool.get("type") != "function":
        raise ToolSchemaError(f"Tool at index {index} must be a function object.")
    function = tool.get("function")
    if not isinstance(function, dict):
        raise ToolSchemaError(f"Tool at index {index} is missing 'function' object.")
    name = function.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ToolSchemaError(f"Tool at index {index} must define a non-empty name.")
    return name


def _check_parameters(name: str, parameters: Any) -> None:
    if not isinstance(parameters, dict):
        raise ToolSchemaError(f"Tool '{name}' must include parameters object.")
    declared = set(parameters.get("properties", {}))
    undeclared = sorted(set(parameters.get("required", [])) - declared)
    if undeclared:
        raise ToolSchemaError(
            f"Tool '{name}' requires undeclared parameters: {undeclared}"
        )


def validate_tool_definitions(tools: list[dict[str, Any]]) -> None:
    """Reject malformed entries, duplicate names, and unknown required fields."""
    names: set[str] = set()
    for index, tool in enumerate(tools):
        name = _function_name(index, tool)
        if name in names:
            raise ToolSchemaError(f"Tool '{name}' is defined more than once.")
        names.add(name)
        _check_parameters(name, tool["function"].get("parameters"))
