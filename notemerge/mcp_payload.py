"""Payload validation helpers for MCP endpoints."""

from __future__ import annotations

from typing import Any

from notemerge.errors import McpError


def _ensure_payload_dict(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise McpError(
            "INVALID_TYPE",
            "Payload must be an object.",
            {"type": type(payload).__name__},
        )
    return payload


def _reject_unknown_fields(payload: dict[str, Any], allowed_fields: set[str]) -> None:
    unknown_fields = sorted(set(payload) - allowed_fields)
    if unknown_fields:
        raise McpError(
            "UNKNOWN_FIELD",
            "Unknown fields are not allowed.",
            {"fields": unknown_fields},
        )


def _require_string(payload: dict[str, Any], field: str, code: str) -> str:
    if field not in payload:
        raise McpError(
            code,
            f"{field} is required.",
            {"fields": [field]},
        )
    value = payload[field]
    if not isinstance(value, str):
        raise McpError(
            "INVALID_TYPE",
            f"{field} must be a string.",
            {field: str(value), "type": type(value).__name__},
        )
    return value


def _optional_string(payload: dict[str, Any], field: str) -> str | None:
    value = payload.get(field)
    if value is not None and not isinstance(value, str):
        raise McpError(
            "INVALID_TYPE",
            f"{field} must be a string.",
            {field: str(value), "type": type(value).__name__},
        )
    return value


def _optional_bool(payload: dict[str, Any], field: str, default: bool) -> bool:
    value = payload.get(field, default)
    if not isinstance(value, bool):
        raise McpError(
            "INVALID_TYPE",
            f"{field} must be a boolean.",
            {field: str(value), "type": type(value).__name__},
        )
    return value
