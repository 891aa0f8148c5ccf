"""Markdown-related MCP endpoints."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import Request

from notemerge.config import MergeLimits
from notemerge.errors import McpError, success_response
from notemerge.file_lock import markdown_file_lock
from notemerge.log import get_logger
from notemerge.markdown_editor import clean_duplicates
from notemerge.markdown_lines import split_lines
from notemerge.markdown_merge import MergeOptions, merge_markdown_trees
from notemerge.markdown_nodes import Forest, forest_to_dicts
from notemerge.markdown_parser import parse_markdown_structure
from notemerge.markdown_sections import (
    append_anchor_block,
    find_anchor_block,
    find_heading_section,
    replace_span,
    span_text,
    text_lines,
)
from notemerge.markdown_serializer import serialize_markdown_tree
from notemerge.mcp_activity import _append_activity_log, _build_activity_entry
from notemerge.mcp_git import (
    _commit_markdown_change,
    _ensure_git_repo,
    _read_head_state,
    _resolve_git_head,
    _restore_git_head,
    _rollback_markdown_change,
)
from notemerge.mcp_operations import (
    _apply_structure_operation,
    _assess_risk_level,
    _build_unified_diff,
    _format_preview_summary,
    _validate_structure_operation,
)
from notemerge.mcp_payload import (
    _ensure_payload_dict,
    _optional_bool,
    _optional_string,
    _reject_unknown_fields,
    _require_string,
)
from notemerge.mcp_router import mcp_router
from notemerge.mcp_utils import _atomic_write, _read_markdown_text
from notemerge.paths import validate_markdown_path
from notemerge.user_scope import (
    get_request_library_root,
    get_request_limits,
    get_request_lock_timeout,
)

logger = get_logger(__name__)

# Takes the current file text and returns (updated text, activity summary).
Transform = Callable[[str], tuple[str, str]]


@mcp_router.post("/tool:read_markdown")
def read_markdown(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Read markdown content and metadata from the library root."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path"})

    raw_path = _require_path(payload)
    library_root = get_request_library_root(request)
    resolved_path = validate_markdown_path(library_root, raw_path)
    content = _read_markdown_text(resolved_path, raw_path)

    metadata = _build_metadata(library_root, resolved_path)
    return success_response({"content": content, "metadata": metadata})


@mcp_router.post("/tool:read_markdown_structure")
def read_markdown_structure(
    payload: dict[str, Any], request: Request
) -> dict[str, Any]:
    """Return the parsed heading/list/item tree of a markdown file or section."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path", "target", "anchor"})

    raw_path = _require_path(payload)
    target = _optional_string(payload, "target")
    anchor = _optional_string(payload, "anchor")
    _reject_target_and_anchor(target, anchor)

    library_root = get_request_library_root(request)
    resolved_path = validate_markdown_path(library_root, raw_path)
    content = _read_markdown_text(resolved_path, raw_path)

    lines = split_lines(content)
    if target is not None:
        content = span_text(lines, find_heading_section(lines, target))
    elif anchor is not None:
        span = find_anchor_block(lines, anchor)
        if span is None:
            raise McpError(
                "ANCHOR_NOT_FOUND",
                "Anchor block not found.",
                {"anchor": anchor},
            )
        content = span_text(lines, span)

    forest = parse_markdown_structure(content, get_request_limits(request))
    return success_response({"nodes": forest_to_dicts(forest)})


@mcp_router.post("/tool:merge_markdown")
def merge_markdown(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Structurally merge markdown content into a file, a section, or an anchor block."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(
        payload,
        {"path", "content", "replace", "dedupe", "target", "anchor", "create", "dryRun"},
    )

    raw_path = _require_path(payload)
    content = _require_string(payload, "content", "MISSING_CONTENT")
    target = _optional_string(payload, "target")
    anchor = _optional_string(payload, "anchor")
    _reject_target_and_anchor(target, anchor)
    replace = _optional_bool(payload, "replace", anchor is not None)
    dedupe = _optional_bool(payload, "dedupe", False)
    create = _optional_bool(payload, "create", False)
    dry_run = _optional_bool(payload, "dryRun", False)

    options = MergeOptions(
        replace=replace, dedupe=dedupe, limits=get_request_limits(request)
    )
    mode = "replace" if replace else "patch"
    scope = target or (f"anchor {anchor}" if anchor is not None else None)
    summary = f"merge {mode} ({scope})" if scope else f"merge {mode}"

    def transform(current: str) -> tuple[str, str]:
        if target is not None:
            updated = _merge_heading_section(current, content, target, options)
        elif anchor is not None:
            updated = _merge_anchor_block(current, content, anchor, options)
        else:
            updated = _merge_document(current, content, options)
        return updated, summary

    return _mutate_markdown(
        request,
        raw_path,
        "merge_markdown",
        transform,
        dry_run=dry_run,
        allow_create=create,
    )


@mcp_router.post("/tool:dedupe_markdown")
def dedupe_markdown(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Collapse duplicated headings and checklist items in a markdown file."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path", "dryRun"})

    raw_path = _require_path(payload)
    dry_run = _optional_bool(payload, "dryRun", False)
    limits = get_request_limits(request)

    def transform(current: str) -> tuple[str, str]:
        forest = clean_duplicates(parse_markdown_structure(current, limits), limits)
        return _render_document(current, forest, limits), "dedupe"

    return _mutate_markdown(
        request, raw_path, "dedupe_markdown", transform, dry_run=dry_run
    )


@mcp_router.post("/tool:edit_markdown_structure")
def edit_markdown_structure(
    payload: dict[str, Any], request: Request
) -> dict[str, Any]:
    """Apply a checklist or section edit to the parsed structure of a file."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"path", "operation", "dryRun"})

    raw_path = _require_path(payload)
    if "operation" not in payload:
        raise McpError(
            "MISSING_OPERATION",
            "Operation is required.",
            {"fields": ["operation"]},
        )
    operation = payload["operation"]
    _validate_structure_operation(operation)
    dry_run = _optional_bool(payload, "dryRun", False)
    limits = get_request_limits(request)

    def transform(current: str) -> tuple[str, str]:
        forest = parse_markdown_structure(current, limits)
        changed, summary = _apply_structure_operation(forest, operation, limits)
        if not changed:
            return current, summary
        return _render_document(current, forest, limits), summary

    return _mutate_markdown(
        request, raw_path, "edit_markdown_structure", transform, dry_run=dry_run
    )


def _merge_document(current: str, content: str, options: MergeOptions) -> str:
    base = parse_markdown_structure(current, options.limits)
    update = parse_markdown_structure(content, options.limits)
    merged = merge_markdown_trees(base, update, options)
    return _render_document(current, merged, options.limits)


def _merge_heading_section(
    current: str, content: str, target: str, options: MergeOptions
) -> str:
    lines = split_lines(current)
    span = find_heading_section(lines, target)
    update_text = content
    first_line = next((line for line in split_lines(content) if line.strip()), "")
    if first_line.strip() != target.strip():
        update_text = f"{target.strip()}\n{content}"

    base = parse_markdown_structure(span_text(lines, span), options.limits)
    update = parse_markdown_structure(update_text, options.limits)
    merged = merge_markdown_trees(base, update, options)
    merged_lines = text_lines(serialize_markdown_tree(merged, options.limits))
    return "\n".join(replace_span(lines, span, merged_lines))


def _merge_anchor_block(
    current: str, content: str, anchor: str, options: MergeOptions
) -> str:
    lines = split_lines(current)
    span = find_anchor_block(lines, anchor)
    update = parse_markdown_structure(content, options.limits)
    if span is None:
        body = text_lines(serialize_markdown_tree(update, options.limits))
        return "\n".join(append_anchor_block(lines, anchor, body))

    base = parse_markdown_structure(span_text(lines, span), options.limits)
    merged = merge_markdown_trees(base, update, options)
    merged_lines = text_lines(serialize_markdown_tree(merged, options.limits))
    return "\n".join(replace_span(lines, span, merged_lines))


def _render_document(current: str, forest: Forest, limits: MergeLimits) -> str:
    rendered = serialize_markdown_tree(forest, limits)
    if rendered and (not current or current.endswith("\n")):
        rendered += "\n"
    return rendered


def _mutate_markdown(
    request: Request,
    raw_path: str,
    operation: str,
    transform: Transform,
    *,
    dry_run: bool,
    allow_create: bool = False,
) -> dict[str, Any]:
    """Run a read-transform-write cycle under the file lock and commit it."""
    library_root = get_request_library_root(request)
    resolved_path = validate_markdown_path(
        library_root, raw_path, must_exist=not allow_create
    )
    relative_path = resolved_path.relative_to(library_root)

    with markdown_file_lock(
        library_root, relative_path, get_request_lock_timeout(request)
    ):
        original_content: str | None = None
        if resolved_path.exists():
            original_content = _read_markdown_text(resolved_path, raw_path)
        current_content = original_content or ""
        updated_content, summary = transform(current_content)

        if dry_run:
            diff, added, removed = _build_unified_diff(
                current_content, updated_content, relative_path.as_posix()
            )
            return success_response(
                {
                    "diff": diff,
                    "summary": _format_preview_summary(summary, added, removed),
                    "riskLevel": _assess_risk_level(added, removed),
                    "content": updated_content,
                }
            )

        if original_content is not None and updated_content == original_content:
            return success_response(
                {
                    "success": True,
                    "changed": False,
                    "commitSha": _resolve_git_head(library_root),
                }
            )

        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        repo = _ensure_git_repo(library_root)
        head_state = _read_head_state(library_root)
        _atomic_write(resolved_path, updated_content)

        try:
            commit_sha = _commit_markdown_change(
                repo, relative_path, operation, summary
            )
        except Exception as exc:
            _rollback_markdown_change(
                repo, resolved_path, relative_path, original_content
            )
            raise McpError(
                "GIT_ERROR",
                "Git commit failed; mutation rolled back.",
                {"path": raw_path, "operation": operation},
            ) from exc

        try:
            entry = _build_activity_entry(
                operation, relative_path, summary, commit_sha
            )
            _append_activity_log(library_root, entry)
        except Exception as exc:
            _rollback_markdown_change(
                repo, resolved_path, relative_path, original_content
            )
            _restore_git_head(library_root, head_state)
            raise McpError(
                "LOG_ERROR",
                "Activity log write failed; mutation rolled back.",
                {"path": raw_path, "operation": operation},
            ) from exc

    logger.info("%s %s: %s", operation, relative_path.as_posix(), summary)
    return success_response({"success": True, "changed": True, "commitSha": commit_sha})


def _require_path(payload: dict[str, Any]) -> str:
    if "path" not in payload:
        raise McpError(
            "MISSING_PATH",
            "Path is required.",
            {"fields": ["path"]},
        )
    return payload["path"]


def _reject_target_and_anchor(target: str | None, anchor: str | None) -> None:
    if target is not None and anchor is not None:
        raise McpError(
            "INVALID_TARGET",
            "Provide either target or anchor, not both.",
            {"target": target, "anchor": anchor},
        )
    if anchor is not None and not anchor.strip():
        raise McpError(
            "INVALID_TARGET",
            "Anchor must be a non-empty tag.",
            {"anchor": anchor},
        )


def _build_metadata(library_root: Path, file_path: Path) -> dict[str, Any]:
    stat = file_path.stat()
    relative_path = file_path.relative_to(library_root).as_posix()
    last_modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)

    return {
        "path": relative_path,
        "sizeBytes": stat.st_size,
        "lastModified": last_modified.isoformat(),
        "gitHead": _resolve_git_head(library_root),
    }
