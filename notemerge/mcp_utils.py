"""Shared filesystem helpers for MCP endpoints."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from notemerge.errors import McpError


def _atomic_write(target_path: Path, content: str) -> None:
    """Replace ``target_path`` in one rename; readers never see a half-written note."""
    # newline="" keeps the caller's line endings byte for byte.
    fd, temp_name = tempfile.mkstemp(
        dir=target_path.parent, prefix=f".{target_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as temp_file:
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target_path)
    finally:
        temp_path.unlink(missing_ok=True)


def _read_markdown_text(file_path: Path, raw_path: str) -> str:
    try:
        return file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise McpError(
            "INVALID_ENCODING",
            "Markdown file must be UTF-8 encoded.",
            {"path": raw_path},
        ) from exc
