"""Keep note paths inside the caller's library root.

Paths arrive from agents as library-relative strings. They are checked purely
lexically first; the filesystem is only consulted once the path is known to
stay below the root.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from notemerge.errors import McpError
from notemerge.file_lock import LOCK_DIRNAME
from notemerge.mcp_constants import ALLOWED_MARKDOWN_EXTENSIONS

RESERVED_DIRNAMES = frozenset({".git", LOCK_DIRNAME})


def _path_error(code: str, message: str, raw_path: str) -> McpError:
    return McpError(code, message, {"path": raw_path})


def _relative_parts(raw_path: str) -> tuple[str, ...]:
    candidate = PurePosixPath(raw_path.replace("\\", "/"))
    if candidate.is_absolute():
        raise _path_error("ABSOLUTE_PATH", "Absolute paths are not allowed.", raw_path)
    if ".." in candidate.parts:
        raise _path_error("PATH_TRAVERSAL", "Path traversal is not allowed.", raw_path)
    if candidate.parts[:1] and candidate.parts[0] in RESERVED_DIRNAMES:
        raise _path_error(
            "RESERVED_PATH", "Path points into a reserved directory.", raw_path
        )
    return candidate.parts


def validate_path(library_root: Path, raw_path: str) -> Path:
    """Return ``raw_path`` joined onto ``library_root`` once it is known safe."""
    if not isinstance(raw_path, str):
        raise McpError(
            "INVALID_TYPE",
            "Path must be a string.",
            {"path": str(raw_path), "type": type(raw_path).__name__},
        )

    parts = _relative_parts(raw_path)
    if _contains_symlink(library_root, PurePosixPath(*parts)):
        raise _path_error("PATH_SYMLINK", "Symlinked paths are not allowed.", raw_path)
    return library_root.joinpath(*parts)


def validate_markdown_path(
    library_root: Path, raw_path: str, *, must_exist: bool = True
) -> Path:
    """Resolve a markdown note path.

    With ``must_exist=False`` a missing file is accepted so callers can create
    it, provided its parent is not an existing plain file.
    """
    note_path = validate_path(library_root, raw_path)
    if note_path.suffix.lower() not in ALLOWED_MARKDOWN_EXTENSIONS:
        raise _path_error("NOT_MARKDOWN", "Only markdown files are allowed.", raw_path)

    if note_path.exists():
        if not note_path.is_file():
            raise _path_error("INVALID_PATH", "Path must reference a file.", raw_path)
        return note_path

    if must_exist:
        raise _path_error("FILE_NOT_FOUND", "Markdown file does not exist.", raw_path)
    parent = note_path.parent
    if parent.exists() and not parent.is_dir():
        raise _path_error("INVALID_PATH", "Parent path must be a directory.", raw_path)
    return note_path


def _contains_symlink(library_root: Path, relative_path: PurePosixPath) -> bool:
    current = library_root
    for segment in relative_path.parts:
        current = current / segment
        if current.is_symlink():
            return True
    return False
