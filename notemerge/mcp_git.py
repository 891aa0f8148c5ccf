"""Git bookkeeping for markdown mutations.

Every successful merge or edit becomes one dulwich commit in the user's
library. When a later step fails, the file and the branch ref are put back
so the working tree and history never disagree.
"""

from __future__ import annotations

from pathlib import Path
from typing import NamedTuple

from dulwich import porcelain
from dulwich.repo import Repo

from notemerge.errors import McpError
from notemerge.log import get_logger
from notemerge.mcp_utils import _atomic_write

logger = get_logger(__name__)


class HeadState(NamedTuple):
    """Where HEAD points (the ref file, when symbolic) and the commit it names."""

    ref_path: Path | None
    sha: str | None


def _read_head_state(library_root: Path) -> HeadState:
    git_dir = library_root / ".git"
    try:
        head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
    except OSError:
        return HeadState(None, None)

    if not head.startswith("ref:"):
        return HeadState(None, head or None)

    ref_name = head[len("ref:") :].strip()
    if not ref_name:
        return HeadState(None, None)
    ref_path = git_dir / ref_name
    try:
        return HeadState(ref_path, ref_path.read_text(encoding="utf-8").strip() or None)
    except FileNotFoundError:
        return HeadState(ref_path, _lookup_packed_ref(git_dir, ref_name))
    except OSError:
        return HeadState(ref_path, None)


def _resolve_git_head(library_root: Path) -> str | None:
    return _read_head_state(library_root).sha


def _lookup_packed_ref(git_dir: Path, ref_name: str) -> str | None:
    try:
        packed = (git_dir / "packed-refs").read_text(encoding="utf-8")
    except OSError:
        return None
    for line in packed.splitlines():
        if line.startswith(("#", "^")):
            continue
        sha, _, name = line.partition(" ")
        if name.strip() == ref_name:
            return sha
    return None


def _restore_git_head(library_root: Path, state: HeadState) -> None:
    target = state.ref_path or library_root / ".git" / "HEAD"
    try:
        if state.sha is not None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(f"{state.sha}\n", encoding="utf-8")
        elif state.ref_path is not None and state.ref_path.exists():
            # The branch had no commits yet.
            state.ref_path.unlink()
    except OSError:
        logger.warning("could not restore git HEAD in %s", library_root)


def _ensure_git_repo(library_root: Path) -> Repo:
    try:
        if (library_root / ".git").exists():
            return Repo(library_root)
        logger.info("initializing git repository in %s", library_root)
        return porcelain.init(library_root)
    except Exception as exc:
        raise McpError(
            "GIT_ERROR",
            "Git repository could not be initialized.",
            {"path": str(library_root)},
        ) from exc


def _commit_markdown_change(
    repo: Repo, relative_path: Path, operation: str, summary: str
) -> str:
    posix_path = relative_path.as_posix()
    repo.get_worktree().stage([posix_path])
    message = f"{operation}: {posix_path}\n\n{summary}\n"
    commit_sha = porcelain.commit(repo, message=message)
    if isinstance(commit_sha, bytes):
        return commit_sha.decode("ascii")
    return str(commit_sha)


def _rollback_markdown_change(
    repo: Repo,
    target_path: Path,
    relative_path: Path,
    original_content: str | None,
) -> None:
    """Put the file and its index entry back; ``None`` means it did not exist."""
    posix_path = relative_path.as_posix()
    logger.warning("rolling back %s", posix_path)
    if original_content is not None:
        _atomic_write(target_path, original_content)
    else:
        target_path.unlink(missing_ok=True)
    try:
        repo.get_worktree().stage([posix_path])
    except Exception:
        logger.warning("could not restage %s", posix_path)
