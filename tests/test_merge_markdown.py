from types import SimpleNamespace

import pytest

import notemerge.mcp_markdown as mcp_markdown
from notemerge.config import MergeLimits
from notemerge.errors import McpError
from notemerge.file_lock import markdown_file_lock
from notemerge.mcp import _resolve_git_head, dedupe_markdown, merge_markdown


def _build_request(library_root, config=None):
    state = SimpleNamespace(library_path=library_root)
    if config is not None:
        state.config = config
    return SimpleNamespace(
        app=SimpleNamespace(state=state),
        state=SimpleNamespace(user_id="test-user-123"),
    )


def _user_root(library_root):
    root = library_root / "users" / "testuser123"
    root.mkdir(parents=True, exist_ok=True)
    return root


def _write_doc(library_root, content):
    docs = _user_root(library_root) / "docs"
    docs.mkdir(exist_ok=True)
    file_path = docs / "todo.md"
    file_path.write_text(content, encoding="utf-8")
    return file_path


def _assert_commit_payload(payload, library_root):
    assert payload["ok"] is True
    data = payload["data"]
    assert data["success"] is True
    assert data["changed"] is True
    assert isinstance(data["commitSha"], str)
    assert len(data["commitSha"]) == 40
    assert (library_root / ".git").exists()
    assert _resolve_git_head(library_root) == data["commitSha"]


def test_merge_markdown_keeps_checked_and_adds_items(tmp_path):
    file_path = _write_doc(tmp_path, "# Todo\n- [x] buy milk\n")

    payload = merge_markdown(
        {
            "path": "docs/todo.md",
            "content": "# Todo\n- [ ] buy milk\n- [ ] call mom",
        },
        _build_request(tmp_path),
    )

    _assert_commit_payload(payload, _user_root(tmp_path))
    assert file_path.read_text(encoding="utf-8") == (
        "# Todo\n- [x] buy milk\n- [ ] call mom\n"
    )


def test_merge_markdown_replace_mode(tmp_path):
    file_path = _write_doc(tmp_path, "## Keep\nbody\n## Swap\n- [x] old\n")

    merge_markdown(
        {"path": "docs/todo.md", "content": "## Swap\n- [ ] new", "replace": True},
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == (
        "## Keep\nbody\n## Swap\n- [ ] new\n"
    )


def test_merge_markdown_dedupe_option(tmp_path):
    file_path = _write_doc(tmp_path, "## Tasks\n- [ ] a\n## Tasks\n- [ ] b\n")

    merge_markdown(
        {"path": "docs/todo.md", "content": "## Tasks\n- [x] A", "dedupe": True},
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [x] a\n- [ ] b\n"


def test_merge_markdown_into_target_section_leaves_rest_intact(tmp_path):
    file_path = _write_doc(
        tmp_path,
        "# Doc\n\n## Tasks\n- [ ] a\n\n## Notes\nKeep me.\n",
    )

    merge_markdown(
        {"path": "docs/todo.md", "content": "- [ ] b", "target": "## Tasks"},
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == (
        "# Doc\n\n## Tasks\n- [ ] a\n- [ ] b\n\n## Notes\nKeep me.\n"
    )


def test_merge_markdown_target_content_may_repeat_heading(tmp_path):
    file_path = _write_doc(tmp_path, "## Tasks\n- [ ] a\n")

    merge_markdown(
        {"path": "docs/todo.md", "content": "## Tasks\n- [x] a", "target": "## Tasks"},
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [x] a\n"


def test_merge_markdown_missing_target_section(tmp_path):
    _write_doc(tmp_path, "# Doc\n")

    with pytest.raises(McpError) as excinfo:
        merge_markdown(
            {"path": "docs/todo.md", "content": "- a", "target": "## Tasks"},
            _build_request(tmp_path),
        )

    assert excinfo.value.error.code == "SECTION_NOT_FOUND"


def test_merge_markdown_anchor_block_defaults_to_replace(tmp_path):
    file_path = _write_doc(
        tmp_path,
        "# Doc\n<!-- START: tasks -->\n- [ ] old\n<!-- END: tasks -->\nTail.\n",
    )

    merge_markdown(
        {"path": "docs/todo.md", "content": "- [ ] new", "anchor": "tasks"},
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == (
        "# Doc\n<!-- START: tasks -->\n- [ ] new\n<!-- END: tasks -->\nTail.\n"
    )


def test_merge_markdown_anchor_block_patch_mode(tmp_path):
    file_path = _write_doc(
        tmp_path,
        "<!-- START: tasks -->\n- [x] old\n<!-- END: tasks -->\n",
    )

    merge_markdown(
        {
            "path": "docs/todo.md",
            "content": "- [ ] old\n- [ ] new",
            "anchor": "tasks",
            "replace": False,
        },
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == (
        "<!-- START: tasks -->\n- [x] old\n- [ ] new\n<!-- END: tasks -->\n"
    )


def test_merge_markdown_appends_missing_anchor_block(tmp_path):
    file_path = _write_doc(tmp_path, "# Doc\n")

    merge_markdown(
        {"path": "docs/todo.md", "content": "- [ ] new", "anchor": "tasks"},
        _build_request(tmp_path),
    )

    assert file_path.read_text(encoding="utf-8") == (
        "# Doc\n<!-- START: tasks -->\n- [ ] new\n<!-- END: tasks -->\n"
    )


def test_merge_markdown_create_new_file(tmp_path):
    payload = merge_markdown(
        {"path": "notes/new.md", "content": "# New\n- [ ] a", "create": True},
        _build_request(tmp_path),
    )

    _assert_commit_payload(payload, _user_root(tmp_path))
    created = _user_root(tmp_path) / "notes" / "new.md"
    assert created.read_text(encoding="utf-8") == "# New\n- [ ] a\n"


def test_merge_markdown_requires_existing_file_without_create(tmp_path):
    with pytest.raises(McpError) as excinfo:
        merge_markdown(
            {"path": "docs/missing.md", "content": "# New"},
            _build_request(tmp_path),
        )

    assert excinfo.value.error.code == "FILE_NOT_FOUND"
    assert not (_user_root(tmp_path) / "docs" / "missing.md").exists()


def test_merge_markdown_dry_run_returns_diff_without_writing(tmp_path):
    file_path = _write_doc(tmp_path, "# Todo\n- [ ] a\n")

    payload = merge_markdown(
        {"path": "docs/todo.md", "content": "# Todo\n- [ ] b", "dryRun": True},
        _build_request(tmp_path),
    )

    data = payload["data"]
    assert "+- [ ] b" in data["diff"]
    assert data["summary"] == "merge patch: +1 -0 lines"
    assert data["riskLevel"] == "low"
    assert data["content"] == "# Todo\n- [ ] a\n- [ ] b\n"
    assert file_path.read_text(encoding="utf-8") == "# Todo\n- [ ] a\n"
    assert not (_user_root(tmp_path) / ".git").exists()


def test_merge_markdown_unchanged_content_skips_commit(tmp_path):
    file_path = _write_doc(tmp_path, "# Todo\n- [x] a\n")

    payload = merge_markdown(
        {"path": "docs/todo.md", "content": "# Todo\n- [ ] a"},
        _build_request(tmp_path),
    )

    assert payload["data"] == {"success": True, "changed": False, "commitSha": None}
    assert file_path.read_text(encoding="utf-8") == "# Todo\n- [x] a\n"
    assert not (_user_root(tmp_path) / ".git").exists()


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ({"path": "docs/todo.md"}, "MISSING_CONTENT"),
        ({"content": "x"}, "MISSING_PATH"),
        ({"path": "docs/todo.md", "content": 5}, "INVALID_TYPE"),
        ({"path": "docs/todo.md", "content": "x", "replace": "yes"}, "INVALID_TYPE"),
        ({"path": "docs/todo.md", "content": "x", "mode": "patch"}, "UNKNOWN_FIELD"),
        (
            {"path": "docs/todo.md", "content": "x", "target": "# Doc", "anchor": "a"},
            "INVALID_TARGET",
        ),
        ({"path": "docs/todo.md", "content": "x", "anchor": "  "}, "INVALID_TARGET"),
    ],
)
def test_merge_markdown_validates_payload(tmp_path, payload, code):
    _write_doc(tmp_path, "# Doc\n")

    with pytest.raises(McpError) as excinfo:
        merge_markdown(payload, _build_request(tmp_path))

    assert excinfo.value.error.code == code


def test_merge_markdown_enforces_size_limit(tmp_path):
    file_path = _write_doc(tmp_path, "# T\n")
    config = SimpleNamespace(
        library_path=tmp_path, limits=MergeLimits(max_input_bytes=16)
    )

    with pytest.raises(McpError) as excinfo:
        merge_markdown(
            {"path": "docs/todo.md", "content": "x" * 100},
            _build_request(tmp_path, config),
        )

    assert excinfo.value.error.code == "INPUT_TOO_LARGE"
    assert file_path.read_text(encoding="utf-8") == "# T\n"


def test_merge_markdown_times_out_on_held_lock(tmp_path):
    file_path = _write_doc(tmp_path, "# T\n")
    config = SimpleNamespace(library_path=tmp_path, lock_timeout=0.1)
    user_root = _user_root(tmp_path)

    with markdown_file_lock(user_root, file_path.relative_to(user_root)):
        with pytest.raises(McpError) as excinfo:
            merge_markdown(
                {"path": "docs/todo.md", "content": "- a"},
                _build_request(tmp_path, config),
            )

    assert excinfo.value.error.code == "LOCK_TIMEOUT"
    assert file_path.read_text(encoding="utf-8") == "# T\n"


def test_merge_markdown_rolls_back_on_commit_failure(tmp_path, monkeypatch):
    file_path = _write_doc(tmp_path, "# T\n")

    def _fail_commit(*_args, **_kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(mcp_markdown, "_commit_markdown_change", _fail_commit)

    with pytest.raises(McpError) as excinfo:
        merge_markdown(
            {"path": "docs/todo.md", "content": "- a"}, _build_request(tmp_path)
        )

    assert excinfo.value.error.code == "GIT_ERROR"
    assert file_path.read_text(encoding="utf-8") == "# T\n"


def test_merge_markdown_rolls_back_created_file_on_commit_failure(
    tmp_path, monkeypatch
):
    def _fail_commit(*_args, **_kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(mcp_markdown, "_commit_markdown_change", _fail_commit)

    with pytest.raises(McpError):
        merge_markdown(
            {"path": "docs/new.md", "content": "- a", "create": True},
            _build_request(tmp_path),
        )

    assert not (_user_root(tmp_path) / "docs" / "new.md").exists()


def test_merge_markdown_rolls_back_on_log_failure(tmp_path, monkeypatch):
    file_path = _write_doc(tmp_path, "# T\n")
    first = merge_markdown(
        {"path": "docs/todo.md", "content": "- a"}, _build_request(tmp_path)
    )
    previous_head = first["data"]["commitSha"]

    def _fail_log(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(mcp_markdown, "_append_activity_log", _fail_log)

    with pytest.raises(McpError) as excinfo:
        merge_markdown(
            {"path": "docs/todo.md", "content": "- b"}, _build_request(tmp_path)
        )

    assert excinfo.value.error.code == "LOG_ERROR"
    assert file_path.read_text(encoding="utf-8") == "# T\n- a\n"
    assert _resolve_git_head(_user_root(tmp_path)) == previous_head


def test_dedupe_markdown_collapses_file(tmp_path):
    file_path = _write_doc(tmp_path, "## Tasks\n- [ ] a\n## Tasks\n- [ ] b\n- [x] A\n")

    payload = dedupe_markdown({"path": "docs/todo.md"}, _build_request(tmp_path))

    _assert_commit_payload(payload, _user_root(tmp_path))
    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [x] a\n- [ ] b\n"


def test_dedupe_markdown_without_duplicates_is_noop(tmp_path):
    file_path = _write_doc(tmp_path, "## Tasks\n- [ ] a\n")

    payload = dedupe_markdown(
        {"path": "docs/todo.md", "dryRun": True}, _build_request(tmp_path)
    )

    assert payload["data"]["diff"] == ""
    assert payload["data"]["summary"] == "dedupe"
    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] a\n"
