from types import SimpleNamespace

import pytest

from notemerge.errors import McpError
from notemerge.mcp import _resolve_git_head, edit_markdown_structure


def _build_request(library_root):
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(library_path=library_root)),
        state=SimpleNamespace(user_id="test-user-123"),
    )


def _user_root(library_root):
    root = library_root / "users" / "testuser123"
    root.mkdir(parents=True, exist_ok=True)
    return root


def _write_doc(library_root, content="## Tasks\n- [ ] a\n"):
    docs = _user_root(library_root) / "docs"
    docs.mkdir(exist_ok=True)
    file_path = docs / "todo.md"
    file_path.write_text(content, encoding="utf-8")
    return file_path


def _edit(library_root, operation, **extra):
    return edit_markdown_structure(
        {"path": "docs/todo.md", "operation": operation, **extra},
        _build_request(library_root),
    )


def test_add_task_commits_change(tmp_path):
    file_path = _write_doc(tmp_path)

    payload = _edit(tmp_path, {"type": "add_task", "heading": "Tasks", "text": "b"})

    data = payload["data"]
    assert data["changed"] is True
    assert _resolve_git_head(_user_root(tmp_path)) == data["commitSha"]
    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] a\n- [ ] b\n"


def test_add_existing_task_reports_unchanged(tmp_path):
    file_path = _write_doc(tmp_path)

    payload = _edit(tmp_path, {"type": "add_task", "heading": "Tasks", "text": "a"})

    assert payload["data"]["changed"] is False
    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] a\n"


def test_insert_task_before_anchor_item(tmp_path):
    file_path = _write_doc(tmp_path, "## Tasks\n- [ ] a\n- [ ] c\n")

    _edit(
        tmp_path,
        {"type": "insert_task", "heading": "Tasks", "text": "b", "before": "c"},
    )

    assert file_path.read_text(encoding="utf-8") == (
        "## Tasks\n- [ ] a\n- [ ] b\n- [ ] c\n"
    )


def test_toggle_task_checks_item(tmp_path):
    file_path = _write_doc(tmp_path)

    _edit(tmp_path, {"type": "toggle_task", "heading": "Tasks", "text": "a"})

    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [x] a\n"


def test_update_task_text_renames_item(tmp_path):
    file_path = _write_doc(tmp_path)

    _edit(
        tmp_path,
        {
            "type": "update_task_text",
            "heading": "Tasks",
            "oldText": "a",
            "newText": "renamed",
        },
    )

    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] renamed\n"


def test_update_task_text_files_missing_item_even_when_text_is_unchanged(tmp_path):
    file_path = _write_doc(tmp_path)

    payload = _edit(
        tmp_path,
        {
            "type": "update_task_text",
            "heading": "Tasks",
            "oldText": "ghost",
            "newText": "ghost",
        },
    )

    assert payload["data"]["changed"] is True
    assert file_path.read_text(encoding="utf-8") == (
        "## Tasks\n- [ ] a\n## Unsorted\n- [ ] ghost\n"
    )


def test_remove_task_match_with_regex(tmp_path):
    file_path = _write_doc(tmp_path, "## Tasks\n- [ ] bug 1\n- [ ] bug 2\n- [ ] docs\n")

    _edit(
        tmp_path,
        {
            "type": "remove_task_match",
            "heading": "Tasks",
            "pattern": r"bug \d",
            "regex": True,
        },
    )

    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] docs\n"


def test_add_section_path_creates_headings(tmp_path):
    file_path = _write_doc(tmp_path, "# Doc\n")

    _edit(
        tmp_path,
        {
            "type": "add_section_path",
            "headings": ["Project", "Next"],
            "content": "- [ ] plan",
        },
    )

    assert file_path.read_text(encoding="utf-8") == (
        "# Doc\n## Project\n### Next\n- [ ] plan\n"
    )


def test_add_section_and_remove_section(tmp_path):
    file_path = _write_doc(tmp_path)

    _edit(tmp_path, {"type": "add_section", "heading": "Notes", "content": "- n"})
    assert file_path.read_text(encoding="utf-8") == (
        "## Tasks\n- [ ] a\n## Notes\n- n\n"
    )

    _edit(tmp_path, {"type": "remove_section", "heading": "Tasks"})
    assert file_path.read_text(encoding="utf-8") == "## Notes\n- n\n"


def test_edit_dry_run_previews_without_writing(tmp_path):
    file_path = _write_doc(tmp_path)

    payload = _edit(
        tmp_path,
        {"type": "add_task", "heading": "Tasks", "text": "b"},
        dryRun=True,
    )

    data = payload["data"]
    assert data["summary"] == "add_task (Tasks): +1 -0 lines"
    assert data["content"] == "## Tasks\n- [ ] a\n- [ ] b\n"
    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] a\n"


@pytest.mark.parametrize(
    ("operation", "code"),
    [
        ({"type": "rename_everything"}, "INVALID_OPERATION"),
        ({"heading": "Tasks"}, "MISSING_OPERATION_TYPE"),
        ({"type": "add_task", "heading": "Tasks", "text": "b", "x": 1}, "UNKNOWN_FIELD"),
        ({"type": "add_task", "heading": "Tasks"}, "MISSING_TEXT"),
        ({"type": "remove_task", "heading": "Tasks", "text": "zzz"}, "ITEM_NOT_FOUND"),
        ({"type": "remove_task", "heading": "Nope", "text": "a"}, "HEADING_NOT_FOUND"),
        ({"type": "remove_section", "heading": "Nope"}, "HEADING_NOT_FOUND"),
        (
            {"type": "remove_task_match", "heading": "Tasks", "pattern": "(", "regex": True},
            "INVALID_PATTERN",
        ),
        (
            {"type": "add_section_path", "headings": "Project", "content": "x"},
            "INVALID_TYPE",
        ),
        ("add_task", "INVALID_TYPE"),
    ],
)
def test_edit_rejects_invalid_operations(tmp_path, operation, code):
    file_path = _write_doc(tmp_path)

    with pytest.raises(McpError) as excinfo:
        _edit(tmp_path, operation)

    assert excinfo.value.error.code == code
    assert file_path.read_text(encoding="utf-8") == "## Tasks\n- [ ] a\n"


def test_edit_requires_operation(tmp_path):
    _write_doc(tmp_path)

    with pytest.raises(McpError) as excinfo:
        edit_markdown_structure({"path": "docs/todo.md"}, _build_request(tmp_path))

    assert excinfo.value.error.code == "MISSING_OPERATION"
