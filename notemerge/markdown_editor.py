"""Targeted checklist and section edits on a parsed markdown forest.

Every function mutates the forest it is given, renumbers positions, and
returns whatever the caller needs to decide whether anything changed.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from notemerge.config import MergeLimits
from notemerge.errors import McpError
from notemerge.markdown_merge import MergeOptions, dedupe_tree, merge_markdown_trees
from notemerge.markdown_nodes import (
    Forest,
    Heading,
    Item,
    ListBlock,
    Node,
    assign_positions,
)
from notemerge.markdown_parser import parse_markdown_structure

UNSORTED_HEADING = "Unsorted"


def find_heading(nodes: list[Node], text: str) -> Heading | None:
    for node in nodes:
        if isinstance(node, Heading) and node.text == text:
            return node
        found = find_heading(node.children, text)
        if found is not None:
            return found
    return None


def find_heading_path(nodes: list[Node], path: list[str]) -> Heading | None:
    if not path:
        return None
    current = nodes
    heading: Heading | None = None
    for text in path:
        heading = next(
            (n for n in current if isinstance(n, Heading) and n.text == text), None
        )
        if heading is None:
            return None
        current = heading.children
    return heading


def get_or_create_heading(forest: Forest, text: str, level: int = 2) -> Heading:
    heading = find_heading(forest, text)
    if heading is None:
        heading = Heading(level=level, text=text)
        forest.append(heading)
        assign_positions(forest)
    return heading


def _require_heading(forest: Forest, text: str) -> Heading:
    heading = find_heading(forest, text)
    if heading is None:
        raise McpError(
            "HEADING_NOT_FOUND",
            "Heading not found.",
            {"heading": text},
        )
    return heading


def _find_item(nodes: list[Node], text: str) -> tuple[Item, list[Node]] | None:
    for node in nodes:
        if isinstance(node, Item) and node.text == text:
            return node, nodes
        found = _find_item(node.children, text)
        if found is not None:
            return found
    return None


def _get_or_create_list(container: Heading | Item) -> ListBlock:
    level = container.level + 1 if isinstance(container, Item) else 0
    for child in container.children:
        if isinstance(child, ListBlock) and child.level == level:
            return child
    list_node = ListBlock(level=level)
    container.children.append(list_node)
    return list_node


def add_task(
    forest: Forest, heading: str, text: str, checked: bool = False
) -> bool:
    """Append an unchecked-by-default item under ``heading`` unless present."""
    target = get_or_create_heading(forest, heading)
    for child in target.children:
        if isinstance(child, ListBlock) and any(
            isinstance(item, Item) and item.text == text for item in child.children
        ):
            return False
    list_node = _get_or_create_list(target)
    list_node.children.append(Item(level=list_node.level, text=text, checked=checked))
    assign_positions(forest)
    return True


def insert_task(
    forest: Forest,
    heading: str,
    text: str,
    *,
    parent: str | None = None,
    checked: bool | None = None,
    before: str | None = None,
    after: str | None = None,
) -> bool:
    """Insert an item under a heading or as a sub-item of ``parent``.

    Missing headings and parent items are created. An item that already
    exists in the target list only has its checked state updated.
    """
    target: Heading | Item = get_or_create_heading(forest, heading)
    if parent is not None:
        found = _find_item(target.children, parent)
        if found is not None:
            target = found[0]
        else:
            list_node = _get_or_create_list(target)
            parent_item = Item(level=list_node.level, text=parent, checked=False)
            list_node.children.append(parent_item)
            target = parent_item

    list_node = _get_or_create_list(target)
    for child in list_node.children:
        if isinstance(child, Item) and child.text == text:
            changed = checked is not None and child.checked != checked
            if changed:
                child.checked = checked
            assign_positions(forest)
            return changed

    index = len(list_node.children)
    anchor = before if before is not None else after
    if anchor is not None:
        for position, child in enumerate(list_node.children):
            if isinstance(child, Item) and child.text == anchor:
                index = position if before is not None else position + 1
                break

    item = Item(
        level=list_node.level,
        text=text,
        checked=False if checked is None else checked,
    )
    list_node.children.insert(index, item)
    assign_positions(forest)
    return True


def remove_task(forest: Forest, heading: str, text: str) -> bool:
    target = _require_heading(forest, heading)
    removed = _remove_items(target.children, lambda item_text: item_text == text)
    assign_positions(forest)
    return removed > 0


def remove_task_match(
    forest: Forest, heading: str, pattern: str | re.Pattern[str]
) -> int:
    """Remove items whose text contains ``pattern`` (or matches a regex)."""
    target = _require_heading(forest, heading)
    if isinstance(pattern, str):
        matcher: Callable[[str], bool] = lambda item_text: pattern in item_text
    else:
        matcher = lambda item_text: pattern.search(item_text) is not None
    removed = _remove_items(target.children, matcher)
    assign_positions(forest)
    return removed


def _remove_items(nodes: list[Node], matcher: Callable[[str], bool]) -> int:
    removed = 0
    for index in range(len(nodes) - 1, -1, -1):
        node = nodes[index]
        if isinstance(node, Item) and matcher(node.text):
            del nodes[index]
            removed += 1
            continue
        removed += _remove_items(node.children, matcher)
        if isinstance(node, ListBlock) and not node.children:
            del nodes[index]
    return removed


def toggle_task(
    forest: Forest, heading: str, text: str, checked: bool = True
) -> bool:
    """Set the checked state of every matching item under ``heading``.

    Items that cannot be found are filed under the ``Unsorted`` heading with
    the requested state, so a toggle is never silently lost.
    """
    target = find_heading(forest, heading)
    found = False
    if target is not None:
        for item in _walk_items(target.children):
            if item.text == text:
                found = True
                item.checked = checked
    if not found:
        add_task(forest, UNSORTED_HEADING, text, checked)
    assign_positions(forest)
    return found


def update_task_text(forest: Forest, heading: str, old_text: str, new_text: str) -> bool:
    target = _require_heading(forest, heading)
    found = False
    for item in _walk_items(target.children):
        if item.text == old_text:
            found = True
            item.text = new_text
    if not found:
        add_task(forest, UNSORTED_HEADING, new_text)
    assign_positions(forest)
    return found


def _walk_items(nodes: list[Node]):
    for node in nodes:
        if isinstance(node, Item):
            yield node
        yield from _walk_items(node.children)


def add_section(
    forest: Forest,
    heading: str,
    content: str,
    force_replace: bool = False,
    limits: MergeLimits | None = None,
) -> Heading:
    """Merge ``content`` into the body of ``heading`` (a level-2 section)."""
    section = Heading(
        level=2, text=heading, children=parse_markdown_structure(content, limits)
    )
    existing = find_heading(forest, heading)
    if existing is None:
        forest.append(section)
        assign_positions(forest)
        return section
    if force_replace:
        existing.children = section.children
    else:
        existing.children = merge_markdown_trees(
            existing.children,
            section.children,
            MergeOptions(limits=limits or MergeLimits()),
        )
    assign_positions(forest)
    return existing


def add_section_path(
    forest: Forest,
    headings: list[str],
    content: str,
    force_replace: bool = False,
    require_existing: bool = False,
    limits: MergeLimits | None = None,
) -> Heading:
    """Merge ``content`` under a nested heading path, creating missing levels."""
    if not headings:
        raise McpError(
            "INVALID_TARGET",
            "Heading path must not be empty.",
            {"headings": headings},
        )

    target = _child_heading(forest, headings[0], 2, require_existing, headings)
    for level, text in enumerate(headings[1:], start=3):
        target = _child_heading(
            target.children, text, level, require_existing, headings
        )

    body = parse_markdown_structure(content, limits)
    if force_replace:
        target.children = body
    else:
        target.children = merge_markdown_trees(
            target.children, body, MergeOptions(limits=limits or MergeLimits())
        )
    assign_positions(forest)
    return target


def _child_heading(
    nodes: list[Node],
    text: str,
    level: int,
    require_existing: bool,
    headings: list[str],
) -> Heading:
    for node in nodes:
        if isinstance(node, Heading) and node.text == text:
            return node
    if require_existing:
        raise McpError(
            "HEADING_NOT_FOUND",
            "Heading path not found.",
            {"headings": headings},
        )
    heading = Heading(level=min(level, 6), text=text)
    nodes.append(heading)
    return heading


def remove_section(forest: Forest, heading: str) -> bool:
    pending: list[list[Node]] = [forest]
    while pending:
        nodes = pending.pop()
        for index, node in enumerate(nodes):
            if isinstance(node, Heading) and node.text == heading:
                del nodes[index]
                assign_positions(forest)
                return True
        pending.extend(node.children for node in nodes if node.children)
    return False


def clean_duplicates(forest: Forest, limits: MergeLimits | None = None) -> Forest:
    return dedupe_tree(forest, limits)
