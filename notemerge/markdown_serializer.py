"""Render a markdown node forest back to text."""

from __future__ import annotations

from notemerge.config import MergeLimits
from notemerge.errors import TooDeeplyNestedError
from notemerge.markdown_lines import INDENT_WIDTH
from notemerge.markdown_nodes import Heading, Item, ListBlock, Node, Paragraph


def serialize_markdown_tree(
    nodes: list[Node], limits: MergeLimits | None = None
) -> str:
    lines: list[str] = []
    _render(nodes, lines, limits or MergeLimits(), depth=1)
    return "\n".join(lines)


def _render(
    nodes: list[Node], lines: list[str], limits: MergeLimits, depth: int
) -> None:
    if depth > limits.max_depth:
        raise TooDeeplyNestedError(depth, limits.max_depth)
    for node in nodes:
        if isinstance(node, Heading):
            lines.append(f"{'#' * node.level} {node.text}")
        elif isinstance(node, Item):
            line = " " * (INDENT_WIDTH * node.level) + "- "
            if node.checked is not None:
                line += "[x] " if node.checked else "[ ] "
            lines.append(line + node.text)
        elif isinstance(node, Paragraph):
            lines.append(node.text)
            continue
        elif not isinstance(node, ListBlock):
            continue
        if node.children:
            _render(node.children, lines, limits, depth + 1)
