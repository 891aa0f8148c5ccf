"""Build a semantic node forest from markdown text."""

from __future__ import annotations

from notemerge.config import MergeLimits
from notemerge.errors import InputTooLargeError, TooDeeplyNestedError
from notemerge.log import get_logger
from notemerge.markdown_lines import (
    HeadingLine,
    ListItemLine,
    ParagraphLine,
    classify_line,
    split_lines,
)
from notemerge.markdown_nodes import (
    Container,
    Forest,
    Heading,
    Item,
    ListBlock,
    Paragraph,
    Root,
    assign_positions,
)

logger = get_logger(__name__)


def parse_markdown_structure(
    content: str, limits: MergeLimits | None = None
) -> Forest:
    """Parse markdown into headings, nested lists, checklist items and paragraphs.

    Headings own everything below them until the next heading of the same or
    a shallower level. Consecutive bullets at one indentation depth share a
    single ``ListBlock``; deeper bullets nest under the nearest shallower item.
    """
    limits = limits or MergeLimits()
    size = len(content.encode("utf-8"))
    if size > limits.max_input_bytes:
        raise InputTooLargeError(size, limits.max_input_bytes)

    root = Root()
    stack: list[Container] = [root]

    for line in split_lines(content):
        classified = classify_line(line)
        if classified is None:
            continue

        if isinstance(classified, HeadingLine):
            while len(stack) > 1 and (
                not isinstance(stack[-1], Heading)
                or stack[-1].level >= classified.level
            ):
                stack.pop()
            heading = Heading(level=classified.level, text=classified.text)
            stack[-1].children.append(heading)
            _push(stack, heading, limits)
            continue

        if isinstance(classified, ListItemLine):
            depth = classified.depth
            while len(stack) > 1 and _closes_at(stack[-1], depth):
                stack.pop()
            parent = stack[-1]
            if not (isinstance(parent, ListBlock) and parent.level == depth):
                list_node = ListBlock(level=depth)
                parent.children.append(list_node)
                _push(stack, list_node, limits)
            item = Item(level=depth, text=classified.text, checked=classified.checked)
            stack[-1].children.append(item)
            _push(stack, item, limits)
            continue

        if isinstance(classified, ParagraphLine):
            stack[-1].children.append(Paragraph(text=classified.text))

    assign_positions(root.children)
    logger.debug("parsed %d top-level nodes", len(root.children))
    return root.children


def _closes_at(node: Container, depth: int) -> bool:
    if isinstance(node, Item):
        return node.level >= depth
    if isinstance(node, ListBlock):
        return node.level > depth
    return False


def _push(stack: list[Container], node: Container, limits: MergeLimits) -> None:
    depth = len(stack)
    if depth > limits.max_depth:
        raise TooDeeplyNestedError(depth, limits.max_depth)
    stack.append(node)
