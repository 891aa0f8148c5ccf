"""Structural merge and deduplication of markdown node forests."""

from __future__ import annotations

from dataclasses import dataclass, field

from notemerge.config import MergeLimits
from notemerge.errors import TooDeeplyNestedError
from notemerge.log import get_logger
from notemerge.markdown_nodes import (
    Forest,
    Heading,
    Item,
    ListBlock,
    Node,
    Paragraph,
    assign_positions,
    clone_forest,
    clone_node,
)

logger = get_logger(__name__)

# Kinds without a text identity key fall back to sibling position.
_POSITIONAL_KINDS = (Paragraph, ListBlock)


@dataclass(frozen=True)
class MergeOptions:
    replace: bool = False
    dedupe: bool = False
    limits: MergeLimits = field(default_factory=MergeLimits)


def find_match(
    siblings: list[Node], candidate: Node, claimed: set[int] | None = None
) -> int | None:
    """Return the index of the sibling that is the same logical node.

    Indices in ``claimed`` are already paired with an earlier update node and
    are skipped, so repeated keys pair up in document order.
    """
    claimed = claimed or set()
    for index, sibling in enumerate(siblings):
        if index not in claimed and _same_identity(sibling, candidate):
            return index

    if isinstance(candidate, _POSITIONAL_KINDS):
        position = candidate.position
        if (
            position not in claimed
            and 0 <= position < len(siblings)
            and type(siblings[position]) is type(candidate)
        ):
            return position
    return None


def _same_identity(existing: Node, candidate: Node) -> bool:
    if isinstance(candidate, Heading):
        return (
            isinstance(existing, Heading)
            and existing.level == candidate.level
            and existing.text == candidate.text
        )
    if isinstance(candidate, Item):
        return isinstance(existing, Item) and existing.text == candidate.text
    if isinstance(candidate, ListBlock):
        return isinstance(existing, ListBlock) and existing.level == candidate.level
    return False


def merge_markdown_trees(
    base: Forest, update: Forest, options: MergeOptions | None = None
) -> Forest:
    """Merge ``update`` into a copy of ``base``.

    In patch mode (the default) matched nodes keep their existing subtree and
    absorb the update recursively; new nodes are inserted after the slot of
    their preceding update sibling. Replace mode swaps a matched node for the
    update's version wholesale. Neither input is mutated.
    """
    options = options or MergeOptions()
    logger.debug(
        "merging %d update nodes into %d base nodes (replace=%s, dedupe=%s)",
        len(update),
        len(base),
        options.replace,
        options.dedupe,
    )
    result = _merge_forest(clone_forest(base), update, options, depth=1)
    if options.dedupe:
        result = dedupe_tree(result, options.limits)
    return result


def _merge_forest(
    result: Forest, update: list[Node], options: MergeOptions, depth: int
) -> Forest:
    if depth > options.limits.max_depth:
        raise TooDeeplyNestedError(depth, options.limits.max_depth)

    last_slot: int | None = None
    claimed: set[int] = set()
    for node in update:
        index = find_match(result, node, claimed)
        if index is None:
            slot = len(result) if last_slot is None else last_slot + 1
            result.insert(slot, clone_node(node))
            claimed = {i + 1 if i >= slot else i for i in claimed}
            claimed.add(slot)
            last_slot = slot
            continue

        claimed.add(index)
        last_slot = index
        if options.replace:
            result[index] = clone_node(node)
            continue

        matched = result[index]
        _patch_node(matched, node)
        if node.children:
            matched.children = _merge_forest(
                matched.children, node.children, options, depth + 1
            )

    assign_positions(result)
    return result


def _patch_node(matched: Node, node: Node) -> None:
    if isinstance(node, (Heading, Item, Paragraph)) and isinstance(
        matched, (Heading, Item, Paragraph)
    ):
        if node.text and matched.text != node.text:
            matched.text = node.text
    if isinstance(node, Item) and isinstance(matched, Item):
        matched.checked = _merge_checked(matched.checked, node.checked)


def _merge_checked(existing: bool | None, incoming: bool | None) -> bool | None:
    if existing or incoming:
        return True
    if existing is None:
        return incoming
    return existing


def dedupe_tree(nodes: Forest, limits: MergeLimits | None = None) -> Forest:
    """Collapse repeated headings and checklist items.

    A repeated heading (same level and text) is folded into its first
    occurrence; a repeated item (same text ignoring case) is dropped after
    handing a checked mark and its sub-items to the survivor. Paragraphs and
    lists are never removed. A second pass changes nothing, and the input
    forest is left untouched.
    """
    return _dedupe_forest(clone_forest(nodes), limits or MergeLimits(), depth=1)


def _dedupe_forest(nodes: Forest, limits: MergeLimits, depth: int) -> Forest:
    if depth > limits.max_depth:
        raise TooDeeplyNestedError(depth, limits.max_depth)

    seen_headings: dict[tuple[int, str], Heading] = {}
    seen_items: dict[str, Item] = {}
    result: Forest = []
    for node in nodes:
        if isinstance(node, Heading):
            key = (node.level, node.text)
            first = seen_headings.get(key)
            if first is not None:
                first.children = _merge_forest(
                    first.children,
                    node.children,
                    MergeOptions(limits=limits),
                    depth + 1,
                )
                continue
            seen_headings[key] = node
        elif isinstance(node, Item):
            item_key = node.text.lower()
            first_item = seen_items.get(item_key)
            if first_item is not None:
                if node.checked:
                    first_item.checked = True
                if node.children:
                    first_item.children = _merge_forest(
                        first_item.children,
                        node.children,
                        MergeOptions(limits=limits),
                        depth + 1,
                    )
                continue
            seen_items[item_key] = node
        result.append(node)

    for node in result:
        if node.children:
            node.children = _dedupe_forest(node.children, limits, depth + 1)

    assign_positions(result)
    return result
