"""Structural merge engine and service for multi-writer markdown notes."""

from notemerge.config import MergeLimits
from notemerge.errors import InputTooLargeError, McpError, TooDeeplyNestedError
from notemerge.markdown_merge import (
    MergeOptions,
    dedupe_tree,
    find_match,
    merge_markdown_trees,
)
from notemerge.markdown_nodes import Heading, Item, ListBlock, Paragraph, Root
from notemerge.markdown_parser import parse_markdown_structure
from notemerge.markdown_serializer import serialize_markdown_tree

__all__ = [
    "Heading",
    "InputTooLargeError",
    "Item",
    "ListBlock",
    "McpError",
    "MergeLimits",
    "MergeOptions",
    "Paragraph",
    "Root",
    "TooDeeplyNestedError",
    "dedupe_tree",
    "find_match",
    "merge_markdown_trees",
    "parse_markdown_structure",
    "serialize_markdown_tree",
]
