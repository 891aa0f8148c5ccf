"""Semantic node types for the markdown merge engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union


@dataclass
class Heading:
    level: int
    text: str
    children: list[Node] = field(default_factory=list)
    position: int = 0

    kind: ClassVar[str] = "heading"


@dataclass
class ListBlock:
    """Synthetic grouping of consecutive items at one indentation depth."""

    level: int
    children: list[Node] = field(default_factory=list)
    position: int = 0

    kind: ClassVar[str] = "list"


@dataclass
class Item:
    level: int
    text: str
    checked: bool | None = None
    children: list[Node] = field(default_factory=list)
    position: int = 0

    kind: ClassVar[str] = "item"


@dataclass
class Paragraph:
    text: str
    children: list[Node] = field(default_factory=list)
    position: int = 0

    kind: ClassVar[str] = "paragraph"


@dataclass
class Root:
    """Virtual container used while building a forest."""

    children: list[Node] = field(default_factory=list)
    position: int = 0

    kind: ClassVar[str] = "root"


Node = Union[Heading, ListBlock, Item, Paragraph]
Container = Union[Root, Heading, ListBlock, Item]
Forest = list[Node]


def assign_positions(nodes: list[Node]) -> None:
    """Renumber sibling positions depth-first."""
    for index, node in enumerate(nodes):
        node.position = index
        if node.children:
            assign_positions(node.children)


def clone_node(node: Node) -> Node:
    return copy.deepcopy(node)


def clone_forest(nodes: list[Node]) -> Forest:
    return [copy.deepcopy(node) for node in nodes]


def node_to_dict(node: Node) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": node.kind, "position": node.position}
    if isinstance(node, (Heading, ListBlock, Item)):
        payload["level"] = node.level
    if isinstance(node, (Heading, Item, Paragraph)):
        payload["text"] = node.text
    if isinstance(node, Item) and node.checked is not None:
        payload["checked"] = node.checked
    payload["children"] = forest_to_dicts(node.children)
    return payload


def forest_to_dicts(nodes: list[Node]) -> list[dict[str, Any]]:
    return [node_to_dict(node) for node in nodes]
