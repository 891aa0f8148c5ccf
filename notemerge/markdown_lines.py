"""Line classification for the markdown tree builder.

Each raw line is classified independently as a heading, a list item, or a
plain paragraph. Blank lines classify to ``None``. Classification never
fails: anything that is not recognizably a heading or bullet degrades to a
paragraph.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

INDENT_WIDTH = 2
TAB_WIDTH = 4

_HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.*)$")
_LIST_ITEM_PATTERN = re.compile(r"^([ \t]*)[-*+][ \t]+(.*)$")
_CHECKBOX_PATTERN = re.compile(r"^\[([ xX])\]\s*(.*)$")


@dataclass(frozen=True)
class HeadingLine:
    level: int
    text: str


@dataclass(frozen=True)
class ListItemLine:
    depth: int
    text: str
    checked: bool | None = None


@dataclass(frozen=True)
class ParagraphLine:
    text: str


LineKind = Union[HeadingLine, ListItemLine, ParagraphLine]


def split_lines(content: str) -> list[str]:
    """Split text into lines, accepting both ``\\r\\n`` and ``\\n`` endings."""
    return content.replace("\r\n", "\n").split("\n")


def classify_line(line: str) -> LineKind | None:
    heading = _HEADING_PATTERN.match(line)
    if heading:
        return HeadingLine(level=len(heading.group(1)), text=heading.group(2).strip())

    item = _LIST_ITEM_PATTERN.match(line)
    if item:
        indent = item.group(1).replace("\t", " " * TAB_WIDTH)
        text = item.group(2)
        checked = None
        checkbox = _CHECKBOX_PATTERN.match(text)
        if checkbox:
            checked = checkbox.group(1).lower() == "x"
            text = checkbox.group(2)
        return ListItemLine(
            depth=len(indent) // INDENT_WIDTH, text=text.strip(), checked=checked
        )

    stripped = line.strip()
    if not stripped:
        return None
    return ParagraphLine(text=stripped)
