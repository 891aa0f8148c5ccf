"""Locate heading sections and anchor blocks inside a markdown document.

The merge engine only ever sees the text it is given. These helpers cut the
relevant range out of a larger document and splice the engine's output back
into the same place, leaving surrounding content byte-for-byte intact.

Anchor blocks are delimited by comment markers::

    <!-- START: tasks -->
    - [ ] something
    <!-- END: tasks -->
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from notemerge.errors import McpError
from notemerge.markdown_lines import HeadingLine, classify_line, split_lines


@dataclass(frozen=True)
class SectionSpan:
    """Half-open line range ``[start, end)`` within a document."""

    start: int
    end: int


def find_heading_section(lines: list[str], target: str) -> SectionSpan:
    """Return the span from the target heading to the next equal-or-shallower heading."""
    target_line = target.strip()
    if not target_line:
        raise McpError(
            "INVALID_TARGET",
            "Target must be a non-empty heading.",
            {"target": target},
        )

    target_level = _heading_level(target_line)
    if target_level is None:
        raise McpError(
            "INVALID_TARGET",
            "Target must be a markdown heading.",
            {"target": target},
        )

    for index, line in enumerate(lines):
        if line.strip() != target_line:
            continue
        level = _heading_level(line.strip())
        if level is None:
            continue
        for next_index in range(index + 1, len(lines)):
            next_level = _heading_level(lines[next_index])
            if next_level is not None and next_level <= level:
                return SectionSpan(
                    index, _trim_trailing_blank(lines[:next_index], index + 1)
                )
        return SectionSpan(index, _trim_trailing_blank(lines, index + 1))

    raise McpError(
        "SECTION_NOT_FOUND",
        "Target section not found.",
        {"target": target},
    )


def find_anchor_block(lines: list[str], tag: str) -> SectionSpan | None:
    """Return the interior lines of an anchor block, or ``None`` when absent.

    An unterminated block runs to the end of the document.
    """
    start_marker = re.compile(rf"<!--\s*START:\s*{re.escape(tag)}\s*-->", re.I)
    end_marker = re.compile(rf"<!--\s*END:\s*{re.escape(tag)}\s*-->", re.I)
    for index, line in enumerate(lines):
        if not start_marker.search(line):
            continue
        for end_index in range(index + 1, len(lines)):
            if end_marker.search(lines[end_index]):
                return SectionSpan(index + 1, end_index)
        return SectionSpan(index + 1, _trim_trailing_blank(lines, index + 1))
    return None


def replace_span(lines: list[str], span: SectionSpan, new_lines: list[str]) -> list[str]:
    return lines[: span.start] + new_lines + lines[span.end :]


def append_anchor_block(lines: list[str], tag: str, body: list[str]) -> list[str]:
    """Append a new anchor block after the document's last non-blank line."""
    kept = lines[: _trim_trailing_blank(lines, 0)]
    return kept + [f"<!-- START: {tag} -->", *body, f"<!-- END: {tag} -->", ""]


def span_text(lines: list[str], span: SectionSpan) -> str:
    return "\n".join(lines[span.start : span.end])


def text_lines(text: str) -> list[str]:
    """Split serialized engine output into lines, dropping a trailing empty line."""
    if not text:
        return []
    lines = split_lines(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _trim_trailing_blank(lines: list[str], floor: int) -> int:
    end = len(lines)
    while end > floor and not lines[end - 1].strip():
        end -= 1
    return end


def _heading_level(line: str) -> int | None:
    classified = classify_line(line)
    if isinstance(classified, HeadingLine):
        return classified.level
    return None
