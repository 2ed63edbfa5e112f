"""
Line classification for the Markdown section scanners.

The scanners (references stripping, TOC removal, chapter heading lookup,
preview anchors) all walk a block line by line. `classify_lines` gives every
line a `LineKind` and keeps track of fenced code, so a ``# comment`` inside a
code block is never mistaken for a heading.
"""

import re
from enum import Enum
from typing import Optional

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
INLINE_ANCHOR_RE = re.compile(r"\s*\{#([^}]+)\}\s*$")
ANCHOR_TAG_RE = re.compile(r"""^<a\s+id="([^"']+)"></a>$""", re.IGNORECASE)
FENCE_RE = re.compile(r"^(`{3,}|~{3,})")
NUMBERED_RE = re.compile(r"^\d+\.\s+")
BULLET_RE = re.compile(r"^[*-]\s+")
FOOTNOTE_RE = re.compile(r"^\[[^\]]+\]:")


class LineKind(Enum):
    BLANK = "blank"
    HEADING = "heading"
    FENCE = "fence"
    CODE = "code"
    NUMBERED = "numbered"
    BULLET = "bullet"
    FOOTNOTE = "footnote"
    ANCHOR = "anchor"
    COMMENT = "comment"
    TEXT = "text"


class ScanState(Enum):
    SCANNING = "scanning"
    INSIDE_REFERENCES_BLOCK = "inside_references_block"
    INSIDE_CODE_FENCE = "inside_code_fence"


def classify_line(line: str) -> LineKind:
    """Classify a single line, ignoring fence context."""
    trimmed = line.strip()
    if not trimmed:
        return LineKind.BLANK
    if FENCE_RE.match(trimmed):
        return LineKind.FENCE
    if HEADING_RE.match(trimmed):
        return LineKind.HEADING
    if ANCHOR_TAG_RE.match(trimmed):
        return LineKind.ANCHOR
    if trimmed.startswith("<!--"):
        return LineKind.COMMENT
    if NUMBERED_RE.match(trimmed):
        return LineKind.NUMBERED
    if BULLET_RE.match(trimmed):
        return LineKind.BULLET
    if FOOTNOTE_RE.match(trimmed):
        return LineKind.FOOTNOTE
    return LineKind.TEXT


def classify_lines(lines: list[str]) -> list[LineKind]:
    """
    Classify `lines`, treating everything between code fences as CODE.

    >>> [k.value for k in classify_lines(["# A", "```", "# not a heading", "```", "text"])]
    ['heading', 'fence', 'code', 'fence', 'text']
    """
    kinds = []
    state = ScanState.SCANNING
    fence_marker = ""
    for line in lines:
        kind = classify_line(line)
        if state is ScanState.INSIDE_CODE_FENCE:
            if kind is LineKind.FENCE and line.strip().startswith(fence_marker):
                state = ScanState.SCANNING
                kinds.append(LineKind.FENCE)
            else:
                kinds.append(LineKind.CODE)
            continue
        if kind is LineKind.FENCE:
            fence_marker = FENCE_RE.match(line.strip()).group(1)
            state = ScanState.INSIDE_CODE_FENCE
        kinds.append(kind)
    return kinds


def parse_heading(line: str) -> Optional[tuple[int, str]]:
    """Return ``(level, content)`` for a heading line, or None."""
    m = HEADING_RE.match(line.strip())
    if not m:
        return None
    return len(m.group(1)), m.group(2).strip()


def split_inline_anchor(content: str) -> tuple[str, Optional[str]]:
    """Split a trailing ``{#id}`` off heading content."""
    m = INLINE_ANCHOR_RE.search(content)
    if not m:
        return content, None
    return content[: m.start()].strip(), m.group(1).strip()


def parse_anchor(line: str) -> Optional[str]:
    m = ANCHOR_TAG_RE.match(line.strip())
    return m.group(1).strip() if m else None
