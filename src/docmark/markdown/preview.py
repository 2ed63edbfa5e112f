"""
Metadata-free Markdown for plain previews.

Metadata comments are dropped, and chapter anchors (from ``anchorId`` or from
``<a id="..."></a>`` lines) are folded into a trailing ``{#id}`` on the heading
they belong to. Comments that are not metadata are left where they are.
"""

import logging
from typing import Optional

from docmark.config import ParserConfig, resolve_config
from docmark.markdown.codec import get_codec, line_bounds
from docmark.markdown.lines import (
    LineKind,
    classify_lines,
    parse_anchor,
    parse_heading,
    split_inline_anchor,
)
from docmark.schemas import ChapterMetadata
from docmark.text import normalize_line_endings

# stands in for a chapter comment between the two passes
_CHAPTER_MARK = "\x00chapter-anchor:"


def _drop_comments(text: str, config: ParserConfig) -> str:
    codec = get_codec(config.comment_prefix)
    pieces = []
    cursor = 0
    comments = codec.scan(text)
    for comment in comments:
        start, end = line_bounds(text, comment.start, comment.end)
        start = max(start, cursor)
        pieces.append(text[cursor:start])
        whole_line = (start, end) != (comment.start, comment.end)
        if isinstance(comment.value, ChapterMetadata) and comment.value.anchor_id and whole_line:
            pieces.append(f"{_CHAPTER_MARK}{comment.value.anchor_id}\n")
        cursor = end
    pieces.append(text[cursor:])
    logging.debug(f"Dropped {len(comments)} metadata comments from preview")
    return "".join(pieces)


def _anchored(line: str, anchor: Optional[str]) -> str:
    level, content = parse_heading(line)
    content, inline = split_inline_anchor(content)
    anchor = anchor or inline
    heading = f"{'#' * level} {content}"
    return f"{heading} {{#{anchor}}}" if anchor else heading


def strip_metadata_comments(text: str, config: Optional[ParserConfig] = None) -> str:
    """
    Return `text` without metadata comments, with anchors moved onto headings.

    A chapter's ``anchorId`` goes to the first heading after its comment. An
    anchor line goes to the heading right before or right after it; otherwise
    it is kept as is.

    >>> strip_metadata_comments('<a id="intro"></a>\\n## Intro\\nHello')
    '## Intro {#intro}\\nHello'
    """
    config = resolve_config(config)
    text = _drop_comments(normalize_line_endings(text or ""), config)

    lines = text.split("\n")
    kinds = classify_lines(lines)
    out: list[str] = []
    chapter_anchor: Optional[str] = None
    pending: Optional[str] = None
    pending_line = ""
    # index in `out` of a heading written on the previous line without an anchor
    bare_heading: Optional[int] = None

    for line, kind in zip(lines, kinds):
        if line.startswith(_CHAPTER_MARK):
            chapter_anchor = line[len(_CHAPTER_MARK) :]
            bare_heading = None
            continue
        if kind is LineKind.ANCHOR:
            anchor = parse_anchor(line)
            if bare_heading is not None and pending is None:
                out[bare_heading] = _anchored(out[bare_heading], anchor)
                bare_heading = None
                continue
            if pending is not None and pending != anchor:
                out.append(pending_line)
            pending, pending_line = anchor, line
            continue
        bare_heading = None
        if kind is LineKind.HEADING:
            anchor = chapter_anchor or pending
            out.append(_anchored(line, anchor))
            if anchor is None and split_inline_anchor(parse_heading(line)[1])[1] is None:
                bare_heading = len(out) - 1
            chapter_anchor = pending = None
            continue
        if kind is not LineKind.BLANK and pending is not None:
            out.append(pending_line)
            pending = None
        out.append(line)

    if pending is not None:
        out.append(pending_line)
    return "\n".join(out).strip()
