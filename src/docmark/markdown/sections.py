"""
Generated sections: the Table of Contents and the References list.

Both are derived views. On parse they are removed from free text so they can
be regenerated; on serialize they are rendered from the chapter list and from
``comments.tor.references``.

The references scanner keeps a known false positive: once a References
heading has been seen, list-like lines are dropped until the first heading or
plain line. Hand-written list items placed directly under a generated block
are therefore removed along with it.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from docmark.markdown.lines import LineKind, ScanState, classify_lines, parse_anchor
from docmark.schemas import Reference
from docmark.text import normalize_line_endings

TOC_HEADING = "Table of Contents"
REFERENCES_HEADING = "References"
NO_CHAPTERS_LINE = "- No chapters available"
REFERENCES_ANCHOR_ID = "references-section"

TABLE_OF_CONTENTS_HEADING_RE = re.compile(r"^#{1,6}\s+Table of Contents$", re.IGNORECASE)
REFERENCES_HEADING_RE = re.compile(r"^#{1,6}\s+References$", re.IGNORECASE)
# any "<...references>" marker, so files written with another prefix are cleaned too
REFERENCES_MARKER_RE = re.compile(r"^<!--\s*<[\w.:-]*references>\s*-->$", re.IGNORECASE)

_GENERATED_KINDS = frozenset(
    {LineKind.NUMBERED, LineKind.BULLET, LineKind.FOOTNOTE, LineKind.ANCHOR, LineKind.COMMENT}
)


@dataclass
class StripResult:
    text: str
    removed: bool


def references_marker(prefix: str) -> str:
    return f"<!-- <{prefix}references> -->"


def strip_generated_references(text: str) -> StripResult:
    """
    Remove a previously generated References block from `text`.

    The marker comment and the references anchor are always dropped. A
    References heading switches the scanner into the references block, where
    blank, numbered, bulleted, footnote, anchor and comment lines are dropped
    until another heading or a plain line shows up.

    A block that runs to the end of `text` is cut off exactly, so whatever
    precedes it comes back verbatim. Elsewhere, blank lines on both sides of a
    removed block collapse to a single blank line.
    """
    if not text:
        return StripResult(text or "", False)

    lines = normalize_line_endings(text).split("\n")
    kinds = classify_lines(lines)
    keep = [True] * len(lines)
    state = ScanState.SCANNING

    for idx, (line, kind) in enumerate(zip(lines, kinds)):
        trimmed = line.strip()
        if kind is LineKind.BLANK:
            keep[idx] = state is not ScanState.INSIDE_REFERENCES_BLOCK
        elif kind is LineKind.COMMENT and REFERENCES_MARKER_RE.match(trimmed):
            keep[idx] = False
        elif kind is LineKind.ANCHOR and parse_anchor(trimmed) == REFERENCES_ANCHOR_ID:
            keep[idx] = False
        elif kind is LineKind.HEADING and REFERENCES_HEADING_RE.match(trimmed):
            state = ScanState.INSIDE_REFERENCES_BLOCK
            keep[idx] = False
        elif state is ScanState.INSIDE_REFERENCES_BLOCK:
            if kind is not LineKind.HEADING and (
                kind in _GENERATED_KINDS or trimmed.startswith("<a ")
            ):
                keep[idx] = False
            else:
                state = ScanState.SCANNING

    if all(keep):
        return StripResult(text, False)

    first = keep.index(False)
    at_end = all(
        not keep[idx] or kinds[idx] is LineKind.BLANK for idx in range(first, len(lines))
    )
    if at_end:
        cleaned = "\n".join(lines[:first]) + ("\n" if first else "")
    else:
        kept: list[str] = []
        gap = False
        for line, kind, wanted in zip(lines, kinds, keep):
            if not wanted:
                gap = True
            elif kind is LineKind.BLANK:
                if not (gap and kept and not kept[-1].strip()):
                    kept.append(line)
            else:
                kept.append(line)
                gap = False
        cleaned = "\n".join(kept)
    logging.debug(f"Removed {keep.count(False)} generated reference lines")
    return StripResult(cleaned, True)


def strip_section_by_heading(text: str, heading_re: re.Pattern) -> tuple[str, list[str]]:
    """
    Cut the section introduced by the first heading matching `heading_re`.

    The section runs up to, not including, the next heading. Returns the
    trimmed remaining text and the removed lines; `text` is returned as-is
    when no heading matches.
    """
    if not text:
        return "", []
    lines = text.split("\n")
    kinds = classify_lines(lines)
    start = next(
        (
            idx
            for idx, (line, kind) in enumerate(zip(lines, kinds))
            if kind is LineKind.HEADING and heading_re.match(line.strip())
        ),
        None,
    )
    if start is None:
        return text, []
    end = next(
        (idx for idx in range(start + 1, len(lines)) if kinds[idx] is LineKind.HEADING),
        len(lines),
    )
    remaining = "\n".join(lines[:start] + lines[end:]).strip()
    return remaining, lines[start:end]


def strip_table_of_contents(text: str) -> str:
    remaining, section = strip_section_by_heading(text, TABLE_OF_CONTENTS_HEADING_RE)
    if section:
        logging.debug(f"Removed generated table of contents ({len(section)} lines)")
    return remaining


def render_table_of_contents(entries: list[tuple[str, str]], comment: str = "") -> str:
    """
    Render the TOC block from ``(heading text, anchor id)`` pairs in chapter order.

    >>> print(render_table_of_contents([("Intro", "chapter-a")]), end="")
    ## Table of Contents
    - [Chapter 1: Intro](#chapter-a)
    <BLANKLINE>
    """
    parts = [comment, f"## {TOC_HEADING}\n"]
    if entries:
        lines = [
            f"- [Chapter {index}: {text}](#{anchor})"
            for index, (text, anchor) in enumerate(entries, start=1)
        ]
        parts.append("\n".join(lines) + "\n\n")
    else:
        parts.append(f"{NO_CHAPTERS_LINE}\n\n")
    return "".join(parts)


def render_references(
    references: list[Union[Reference, dict[str, Any]]],
    comment: str = "",
    marker: str = references_marker("docmark-"),
) -> str:
    parts = [
        comment,
        f"{marker}\n",
        f'<a id="{REFERENCES_ANCHOR_ID}"></a>\n',
        f"## {REFERENCES_HEADING}\n",
    ]
    for index, reference in enumerate(references, start=1):
        parts.append(f"{index}. {format_reference_citation(reference)}\n")
    parts.append("\n")
    return "".join(parts)


def _format_access_date(value: str) -> str:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_reference_citation(reference: Union[Reference, dict[str, Any]]) -> str:
    """
    Format one reference as a citation line.

    >>> format_reference_citation({"type": "book", "authors": "Roe, R.", "year": 1999,
    ...     "title": "Stones", "publisher": "Acme", "location": "Oslo"})
    'Roe, R. (1999). *Stones*. Oslo: Acme.'
    >>> format_reference_citation({"title": "Untitled draft"})
    'Untitled draft'
    """
    if isinstance(reference, dict):
        reference = Reference.model_validate(reference)

    authors = reference.authors
    if isinstance(authors, list):
        authors = ", ".join(str(author) for author in authors if author)
    year = reference.year
    title = reference.title
    if not authors or not year or not title:
        return title or ""

    citation = f"{authors} ({year}). "
    kind = reference.type
    if kind == "journal":
        citation += f"{title}. "
        if reference.journal:
            citation += f"*{reference.journal}*"
            if reference.volume:
                citation += f", {reference.volume}"
            if reference.pages:
                citation += f", {reference.pages}"
            citation += ". "
    elif kind == "book":
        citation += f"*{title}*. "
        if reference.publisher:
            if reference.location:
                citation += f"{reference.location}: "
            citation += f"{reference.publisher}. "
    elif kind == "website":
        citation += f"{title}. "
        if reference.website:
            citation += f"*{reference.website}*. "
        if reference.access_date:
            citation += f"Retrieved {_format_access_date(reference.access_date)}. "
    elif kind == "report":
        citation += f"*{title}*"
        if reference.publisher:
            citation += f" (Report). {reference.publisher}"
        citation += ". "
    else:
        citation += f"*{title}*. "

    url = reference.url
    if url:
        if url.startswith("doi:"):
            citation += f"https://doi.org/{url[4:]}"
        else:
            citation += url
    return citation.strip()
