"""
Parse a Markdown file with metadata comments into a `Document` tree, and back.

Serialized layout::

    <!-- {"docmark-document": {...}} -->
    preface

    <!-- {"docmark-toc": {...}} -->
    ## Table of Contents
    - [Chapter 1: Intro](#chapter-...)

    <!-- {"docmark-chapter": {..., "anchorId": "chapter-..."}} -->
    <a id="chapter-..."></a>
    ## Intro
    <!-- {"docmark-paragraph": {...}} -->
    Paragraph text.

    <!-- {"docmark-references": {...}} -->
    <!-- <docmark-references> -->
    <a id="references-section"></a>
    ## References
    1. Doe, J. (2020). ...

`serialize_document(parse_document(text)) == text` for any text written by
`serialize_document`.
"""

import logging
import re
from collections.abc import Callable
from typing import Optional

from pydantic import BaseModel

from docmark.config import ParserConfig, resolve_config
from docmark.io.ids import generate_id
from docmark.markdown.codec import CommentCodec, MetadataComment, get_codec
from docmark.markdown.lines import (
    LineKind,
    classify_lines,
    parse_anchor,
    parse_heading,
    split_inline_anchor,
)
from docmark.markdown.paragraphs import compose_paragraph, split_paragraphs
from docmark.markdown.sections import (
    REFERENCES_ANCHOR_ID,
    references_marker,
    render_references,
    render_table_of_contents,
    strip_generated_references,
    strip_table_of_contents,
)
from docmark.schemas import (
    SYNTHETIC_HEADING_TEXT,
    Chapter,
    ChapterMetadata,
    CommentThread,
    Document,
    DocumentMetadata,
    Heading,
    MetadataKind,
    Paragraph,
    ParagraphMetadata,
    dump_metadata,
)
from docmark.text import normalize_line_endings, unescape_entities

IdFactory = Callable[[str], str]

NEW_CHAPTER_TITLE = "New Chapter"
_EXCESS_BREAKS_RE = re.compile(r"\n{4,}")
_SECTION_KINDS = (MetadataKind.DOCUMENT, MetadataKind.TOC, MetadataKind.REFERENCES)


def _first(comments: list[MetadataComment], kind: MetadataKind) -> Optional[MetadataComment]:
    return next((c for c in comments if c.kind is kind), None)


def _copy(model: BaseModel) -> BaseModel:
    return model.model_copy(deep=True)


def _pull_anchor(line: str) -> Optional[str]:
    anchor = parse_anchor(line)
    if anchor == REFERENCES_ANCHOR_ID:
        return None
    return anchor


def _parse_chapter(
    block: str,
    metadata: ChapterMetadata,
    codec: CommentCodec,
    config: ParserConfig,
    strip_references: bool,
) -> Chapter:
    block = codec.strip(block, kinds=_SECTION_KINDS, drop_lines=True)
    lines = block.split("\n")
    kinds = classify_lines(lines)
    heading_index = next(
        (idx for idx, kind in enumerate(kinds) if kind is LineKind.HEADING), None
    )

    tag_anchor = None
    inline_anchor = None
    if heading_index is None:
        # no heading: only anchors at the very top of the block belong to the chapter
        region_lines = []
        for idx, (line, kind) in enumerate(zip(lines, kinds)):
            if kind not in (LineKind.BLANK, LineKind.ANCHOR):
                region_lines.extend(lines[idx:])
                break
            anchor = _pull_anchor(line) if kind is LineKind.ANCHOR else None
            if anchor:
                tag_anchor = tag_anchor or anchor
            else:
                region_lines.append(line)
        heading = Heading(level=config.default_heading_level, text=SYNTHETIC_HEADING_TEXT)
        leading = ""
        region = "\n".join(region_lines)
    else:
        leading_lines = []
        for line, kind in zip(lines[:heading_index], kinds[:heading_index]):
            anchor = _pull_anchor(line) if kind is LineKind.ANCHOR else None
            if anchor:
                tag_anchor = anchor
            else:
                leading_lines.append(line)
        rest = lines[heading_index + 1 :]
        if rest and kinds[heading_index + 1] is LineKind.ANCHOR:
            anchor = _pull_anchor(rest[0])
            if anchor:
                tag_anchor = tag_anchor or anchor
                rest = rest[1:]

        raw = lines[heading_index].strip()
        level, content = parse_heading(raw)
        content, inline_anchor = split_inline_anchor(content)
        heading = Heading(
            level=level,
            text=unescape_entities(content) or SYNTHETIC_HEADING_TEXT,
            raw=raw,
        )
        leading = "\n".join(leading_lines).strip()
        region = "\n".join(rest)

    if strip_references:
        region = strip_generated_references(region).text

    metadata.anchor_id = (
        metadata.anchor_id
        or tag_anchor
        or inline_anchor
        or (f"chapter-{metadata.id}" if metadata.id else None)
    )
    paragraphs = split_paragraphs(region, codec=codec)
    return Chapter(metadata=metadata, heading=heading, leading=leading, paragraphs=paragraphs)


def parse_document(text: str, config: Optional[ParserConfig] = None) -> Document:
    """
    Parse Markdown `text` into a `Document`.

    Never raises on malformed input: comments that are not metadata stay in
    the prose, a chapter without a heading gets a synthetic one.
    """
    config = resolve_config(config)
    codec = get_codec(config.comment_prefix)
    text = normalize_line_endings(text or "")
    comments = codec.scan(text)

    document_comment = _first(comments, MetadataKind.DOCUMENT)
    toc_comment = _first(comments, MetadataKind.TOC)
    references_comment = _first(comments, MetadataKind.REFERENCES)
    chapter_comments = [c for c in comments if c.kind is MetadataKind.CHAPTER]

    metadata = _copy(document_comment.value) if document_comment else DocumentMetadata()
    if toc_comment or references_comment:
        thread = metadata.comments or CommentThread()
        if toc_comment:
            thread.toc = _copy(toc_comment.value)
        if references_comment:
            thread.tor = _copy(references_comment.value)
        metadata.comments = thread
    document = Document(metadata=metadata)

    preface_start = document_comment.end if document_comment else 0
    preface_end = chapter_comments[0].start if chapter_comments else len(text)
    preface = codec.strip(text[preface_start:preface_end], drop_lines=True)
    if document.toc is not None:
        preface = strip_table_of_contents(preface)
    if document.tor is not None:
        preface = strip_generated_references(preface).text
    document.preface = preface.strip()

    strip_references = bool(document.references)
    for index, comment in enumerate(chapter_comments):
        end = (
            chapter_comments[index + 1].start
            if index + 1 < len(chapter_comments)
            else len(text)
        )
        document.chapters.append(
            _parse_chapter(
                text[comment.end : end],
                _copy(comment.value),
                codec,
                config,
                strip_references,
            )
        )

    logging.debug(
        f"Parsed document {document.id!r}: {len(comments)} metadata comments, "
        f"{len(document.chapters)} chapters, "
        f"{sum(len(c.paragraphs) for c in document.chapters)} paragraphs"
    )
    return document


def assign_missing_ids(document: Document, id_factory: IdFactory = generate_id) -> int:
    """
    Give every entity without an id a fresh one, in place.

    Paragraphs are marked as carrying metadata, since they will be written
    with a comment from now on. Returns the number of ids assigned.
    """
    assigned = 0
    if not (document.id or "").strip():
        document.id = id_factory("doc")
        assigned += 1
    for chapter in document.chapters:
        if not (chapter.id or "").strip():
            chapter.id = id_factory("chapter")
            assigned += 1
        for paragraph in chapter.paragraphs:
            if not (paragraph.id or "").strip():
                paragraph.id = id_factory("paragraph")
                assigned += 1
            paragraph.has_metadata = True
    if assigned:
        logging.debug(f"Assigned {assigned} missing ids")
    return assigned


def _document_payload(document: Document) -> dict:
    # toc and tor travel in their own comments
    data = dump_metadata(document.metadata)
    thread = data.get("comments")
    if isinstance(thread, dict):
        thread.pop("toc", None)
        thread.pop("tor", None)
    return data


def heading_text(chapter: Chapter) -> str:
    """The text written on a chapter's heading line."""
    return (chapter.heading.text or "").strip() or chapter.metadata.title or SYNTHETIC_HEADING_TEXT


def _heading_level(chapter: Chapter, config: ParserConfig) -> int:
    level = chapter.heading.level
    if isinstance(level, int) and 1 <= level <= 6:
        return level
    return config.default_heading_level


def _serialize_chapter(chapter: Chapter, codec: CommentCodec, config: ParserConfig) -> str:
    anchor = chapter.anchor_id
    metadata = chapter.metadata.model_copy(update={"anchor_id": anchor})
    parts = [codec.encode(MetadataKind.CHAPTER, metadata)]
    leading = (chapter.leading or "").strip()
    if leading:
        parts.append(f"{leading}\n")
    parts.append(f'<a id="{anchor}"></a>\n')
    parts.append(f"{'#' * _heading_level(chapter, config)} {heading_text(chapter)}\n")
    for paragraph in chapter.paragraphs:
        parts.append(codec.encode(MetadataKind.PARAGRAPH, paragraph.metadata))
        parts.append(compose_paragraph(paragraph))
    return "".join(parts)


def serialize_document(
    document: Document,
    config: Optional[ParserConfig] = None,
    id_factory: IdFactory = generate_id,
) -> str:
    """
    Render `document` as Markdown with metadata comments.

    Missing ids are back-filled on `document` first.
    """
    config = resolve_config(config)
    codec = get_codec(config.comment_prefix)
    assign_missing_ids(document, id_factory)

    output = codec.encode(MetadataKind.DOCUMENT, _document_payload(document))
    preface = (document.preface or "").strip()
    if preface:
        output += f"{preface}\n\n"

    if document.toc is not None:
        entries = [(heading_text(chapter), chapter.anchor_id) for chapter in document.chapters]
        output += render_table_of_contents(
            entries, codec.encode(MetadataKind.TOC, document.toc)
        )

    for index, chapter in enumerate(document.chapters):
        if index and not output.endswith("\n\n"):
            output += "\n"
        output += _serialize_chapter(chapter, codec, config)

    tor = document.tor
    if tor is not None:
        if not output.endswith("\n\n"):
            output += "\n" if output.endswith("\n") else "\n\n"
        comment = codec.encode(MetadataKind.REFERENCES, tor)
        if document.references:
            output += render_references(
                document.references, comment, references_marker(config.comment_prefix)
            )
        else:
            output += comment

    return _EXCESS_BREAKS_RE.sub("\n\n", output)


def create_empty_document(
    title: str = "Untitled Document",
    id_factory: IdFactory = generate_id,
) -> Document:
    """A new document with one empty chapter holding one empty paragraph."""
    chapter_id = id_factory("chapter")
    return Document(
        metadata=DocumentMetadata(id=id_factory("doc"), title=title),
        chapters=[
            Chapter(
                metadata=ChapterMetadata(
                    id=chapter_id,
                    title=NEW_CHAPTER_TITLE,
                    anchor_id=f"chapter-{chapter_id}",
                ),
                heading=Heading(text=NEW_CHAPTER_TITLE),
                paragraphs=[
                    Paragraph(
                        metadata=ParagraphMetadata(id=id_factory("paragraph"), type="markdown"),
                        has_metadata=True,
                    )
                ],
            )
        ],
    )
