import re
from typing import Optional

from docmark.markdown.codec import CommentCodec, MetadataComment, get_codec
from docmark.schemas import MetadataKind, Paragraph, ParagraphMetadata

_LEADING_WS_RE = re.compile(r"^\s*")
_TRAILING_WS_RE = re.compile(r"\s*$")
_LEADING_BLANK_LINES_RE = re.compile(r"^(?:[^\S\n]*\n)+")
_TRAILING_HSPACE_RE = re.compile(r"[^\S\n]+$")


def extract_spacing(segment: str) -> tuple[str, str, str]:
    """
    Split `segment` into ``(leading, text, trailing)`` whitespace and core.

    A whitespace-only segment is all leading.

    >>> extract_spacing("\\n  Hello\\n\\n")
    ('\\n  ', 'Hello', '\\n\\n')
    """
    leading = _LEADING_WS_RE.match(segment).group(0)
    if len(leading) == len(segment):
        return segment, "", ""
    trailing = _TRAILING_WS_RE.search(segment).group(0)
    core = segment[len(leading) : len(segment) - len(trailing)]
    return leading, core, trailing


def _untagged(segment: str) -> Optional[Paragraph]:
    leading, text, trailing = extract_spacing(segment)
    if not text.strip():
        return None
    return Paragraph(
        metadata=ParagraphMetadata(),
        leading=leading,
        text=text,
        trailing=trailing,
        has_metadata=False,
    )


def split_paragraphs(
    content: str,
    comments: Optional[list[MetadataComment]] = None,
    codec: Optional[CommentCodec] = None,
) -> list[Paragraph]:
    """
    Slice a chapter's paragraph region into paragraphs.

    Each paragraph comment starts a paragraph that runs to the next one (or to
    the end of `content`). Without paragraph comments the whole region is one
    untagged paragraph, or nothing if it is blank. Text in front of the first
    paragraph comment is kept as an untagged paragraph.
    """
    if comments is None:
        codec = codec or get_codec()
        comments = [c for c in codec.scan(content) if c.kind is MetadataKind.PARAGRAPH]
    if not comments:
        paragraph = _untagged(content)
        return [paragraph] if paragraph else []

    paragraphs = []
    preamble = _untagged(content[: comments[0].start])
    if preamble:
        paragraphs.append(preamble)
    for index, comment in enumerate(comments):
        next_start = comments[index + 1].start if index + 1 < len(comments) else len(content)
        leading, text, trailing = extract_spacing(content[comment.end : next_start])
        paragraphs.append(
            Paragraph(
                metadata=comment.value.model_copy(deep=True),
                leading=leading,
                text=text,
                trailing=trailing,
                has_metadata=True,
            )
        )
    return paragraphs


def strip_leading_blank_lines(value: str) -> str:
    if not value:
        return ""
    return _LEADING_BLANK_LINES_RE.sub("", value, count=1)


def ensure_trailing_blank_line(value: str) -> str:
    """
    Make sure a paragraph is followed by a blank line.

    >>> ensure_trailing_blank_line("")
    '\\n\\n'
    >>> ensure_trailing_blank_line("\\n")
    '\\n\\n'
    >>> ensure_trailing_blank_line("\\n\\n\\n")
    '\\n\\n\\n'
    """
    if not value:
        return "\n\n"
    check = _TRAILING_HSPACE_RE.sub("", value)
    if check.endswith("\n\n"):
        return value
    if check.endswith("\n"):
        return value + "\n"
    return value + "\n\n"


def compose_paragraph(paragraph: Paragraph) -> str:
    """Paragraph text with normalized spacing; always ends with a line break."""
    leading = strip_leading_blank_lines(paragraph.leading or "")
    trailing = ensure_trailing_blank_line(paragraph.trailing or "")
    content = f"{leading}{paragraph.text or ''}{trailing}"
    return content if content.endswith("\n") else content + "\n"
