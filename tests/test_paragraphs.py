import pytest

from docmark.markdown.paragraphs import (
    compose_paragraph,
    ensure_trailing_blank_line,
    extract_spacing,
    split_paragraphs,
    strip_leading_blank_lines,
)
from docmark.schemas import Paragraph

TWO_PARAGRAPHS = (
    '<!-- {"docmark-paragraph": {"id": "p1"}} -->\n'
    "First.\n\n"
    '<!-- {"docmark-paragraph": {"id": "p2", "type": "code"}} -->\n'
    "Second.\n"
)


def test_split_tagged_paragraphs():
    first, second = split_paragraphs(TWO_PARAGRAPHS)
    assert (first.id, first.leading, first.text, first.trailing) == ("p1", "\n", "First.", "\n\n")
    assert (second.id, second.text, second.trailing) == ("p2", "Second.", "\n")
    assert second.content_type == "code"
    assert first.content_type == "markdown"
    assert first.has_metadata and second.has_metadata


def test_split_untagged_region():
    (paragraph,) = split_paragraphs("\nJust prose.\n")
    assert not paragraph.has_metadata
    assert paragraph.id is None
    assert paragraph.text == "Just prose."


@pytest.mark.parametrize("content", ["", "\n\n", "   \n"])
def test_split_blank_region(content):
    assert split_paragraphs(content) == []


def test_text_before_first_comment_is_kept():
    paragraphs = split_paragraphs("Opening words.\n\n" + TWO_PARAGRAPHS)
    assert [p.text for p in paragraphs] == ["Opening words.", "First.", "Second."]
    assert [p.has_metadata for p in paragraphs] == [False, True, True]


def test_stray_comment_stays_in_text():
    content = '<!-- {"docmark-paragraph": {"id": "p1"}} -->\nA <!-- note --> B\n'
    (paragraph,) = split_paragraphs(content)
    assert paragraph.text == "A <!-- note --> B"


def test_empty_tagged_paragraph():
    (paragraph,) = split_paragraphs('<!-- {"docmark-paragraph": {"id": "p1"}} -->\n\n\n')
    assert paragraph.text == ""
    assert paragraph.leading == "\n\n\n"


def test_extract_spacing_whitespace_only():
    assert extract_spacing(" \n ") == (" \n ", "", "")


def test_strip_leading_blank_lines():
    assert strip_leading_blank_lines("\n  \n    indented") == "    indented"
    assert strip_leading_blank_lines("") == ""


def test_ensure_trailing_blank_line_ignores_trailing_spaces():
    assert ensure_trailing_blank_line("\n\n  ") == "\n\n  "


def test_compose_adds_blank_line_after_text():
    composed = compose_paragraph(Paragraph(text="Hello", trailing=""))
    assert composed == "Hello\n\n"


def test_compose_keeps_existing_spacing():
    paragraph = Paragraph(leading="\n\n  ", text="- item", trailing="\n\n\n")
    assert compose_paragraph(paragraph) == "  - item\n\n\n"


def test_compose_empty_paragraph():
    assert compose_paragraph(Paragraph()) == "\n\n"
