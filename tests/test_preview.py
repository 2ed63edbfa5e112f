from docmark.config import ParserConfig
from docmark.markdown.document import parse_document, serialize_document
from docmark.markdown.preview import strip_metadata_comments


def test_preview_of_sample(sample_markdown):
    preview = strip_metadata_comments(sample_markdown)
    assert "docmark-" not in preview.replace("<!-- <docmark-references> -->", "")
    assert "## Intro {#chapter-chapter-2}" in preview
    assert "### End {#chapter-chapter-7}" in preview
    assert "## References {#references-section}" in preview
    assert "<a id=" not in preview
    # code blocks and plain comments are untouched
    assert "```\n# not a heading\n```" in preview
    assert "Body text with <!-- not metadata --> inside." in preview
    assert preview.startswith("A short preface.")


def test_preview_of_handwritten(handwritten_markdown):
    normalized = serialize_document(parse_document(handwritten_markdown))
    assert strip_metadata_comments(normalized).split("\n")[:6] == [
        "Preface line.",
        "<!-- not metadata -->",
        "",
        "Lead-in text.",
        "## First {#first}",
        "Untagged opening.",
    ]


def test_chapter_anchor_wins_over_inline_anchor():
    text = '<!-- {"docmark-chapter": {"id": "c1", "anchorId": "meta"}} -->\n## Title {#inline}\n'
    assert strip_metadata_comments(text) == "## Title {#meta}"


def test_inline_anchor_is_kept():
    assert strip_metadata_comments("# Title {#mine}\ntext") == "# Title {#mine}\ntext"


def test_anchor_line_after_heading():
    text = '## Title\n<a id="below"></a>\nBody'
    assert strip_metadata_comments(text) == "## Title {#below}\nBody"


def test_anchor_line_without_heading_is_kept():
    text = 'Intro\n<a id="loose"></a>\nMore text'
    assert strip_metadata_comments(text) == text


def test_inline_metadata_comment_is_removed():
    text = 'Some <!-- {"docmark-paragraph": {"id": "p1"}} -->text'
    assert strip_metadata_comments(text) == "Some text"


def test_unparseable_comment_is_kept():
    text = '<!-- {"docmark-paragraph": {broken -->\nText'
    assert strip_metadata_comments(text) == text


def test_preview_with_custom_prefix():
    config = ParserConfig(comment_prefix="notes-")
    text = '<!-- {"notes-chapter": {"id": "c1", "anchorId": "x"}} -->\n## T\n'
    assert strip_metadata_comments(text, config) == "## T {#x}"
    assert strip_metadata_comments(text).startswith("<!--")
