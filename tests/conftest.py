import itertools

import pytest

from docmark.config import ParserConfig
from docmark.markdown.codec import get_codec
from docmark.schemas import (
    Chapter,
    CommentThread,
    Document,
    DocumentMetadata,
    Heading,
    Paragraph,
    Reference,
    ReferencesMetadata,
    TocMetadata,
)


@pytest.fixture
def id_factory():
    """Deterministic ids: doc-1, chapter-2, paragraph-3, ..."""
    counter = itertools.count(1)

    def make(prefix: str) -> str:
        return f"{prefix}-{next(counter)}"

    return make


@pytest.fixture
def config():
    return ParserConfig()


@pytest.fixture
def codec():
    return get_codec()


@pytest.fixture
def journal_reference():
    return Reference(
        type="journal",
        authors="Doe, J.",
        year=2020,
        title="On Things",
        journal="J. Stuff",
        volume="12",
        pages="1-9",
    )


@pytest.fixture
def sample_document(journal_reference):
    """Three chapters, a TOC and one structured reference; no ids yet."""
    return Document(
        metadata=DocumentMetadata(
            title="Field Notes",
            comments=CommentThread(
                toc=TocMetadata(),
                tor=ReferencesMetadata(references=[journal_reference]),
            ),
        ),
        preface="A short preface.",
        chapters=[
            Chapter(
                heading=Heading(level=2, text="Intro"),
                paragraphs=[Paragraph(text="First paragraph."), Paragraph(text="Second paragraph.")],
            ),
            Chapter(
                heading=Heading(level=2, text="Body"),
                paragraphs=[Paragraph(text="Body text with <!-- not metadata --> inside.")],
            ),
            Chapter(
                heading=Heading(level=3, text="End"),
                paragraphs=[Paragraph(text="```\n# not a heading\n```")],
            ),
        ],
    )


SAMPLE_MARKDOWN = """\
<!-- {"docmark-document":{"id":"doc-1","title":"Field Notes"}} -->
A short preface.

<!-- {"docmark-toc":{}} -->
## Table of Contents
- [Chapter 1: Intro](#chapter-chapter-2)
- [Chapter 2: Body](#chapter-chapter-5)
- [Chapter 3: End](#chapter-chapter-7)

<!-- {"docmark-chapter":{"id":"chapter-2","anchorId":"chapter-chapter-2"}} -->
<a id="chapter-chapter-2"></a>
## Intro
<!-- {"docmark-paragraph":{"id":"paragraph-3"}} -->
First paragraph.

<!-- {"docmark-paragraph":{"id":"paragraph-4"}} -->
Second paragraph.

<!-- {"docmark-chapter":{"id":"chapter-5","anchorId":"chapter-chapter-5"}} -->
<a id="chapter-chapter-5"></a>
## Body
<!-- {"docmark-paragraph":{"id":"paragraph-6"}} -->
Body text with <!-- not metadata --> inside.

<!-- {"docmark-chapter":{"id":"chapter-7","anchorId":"chapter-chapter-7"}} -->
<a id="chapter-chapter-7"></a>
### End
<!-- {"docmark-paragraph":{"id":"paragraph-8"}} -->
```
# not a heading
```

<!-- {"docmark-references":{"references":[{"type":"journal","authors":"Doe, J.","year":2020,"title":"On Things","journal":"J. Stuff","volume":"12","pages":"1-9"}]}} -->
<!-- <docmark-references> -->
<a id="references-section"></a>
## References
1. Doe, J. (2020). On Things. *J. Stuff*, 12, 1-9.

"""


@pytest.fixture
def sample_markdown():
    """What `sample_document` serializes to with the `id_factory` ids."""
    return SAMPLE_MARKDOWN


@pytest.fixture
def handwritten_markdown():
    """Hand-edited input: CRLF, an unknown field, stray comments, an untagged paragraph."""
    return (
        '<!-- {"docmark-document": {"id": "doc-x", "title": "Notes", "secret": "drop me"}} -->\r\n'
        "Preface line.\r\n"
        "<!-- not metadata -->\r\n"
        "\r\n"
        '<!-- {"docmark-chapter": {"id": "ch-a"}} -->\r\n'
        "Lead-in text.\r\n"
        "## First {#first}\r\n"
        "Untagged opening.\r\n"
        "\r\n"
        '<!-- {"docmark-paragraph": {"id": "p-a", "type": "markdown"}} -->\r\n'
        "Tagged paragraph.\r\n"
        '<!-- {"docmark-chapter": {"id": "ch-b"}} -->\r\n'
        "Just text, no heading.\r\n"
    )
