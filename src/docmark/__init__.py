from docmark.config import ConfigError, ParserConfig, load_config
from docmark.io.store import DocumentStore
from docmark.markdown.document import (
    assign_missing_ids,
    create_empty_document,
    parse_document,
    serialize_document,
)
from docmark.markdown.preview import strip_metadata_comments
from docmark.schemas import Chapter, Document, Heading, Paragraph

__all__ = [
    "Chapter",
    "ConfigError",
    "Document",
    "DocumentStore",
    "Heading",
    "Paragraph",
    "ParserConfig",
    "assign_missing_ids",
    "create_empty_document",
    "load_config",
    "parse_document",
    "serialize_document",
    "strip_metadata_comments",
]
