from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from docmark.text import unescape_value

DEFAULT_HEADING_LEVEL = 2
SYNTHETIC_HEADING_TEXT = "Chapter"
DEFAULT_PARAGRAPH_TYPE = "markdown"


def _unescape_fields(data: Any, nested: tuple[str, ...] = ()) -> Any:
    """Entity-decode a raw payload, leaving the `nested` keys to their own model."""
    if not isinstance(data, dict):
        return data
    return {key: value if key in nested else unescape_value(value) for key, value in data.items()}


class MetadataKind(str, Enum):
    """The five entity kinds a metadata comment can describe."""

    DOCUMENT = "document"
    CHAPTER = "chapter"
    PARAGRAPH = "paragraph"
    TOC = "toc"
    REFERENCES = "references"


class Reference(BaseModel):
    """
    One entry of the structured reference list.

    Unknown keys (ids, notes, ...) are kept so that nothing a plugin stored
    alongside a reference is lost on save.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    type: Optional[str] = None
    authors: Union[str, list[str], None] = None
    year: Union[int, str, None] = None
    title: Optional[str] = None
    journal: Optional[str] = None
    volume: Optional[str] = None
    pages: Optional[str] = None
    publisher: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    access_date: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _unescape(cls, data: Any) -> Any:
        return _unescape_fields(data)


class TocMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    collapsed: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _unescape(cls, data: Any) -> Any:
        return _unescape_fields(data)


class ReferencesMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    collapsed: Optional[bool] = None
    references: Optional[list[Reference]] = None

    @model_validator(mode="before")
    @classmethod
    def _unescape(cls, data: Any) -> Any:
        return _unescape_fields(data, nested=("references",))


class CommentThread(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    messages: Any = None
    status: Any = None
    plugin: Optional[str] = None
    plugin_last_opened: Optional[str] = None
    toc: Optional[TocMetadata] = None
    tor: Optional[ReferencesMetadata] = None

    @model_validator(mode="before")
    @classmethod
    def _unescape(cls, data: Any) -> Any:
        return _unescape_fields(data, nested=("toc", "tor"))


class EntityMetadata(BaseModel):
    """
    Fields shared by document, chapter and paragraph metadata.

    The declared fields are the allow-list: anything else in a decoded payload
    is dropped before validation, and only the declared fields are
    entity-decoded.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: Optional[str] = None
    title: Optional[str] = None
    commands: Optional[str] = None
    comments: Optional[CommentThread] = None
    # plugin-owned, stored as found
    plugin_state: Any = None
    references: Any = None
    attachments: Any = None
    snapshots: Any = None
    tasks: Any = None
    variables: Any = None

    @model_validator(mode="before")
    @classmethod
    def _keep_declared_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        names = set(cls.model_fields) | set(wire_names(cls))
        kept = {key: value for key, value in data.items() if key in names}
        return _unescape_fields(kept, nested=("comments",))

    @field_validator("commands", mode="before")
    @classmethod
    def _commands_as_text(cls, value: Any) -> Any:
        # older files store scripts as a list of lines or as an object
        if isinstance(value, list):
            return "\n".join(str(line) for line in value)
        if isinstance(value, dict):
            return orjson.dumps(value).decode("utf-8")
        return value


class DocumentMetadata(EntityMetadata):
    info_text: Optional[str] = None
    version: Optional[int] = None
    updated_at: Optional[str] = None


class ChapterMetadata(EntityMetadata):
    anchor_id: Optional[str] = None


class ParagraphMetadata(EntityMetadata):
    type: Optional[str] = None


METADATA_MODELS: dict[MetadataKind, type[BaseModel]] = {
    MetadataKind.DOCUMENT: DocumentMetadata,
    MetadataKind.CHAPTER: ChapterMetadata,
    MetadataKind.PARAGRAPH: ParagraphMetadata,
    MetadataKind.TOC: TocMetadata,
    MetadataKind.REFERENCES: ReferencesMetadata,
}


def wire_names(model: type[BaseModel]) -> tuple[str, ...]:
    """Wire names of the fields `model` declares."""
    return tuple(info.alias or name for name, info in model.model_fields.items())


def allowed_fields(kind: MetadataKind) -> tuple[str, ...]:
    return wire_names(METADATA_MODELS[kind])


def dump_metadata(metadata: Optional[BaseModel]) -> dict[str, Any]:
    """JSON-safe dict of a metadata model, using wire names and skipping unset values."""
    if metadata is None:
        return {}
    return metadata.model_dump(by_alias=True, exclude_none=True, mode="json")


@dataclass
class Heading:
    level: int = DEFAULT_HEADING_LEVEL
    text: str = ""
    # the line as found in the source; informational only
    raw: str = field(default="", compare=False)


@dataclass
class Paragraph:
    metadata: ParagraphMetadata = field(default_factory=ParagraphMetadata)
    leading: str = ""
    text: str = ""
    trailing: str = ""
    has_metadata: bool = False

    @property
    def id(self) -> Optional[str]:
        return self.metadata.id

    @id.setter
    def id(self, value: Optional[str]) -> None:
        self.metadata.id = value

    @property
    def content_type(self) -> str:
        return self.metadata.type or DEFAULT_PARAGRAPH_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "metadata": dump_metadata(self.metadata),
            "leading": self.leading,
            "text": self.text,
            "trailing": self.trailing,
            "hasMetadata": self.has_metadata,
        }


@dataclass
class Chapter:
    metadata: ChapterMetadata = field(default_factory=ChapterMetadata)
    heading: Heading = field(default_factory=Heading)
    leading: str = ""
    paragraphs: list[Paragraph] = field(default_factory=list)

    @property
    def id(self) -> Optional[str]:
        return self.metadata.id

    @id.setter
    def id(self, value: Optional[str]) -> None:
        self.metadata.id = value

    @property
    def anchor_id(self) -> Optional[str]:
        """Explicit anchor if one was assigned, otherwise ``chapter-<id>``."""
        if self.metadata.anchor_id:
            return self.metadata.anchor_id
        if self.id:
            return f"chapter-{self.id}"
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "metadata": dump_metadata(self.metadata),
            "heading": {"level": self.heading.level, "text": self.heading.text},
            "leading": self.leading,
            "paragraphs": [paragraph.to_dict() for paragraph in self.paragraphs],
        }


@dataclass
class Document:
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    preface: str = ""
    chapters: list[Chapter] = field(default_factory=list)

    @property
    def id(self) -> Optional[str]:
        return self.metadata.id

    @id.setter
    def id(self, value: Optional[str]) -> None:
        self.metadata.id = value

    @property
    def toc(self) -> Optional[TocMetadata]:
        comments = self.metadata.comments
        return comments.toc if comments is not None else None

    @property
    def tor(self) -> Optional[ReferencesMetadata]:
        comments = self.metadata.comments
        return comments.tor if comments is not None else None

    @property
    def references(self) -> list[Reference]:
        """Structured references rendered in the generated References section."""
        tor = self.tor
        if tor is None or not tor.references:
            return []
        return list(tor.references)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "metadata": dump_metadata(self.metadata),
            "preface": self.preface,
            "chapters": [chapter.to_dict() for chapter in self.chapters],
        }

    def to_json(self) -> str:
        """
        Serialize the tree (not the Markdown file) to an indented JSON string.
        """
        buf = orjson.dumps(
            self.to_dict(),
            option=orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE,
        )
        return buf.decode("utf-8")
