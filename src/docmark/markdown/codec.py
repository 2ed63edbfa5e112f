"""
Inline metadata comments: recognition, decoding and encoding.

A metadata comment is an HTML comment whose trimmed body is a JSON object
with exactly one key, ``<prefix><kind>``, e.g.::

    <!-- {"docmark-chapter": {"id": "chapter-1", "anchorId": "intro"}} -->

Everything else (plain comments, malformed JSON, arrays, several keys, an
unknown tag) is ordinary content. Fields of a recognized comment that fail
validation are dropped; the comment itself stays metadata.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ValidationError

from docmark.schemas import METADATA_MODELS, MetadataKind, dump_metadata

DEFAULT_COMMENT_PREFIX = "docmark-"
COMMENT_OPEN = "<!--"
COMMENT_CLOSE = "-->"

# Kinds without an id are written whenever requested: their presence is the information.
_ID_BEARING_KINDS = frozenset(
    {MetadataKind.DOCUMENT, MetadataKind.CHAPTER, MetadataKind.PARAGRAPH}
)


@dataclass
class MetadataComment:
    kind: MetadataKind
    key: str
    value: BaseModel
    start: int
    end: int


def iter_comment_spans(text: str) -> Iterator[tuple[int, int, str]]:
    """
    Yield ``(start, end, interior)`` for every ``<!-- ... -->`` span in `text`.

    `end` is the offset just past the closing delimiter. An opener without a
    closing delimiter is skipped and the search resumes one character later.
    """
    search_from = 0
    while search_from < len(text):
        start = text.find(COMMENT_OPEN, search_from)
        if start == -1:
            return
        close = text.find(COMMENT_CLOSE, start + len(COMMENT_OPEN))
        if close == -1:
            search_from = start + 1
            continue
        end = close + len(COMMENT_CLOSE)
        yield start, end, text[start + len(COMMENT_OPEN) : close]
        search_from = end


def line_bounds(text: str, start: int, end: int) -> tuple[int, int]:
    """Widen ``text[start:end]`` to its full line if nothing else is on that line."""
    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", end)
    if line_end == -1:
        line_end = len(text)
    if text[line_start:start].strip() or text[end:line_end].strip():
        return start, end
    return line_start, min(line_end + 1, len(text))


def _has_id(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def prune_value(value: Any) -> Any:
    """
    Return `value` without empty parts, or None if nothing meaningful is left.

    Empty means None, a blank string, or a list/dict that prunes to empty.
    Inside dicts an ``id`` key survives whenever it is non-blank.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, list):
        pruned = [item for item in (prune_value(item) for item in value) if item is not None]
        return pruned or None
    if isinstance(value, dict):
        result = {}
        for key, nested in value.items():
            if key == "id":
                if _has_id(nested):
                    result[key] = nested
                continue
            pruned = prune_value(nested)
            if pruned is not None:
                result[key] = pruned
        return result or None
    return value


def prune_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    return prune_value(metadata) or {}


def _invalid_paths(value: dict[str, Any], errors: list[dict[str, Any]]) -> set[tuple]:
    """
    The deepest location inside `value` each validation error points at.

    Error locations may continue past the payload (union member names, for
    instance); the walk stops at the last key or index that exists. A path
    already covered by a shorter one is left out.
    """
    paths = set()
    for error in errors:
        node, path = value, ()
        for part in error["loc"]:
            in_dict = isinstance(node, dict) and part in node
            in_list = isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node)
            if not (in_dict or in_list):
                break
            path += (part,)
            node = node[part]
        if path:
            paths.add(path)
    return {path for path in paths if not any(path[:n] in paths for n in range(1, len(path)))}


def _delete_path(value: dict[str, Any], path: tuple) -> None:
    parent = value
    for part in path[:-1]:
        parent = parent[part]
    del parent[path[-1]]


class CommentCodec:
    """Reads and writes metadata comments for one tag prefix."""

    def __init__(self, prefix: str = DEFAULT_COMMENT_PREFIX) -> None:
        self.prefix = prefix
        self.tags: dict[MetadataKind, str] = {
            kind: f"{prefix}{kind.value}" for kind in MetadataKind
        }
        self._kinds_by_tag = {tag: kind for kind, tag in self.tags.items()}

    def tag(self, kind: MetadataKind) -> str:
        return self.tags[kind]

    def decode(self, interior: str) -> Optional[tuple[MetadataKind, BaseModel]]:
        """Decode a comment body into ``(kind, metadata)``, or None if it is not metadata."""
        payload = interior.strip()
        if not payload:
            return None
        try:
            decoded = orjson.loads(payload)
        except orjson.JSONDecodeError:
            return None
        if not isinstance(decoded, dict) or len(decoded) != 1:
            return None
        ((key, value),) = decoded.items()
        kind = self._kinds_by_tag.get(key)
        if kind is None:
            return None
        try:
            return kind, self.validate(kind, value)
        except ValidationError as e:
            logging.debug(f"Ignoring {key} comment that failed validation: {e}")
            return None

    def validate(self, kind: MetadataKind, value: Any) -> BaseModel:
        """
        Validate a raw payload as `kind` metadata, pruning empty values first.

        A payload that is not an object counts as empty metadata. Entries that
        fail validation are dropped and the rest is validated again, so one
        odd field never costs the comment its id.
        """
        model = METADATA_MODELS[kind]
        if not isinstance(value, dict):
            if value is not None:
                logging.debug(f"Treating non-object {kind.value} payload as empty")
            value = {}
        value = prune_metadata(value)
        try:
            return model.model_validate(value)
        except ValidationError as e:
            paths = _invalid_paths(value, e.errors())
            if not paths:
                raise
            logging.debug(
                f"Dropping invalid {kind.value} fields: "
                f"{sorted('.'.join(map(str, path)) for path in paths)}"
            )
            for path in sorted(paths, reverse=True):
                _delete_path(value, path)
            return model.model_validate(value)

    def scan(self, text: str) -> list[MetadataComment]:
        """All metadata comments in `text`, in document order."""
        if not text:
            return []
        found = []
        for start, end, interior in iter_comment_spans(text):
            decoded = self.decode(interior)
            if decoded is None:
                continue
            kind, value = decoded
            found.append(MetadataComment(kind, self.tags[kind], value, start, end))
        return found

    def strip(
        self,
        text: str,
        kinds: Optional[Iterable[MetadataKind]] = None,
        drop_lines: bool = False,
    ) -> str:
        """
        Remove metadata comment spans (only those of `kinds`, if given) from `text`.

        With `drop_lines`, a comment that is alone on its line takes the whole
        line, line break included, with it.
        """
        if not text:
            return ""
        wanted = set(kinds) if kinds is not None else None
        pieces = []
        cursor = 0
        for comment in self.scan(text):
            if wanted is not None and comment.kind not in wanted:
                continue
            start, end = comment.start, comment.end
            if drop_lines:
                start, end = line_bounds(text, start, end)
            start = max(start, cursor)
            pieces.append(text[cursor:start])
            cursor = end
        pieces.append(text[cursor:])
        return "".join(pieces)

    def payload(self, kind: MetadataKind, metadata: Any) -> dict[str, Any]:
        """The pruned, allow-listed payload that `encode` would write."""
        if metadata is None:
            metadata = {}
        if not isinstance(metadata, METADATA_MODELS[kind]):
            if isinstance(metadata, BaseModel):
                metadata = dump_metadata(metadata)
            metadata = METADATA_MODELS[kind].model_validate(metadata)
        elif kind in _ID_BEARING_KINDS:
            # revalidate so values assigned after construction are filtered and decoded too
            metadata = METADATA_MODELS[kind].model_validate(dump_metadata(metadata))
        return prune_metadata(dump_metadata(metadata))

    def encode(self, kind: MetadataKind, metadata: Any) -> str:
        """
        Render `metadata` as a single comment line, or "" when there is nothing to write.

        Document, chapter and paragraph comments need an id; TOC and
        References comments are always written.
        """
        payload = self.payload(kind, metadata)
        if kind in _ID_BEARING_KINDS and not _has_id(payload.get("id")):
            return ""
        wrapped = orjson.dumps({self.tags[kind]: payload}).decode("utf-8")
        return f"{COMMENT_OPEN} {wrapped} {COMMENT_CLOSE}\n"


@lru_cache(maxsize=8)
def get_codec(prefix: str = DEFAULT_COMMENT_PREFIX) -> CommentCodec:
    return CommentCodec(prefix)
