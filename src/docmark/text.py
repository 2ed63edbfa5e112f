"""
Small text helpers shared by the codec, the schemas and the parser.
"""

import re
from typing import Any

# Nested metadata deeper than this is left as-is by the sanitizer.
MAX_SANITIZE_DEPTH = 32

_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&amp;": "&",
    "&quot;": '"',
    "&#39;": "'",
    "&#x27;": "'",
    "&#x2F;": "/",
    "&#9;": "\t",
    "&#10;": "\n",
    "&#13;": "\n",
}
_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in _ENTITIES))


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def unescape_entities(value: str) -> str:
    """
    Decode the handful of HTML entities editors tend to leave behind.

    Decoding is a single pass, so ``&amp;lt;`` becomes ``&lt;`` and not ``<``.

    >>> unescape_entities("a &lt;b&gt; &amp;amp; c")
    'a <b> &amp; c'
    """
    if not value:
        return value
    return _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(0)], value)


def unescape_value(value: Any, depth: int = 0) -> Any:
    """Entity-decode every string inside `value`, up to MAX_SANITIZE_DEPTH levels."""
    if depth > MAX_SANITIZE_DEPTH:
        return value
    if isinstance(value, str):
        return unescape_entities(value)
    if isinstance(value, list):
        return [unescape_value(item, depth + 1) for item in value]
    if isinstance(value, dict):
        return {key: unescape_value(item, depth + 1) for key, item in value.items()}
    return value
