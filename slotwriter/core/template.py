"""Parser for the per-slot ``measurement,tags fields`` configuration strings.

A slot template has two space separated sections::

    measurementName,tagKey1=tagValue,...,tagKeyX=tagValue fieldKey1,...,fieldKeyX

The first section names the measurement and, optionally, the tags attached to
every point written by the slot. The second lists the field keys that receive
the slot value. A backslash escapes a space, comma, equals sign or another
backslash so names can contain them; any other escape is rejected, as are
control characters and whitespace other than a plain space.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import List, Tuple

_ESCAPABLE = " ,=\\"
_UNESCAPE = re.compile(r"\\([ ,=\\])")


class MalformedTemplate(ValueError):
    """Raised when a slot configuration string cannot be parsed."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"invalid template {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


@dataclass(frozen=True)
class Template:
    """Parsed slot template. Tag order is kept as written."""

    measurement: str
    tags: Tuple[Tuple[str, str], ...]
    field_keys: Tuple[str, ...]

    @property
    def tag_map(self) -> dict:
        return dict(self.tags)


def _check_characters(text: str) -> None:
    escaped = False
    for position, char in enumerate(text):
        if unicodedata.category(char).startswith("C") or (char.isspace() and char != " "):
            raise MalformedTemplate(text, f"unsupported character {char!r} at position {position}")
        if escaped:
            if char not in _ESCAPABLE:
                raise MalformedTemplate(text, f"unsupported escape '\\{char}' at position {position - 1}")
            escaped = False
        elif char == "\\":
            escaped = True
    if escaped:
        raise MalformedTemplate(text, "dangling backslash at the end")


def _split_unescaped(text: str, sep: str) -> List[str]:
    """Split on ``sep`` ignoring escaped occurrences. Escapes are kept."""

    parts: List[str] = []
    current: List[str] = []
    escaped = False
    for char in text:
        if escaped:
            current.append("\\" + char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == sep:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _unescape(token: str) -> str:
    return _UNESCAPE.sub(r"\1", token)


def parse_template(raw: str) -> Template:
    """Parse ``raw`` into a :class:`Template`.

    Raises :class:`MalformedTemplate` when the sections, measurement, tags or
    field keys do not follow the expected layout.
    """

    if raw is None:
        raise MalformedTemplate("", "template is empty")
    text = str(raw).strip()
    _check_characters(text)
    # runs of spaces count as one separator
    sections = [section for section in _split_unescaped(text, " ") if section] if text else []
    if len(sections) != 2:
        raise MalformedTemplate(
            text,
            f"expected a tag section and a field section separated by a space, found {len(sections)} section(s)",
        )
    tag_section, field_section = sections

    tag_tokens = _split_unescaped(tag_section, ",")
    measurement = _unescape(tag_tokens[0])
    if not measurement:
        raise MalformedTemplate(text, "measurement name is empty")

    tags: List[Tuple[str, str]] = []
    seen_tags = set()
    for token in tag_tokens[1:]:
        pieces = _split_unescaped(token, "=")
        if len(pieces) != 2:
            raise MalformedTemplate(text, f"tag {token!r} is not of the form key=value")
        key, value = (_unescape(piece) for piece in pieces)
        if not key or not value:
            raise MalformedTemplate(text, f"tag {token!r} needs a non-empty key and value")
        if key in seen_tags:
            raise MalformedTemplate(text, f"duplicate tag key {key!r}")
        seen_tags.add(key)
        tags.append((key, value))

    field_keys: List[str] = []
    for token in _split_unescaped(field_section, ","):
        key = _unescape(token)
        if not key:
            raise MalformedTemplate(text, "field section contains an empty field key")
        if key in field_keys:
            raise MalformedTemplate(text, f"duplicate field key {key!r}")
        field_keys.append(key)

    return Template(measurement=measurement, tags=tuple(tags), field_keys=tuple(field_keys))
