"""Line protocol encoding for a single slot value."""

from __future__ import annotations

import math
import re
from numbers import Real

from .template import Template

# a backslash that would swallow the next delimiter, or the one after the name
_MEASUREMENT_BACKSLASH = re.compile(r"\\(?=[, \\]|$)")
_KEY_BACKSLASH = re.compile(r"\\(?=[,= \\]|$)")


class EncodeError(ValueError):
    """Raised when a template/value pair cannot be rendered as a record."""


def _escape_measurement(value: str) -> str:
    """Escape a measurement name for Influx line protocol."""

    text = _MEASUREMENT_BACKSLASH.sub(r"\\\\", str(value))
    return text.replace(",", r"\,").replace(" ", r"\ ")


def _escape_key(value: str) -> str:
    """Escape tag keys, tag values and field keys for Influx line protocol."""

    text = _KEY_BACKSLASH.sub(r"\\\\", str(value))
    return text.replace(",", r"\,").replace("=", r"\=").replace(" ", r"\ ")


def format_field_value(value: object) -> str:
    """Format a field value according to the Influx line protocol.

    Integers are written without the ``i`` suffix so a slot keeps a float
    field type whether it receives ``1`` or ``1.5``. Strings with a line
    break are rejected because the store does not unescape ``\\n``.
    """

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Real):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            raise EncodeError(f"field value {value!r} is not finite")
        return repr(number)
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    if value is None:
        raise EncodeError("field value is missing")

    text = str(value)
    if "\n" in text or "\r" in text:
        raise EncodeError(f"string field value {text!r} contains a line break")
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def encode_line(template: Template, value: object) -> str:
    """Render ``value`` under every field key of ``template``.

    No timestamp is appended; the store assigns the receive time.
    """

    if not template.field_keys:
        raise EncodeError(f"template for measurement {template.measurement!r} has no field keys")

    rendered = format_field_value(value)
    prefix = _escape_measurement(template.measurement)
    if template.tags:
        tags_payload = ",".join(f"{_escape_key(k)}={_escape_key(v)}" for k, v in template.tags)
        prefix = f"{prefix},{tags_payload}"
    fields_payload = ",".join(f"{_escape_key(key)}={rendered}" for key in template.field_keys)
    return f"{prefix} {fields_payload}"
