"""Slot templates, line protocol encoding and concurrent InfluxDB writes."""

from .client import (
    TRANSPORT_ERROR_CODE,
    UNKNOWN_ERROR_CODE,
    Destination,
    WriteClient,
    WriteResult,
    send,
)
from .dispatch import Dispatcher
from .gateway import Gateway, destination_from_settings
from .line import EncodeError, encode_line, format_field_value
from .metrics import WriteMetrics
from .slots import SlotRegistry, SlotSnapshot
from .status import LastStatus, StatusSink
from .template import MalformedTemplate, Template, parse_template

__all__ = [
    "TRANSPORT_ERROR_CODE",
    "UNKNOWN_ERROR_CODE",
    "Destination",
    "Dispatcher",
    "EncodeError",
    "Gateway",
    "LastStatus",
    "MalformedTemplate",
    "SlotRegistry",
    "SlotSnapshot",
    "StatusSink",
    "Template",
    "WriteClient",
    "WriteMetrics",
    "WriteResult",
    "destination_from_settings",
    "encode_line",
    "format_field_value",
    "parse_template",
    "send",
]
