"""Sinks receiving the outcome of every dispatched write."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol, runtime_checkable

from .client import WriteResult


@runtime_checkable
class StatusSink(Protocol):
    """Contract for consumers of per-slot write results."""

    def report(self, index: int, result: WriteResult) -> None:
        """Receive the result of the write issued for slot ``index``."""


class LastStatus:
    """Keep the last failure code and message, like the debugging outputs.

    A successful write leaves both values untouched.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.last_code: Optional[int] = None
        self.last_message: Optional[str] = None
        self.last_slot: Optional[int] = None

    def report(self, index: int, result: WriteResult) -> None:
        if result.ok:
            return
        with self._lock:
            if result.code is not None:
                self.last_code = result.code
            if result.message is not None:
                self.last_message = result.message
            self.last_slot = index

    def as_dict(self) -> Dict[str, object]:
        with self._lock:
            return {
                "last_code": self.last_code,
                "last_message": self.last_message,
                "last_slot": self.last_slot,
            }
