"""Thread-safe registry of input slots."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Set

from .template import MalformedTemplate, Template, parse_template

DEFAULT_VALUE = 0


@dataclass
class Slot:
    index: int
    value: Any = DEFAULT_VALUE
    raw_template: Optional[str] = None
    template: Optional[Template] = None
    error: Optional[str] = None

    def snapshot(self) -> "SlotSnapshot":
        return SlotSnapshot(
            index=self.index,
            value=self.value,
            template=self.template,
            raw_template=self.raw_template,
            error=self.error,
        )


@dataclass(frozen=True)
class SlotSnapshot:
    """Immutable copy of a slot taken right before a write is dispatched."""

    index: int
    value: Any
    template: Optional[Template]
    raw_template: Optional[str] = None
    error: Optional[str] = None

    @property
    def bound(self) -> bool:
        return self.template is not None


class SlotRegistry:
    """Dynamic array of slots sized by an external count."""

    def __init__(self, count: int = 0) -> None:
        self._lock = threading.Lock()
        self._slots: List[Slot] = []
        self._changed: Set[int] = set()
        self.resize(count)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._slots)

    def resize(self, count: int) -> None:
        """Grow or shrink to ``count`` slots keeping existing ones by index."""

        if count < 0:
            raise ValueError("count debe ser >= 0")
        with self._lock:
            current = len(self._slots)
            if count < current:
                del self._slots[count:]
                self._changed = {idx for idx in self._changed if idx < count}
            else:
                self._slots.extend(Slot(index=idx) for idx in range(current, count))

    def set_template(self, index: int, raw: Optional[str]) -> Optional[Template]:
        """Parse ``raw`` and bind it to slot ``index``.

        A malformed string leaves the slot unbound (no writes) and the
        :class:`MalformedTemplate` error propagates to the caller. ``None`` or
        an empty string simply unbinds the slot.
        """

        with self._lock:
            slot = self._get(index)
            slot.raw_template = raw
            if raw is None or not str(raw).strip():
                slot.template = None
                slot.error = None
                return None
            try:
                template = parse_template(raw)
            except MalformedTemplate as exc:
                slot.template = None
                slot.error = str(exc)
                raise
            slot.template = template
            slot.error = None
            return template

    def set_value(self, index: int, value: Any) -> None:
        with self._lock:
            self._get(index).value = value
            self._changed.add(index)

    def set_values(self, values: Mapping[int, Any]) -> List[int]:
        """Store several values at once, or none if any index is out of range.

        Returns the updated indices in ascending order.
        """

        with self._lock:
            slots = [(self._get(int(index)), value) for index, value in values.items()]
            for slot, value in slots:
                slot.value = value
                self._changed.add(slot.index)
        return sorted({slot.index for slot, _ in slots})

    def reset_values(self, value: Any = DEFAULT_VALUE) -> None:
        """Set every slot to ``value`` without marking it changed."""

        with self._lock:
            for slot in self._slots:
                slot.value = value
            self._changed.clear()

    def drain_changed(self) -> List[int]:
        """Return changed slot indices in ascending order and clear them."""

        with self._lock:
            changed = sorted(self._changed)
            self._changed.clear()
        return changed

    def drain_snapshots(self) -> List[SlotSnapshot]:
        """Snapshot every changed slot and clear the changed set atomically.

        A value set after this call is left for the next activation.
        """

        with self._lock:
            snapshots = [self._slots[index].snapshot() for index in sorted(self._changed)]
            self._changed.clear()
        return snapshots

    def snapshot(self, index: int) -> SlotSnapshot:
        with self._lock:
            return self._get(index).snapshot()

    def slots(self) -> List[SlotSnapshot]:
        with self._lock:
            return [slot.snapshot() for slot in self._slots]

    def raw_templates(self) -> List[Optional[str]]:
        with self._lock:
            return [slot.raw_template for slot in self._slots]

    def _get(self, index: int) -> Slot:
        if index < 0 or index >= len(self._slots):
            raise IndexError(f"slot {index} fuera de rango (0..{len(self._slots) - 1})")
        return self._slots[index]
