"""Fan out one concurrent write per slot that changed since the last activation."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Literal, Optional, Sequence

from .client import WriteClient, WriteResult
from .line import EncodeError, encode_line
from .metrics import WriteMetrics
from .slots import SlotRegistry, SlotSnapshot
from .status import StatusSink

logger = logging.getLogger(__name__)

DispatchState = Literal["idle", "dispatching"]


class Dispatcher:
    """Turn slot activations into independent write jobs.

    ``activate`` never waits for the network: it snapshots the changed slots,
    submits one job per slot to a thread pool and returns the futures. Each job
    reports to every sink as soon as its own write completes.
    """

    def __init__(
        self,
        registry: SlotRegistry,
        client: WriteClient,
        sinks: Sequence[StatusSink] = (),
        *,
        max_workers: int = 8,
        metrics: Optional[WriteMetrics] = None,
    ) -> None:
        self.registry = registry
        self.client = client
        self.sinks = list(sinks)
        self.metrics = metrics
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="slot-write")
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._closed = False

    @property
    def state(self) -> DispatchState:
        with self._lock:
            return "dispatching" if self._in_flight else "idle"

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def activate(self) -> Dict[int, "Future[WriteResult]"]:
        """Dispatch writes for every slot marked changed since the last call.

        Returns the launched writes keyed by slot index, in ascending order.
        """

        if self._closed:
            raise RuntimeError("Dispatcher is closed")

        futures: Dict[int, "Future[WriteResult]"] = {}
        skipped = 0
        for snapshot in self.registry.drain_snapshots():
            index = snapshot.index
            if snapshot.template is None:
                skipped += 1
                logger.warning(
                    "Slot %d has no valid template; value %r not written (%s).",
                    index,
                    snapshot.value,
                    snapshot.error or "template not configured",
                )
                continue
            with self._lock:
                self._in_flight += 1
            try:
                futures[index] = self._executor.submit(self._write, snapshot)
            except RuntimeError:
                with self._idle:
                    self._in_flight -= 1
                    self._idle.notify_all()
                raise

        if self.metrics is not None:
            self.metrics.record_activation(len(futures), skipped)
        if futures:
            logger.debug("Dispatched %d write(s).", len(futures))
        return futures

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no write is in flight. Returns ``False`` on timeout."""

        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def close(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)

    def _write(self, snapshot: SlotSnapshot) -> WriteResult:
        try:
            try:
                body = encode_line(snapshot.template, snapshot.value)
            except EncodeError as exc:
                logger.error("Slot %d value %r could not be encoded: %s", snapshot.index, snapshot.value, exc)
                result = WriteResult.unknown(str(exc))
            else:
                result = self.client.send(body)
            self._deliver(snapshot.index, result)
            return result
        finally:
            with self._idle:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._idle.notify_all()

    def _deliver(self, index: int, result: WriteResult) -> None:
        if self.metrics is not None:
            self.metrics.record_result(result)
        for sink in self.sinks:
            try:
                sink.report(index, result)
            except Exception:  # pragma: no cover - registro de errores
                logger.exception("Sink %r rechazó el resultado del slot %d", sink, index)
