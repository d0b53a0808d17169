"""Tests for the concurrent per-slot dispatch."""

from __future__ import annotations

import threading
from typing import List, Tuple

import pytest
import requests

from slotwriter.core.client import TRANSPORT_ERROR_CODE, UNKNOWN_ERROR_CODE, Destination, WriteClient, WriteResult
from slotwriter.core.dispatch import Dispatcher
from slotwriter.core.metrics import WriteMetrics
from slotwriter.core.slots import SlotRegistry


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.headers = {}


class RoutingSession:
    """Answer by measurement name; ``hold`` blocks matching writes until released."""

    def __init__(self, routes, hold: str | None = None) -> None:
        self.routes = routes
        self.hold = hold
        self.release = threading.Event()
        self.verify = True
        self.bodies: List[bytes] = []
        self._lock = threading.Lock()

    def post(self, url, headers=None, data=None, timeout=None):
        with self._lock:
            self.bodies.append(data)
        measurement = data.decode("utf-8").split(",")[0].split(" ")[0]
        if self.hold == measurement:
            assert self.release.wait(5), "write was never released"
        action = self.routes[measurement]
        if isinstance(action, Exception):
            raise action
        return action

    def close(self):
        pass


class RecordingSink:
    def __init__(self) -> None:
        self.results: List[Tuple[int, WriteResult]] = []
        self._lock = threading.Lock()

    def report(self, index: int, result: WriteResult) -> None:
        with self._lock:
            self.results.append((index, result))


def make_dispatcher(session, templates, **kwargs):
    registry = SlotRegistry(len(templates))
    for index, raw in enumerate(templates):
        if raw is not None:
            registry.set_template(index, raw)
    destination = Destination(base_url="http://influx.local:8086", org="org", bucket="bucket", token="t")
    client = WriteClient(destination, session=session)
    sink = RecordingSink()
    dispatcher = Dispatcher(registry, client, [sink], **kwargs)
    return registry, dispatcher, sink


def test_activate_writes_each_changed_slot_once():
    session = RoutingSession({"a": FakeResponse(204), "b": FakeResponse(204), "c": FakeResponse(204)})
    registry, dispatcher, sink = make_dispatcher(session, ["a x", "b y", "c z"])
    try:
        registry.set_value(2, 3.5)
        registry.set_value(0, 1.0)

        futures = dispatcher.activate()
        assert list(futures) == [0, 2]
        assert dispatcher.wait_idle(5)

        assert sorted(session.bodies) == [b"a x=1.0", b"c z=3.5"]
        assert sorted(index for index, _ in sink.results) == [0, 2]
        assert all(result.ok for _, result in sink.results)
        assert dispatcher.activate() == {}
    finally:
        dispatcher.close()


def test_failed_write_does_not_block_other_slots():
    session = RoutingSession(
        {"bad": FakeResponse(401, "unauthorized"), "good": FakeResponse(204)},
    )
    registry, dispatcher, sink = make_dispatcher(session, ["bad f", "good f"])
    try:
        registry.set_value(0, 1.0)
        registry.set_value(1, 2.0)

        futures = dispatcher.activate()
        results = {index: future.result(timeout=5) for index, future in futures.items()}

        assert results[0].code == 401
        assert results[0].message == "unauthorized"
        assert results[1].ok is True
        assert dict(sink.results) == results
    finally:
        dispatcher.close()


def test_activate_returns_before_writes_complete_and_reports_independently():
    session = RoutingSession({"slow": FakeResponse(204), "fast": FakeResponse(500, "boom")}, hold="slow")
    registry, dispatcher, sink = make_dispatcher(session, ["slow f", "fast f"])
    try:
        registry.set_value(0, 1.0)
        registry.set_value(1, 2.0)

        futures = dispatcher.activate()
        assert futures[1].result(timeout=5).code == 500
        assert dispatcher.state == "dispatching"
        assert not futures[0].done()
        assert [index for index, _ in sink.results] == [1]

        session.release.set()
        assert futures[0].result(timeout=5).ok is True
        assert dispatcher.wait_idle(5)
        assert dispatcher.state == "idle"
        assert [index for index, _ in sink.results] == [1, 0]
    finally:
        session.release.set()
        dispatcher.close()


def test_unreachable_destination_reports_transport_sentinel():
    session = RoutingSession({"m": requests.ConnectionError("connection refused")})
    registry, dispatcher, sink = make_dispatcher(session, ["m f"])
    try:
        registry.set_value(0, 1.0)
        result = dispatcher.activate()[0].result(timeout=5)

        assert result.code == TRANSPORT_ERROR_CODE
        assert sink.results == [(0, result)]
    finally:
        dispatcher.close()


def test_unbound_slots_are_skipped(caplog):
    session = RoutingSession({"ok": FakeResponse(204)})
    registry, dispatcher, sink = make_dispatcher(session, ["ok f", None])
    try:
        registry.set_value(0, 1.0)
        registry.set_value(1, 2.0)

        futures = dispatcher.activate()
        dispatcher.wait_idle(5)

        assert list(futures) == [0]
        assert [index for index, _ in sink.results] == [0]
        assert any("Slot 1 has no valid template" in record.message for record in caplog.records)
    finally:
        dispatcher.close()


def test_unencodable_value_reports_unknown_failure():
    session = RoutingSession({"m": FakeResponse(204)})
    registry, dispatcher, sink = make_dispatcher(session, ["m f"])
    try:
        registry.set_value(0, float("nan"))
        result = dispatcher.activate()[0].result(timeout=5)

        assert result.code == UNKNOWN_ERROR_CODE
        assert session.bodies == []
    finally:
        dispatcher.close()


def test_value_snapshot_is_taken_at_dispatch_time():
    session = RoutingSession({"m": FakeResponse(204)}, hold="m")
    registry, dispatcher, sink = make_dispatcher(session, ["m f"])
    try:
        registry.set_value(0, 1.0)
        future = dispatcher.activate()[0]
        registry.set_value(0, 2.0)
        session.release.set()
        future.result(timeout=5)

        assert session.bodies == [b"m f=1.0"]
        assert registry.drain_changed() == [0]
    finally:
        session.release.set()
        dispatcher.close()


def test_metrics_count_outcomes():
    session = RoutingSession({"a": FakeResponse(204), "b": FakeResponse(400, "bad")})
    metrics = WriteMetrics(log_interval_s=3600)
    registry, dispatcher, sink = make_dispatcher(session, ["a f", "b f", None], metrics=metrics)
    try:
        for index in range(3):
            registry.set_value(index, 1.0)
        dispatcher.activate()
        dispatcher.wait_idle(5)

        counters = metrics.counters()
        assert counters["activations"] == 1
        assert counters["writes_dispatched"] == 2
        assert counters["writes_succeeded"] == 1
        assert counters["writes_rejected"] == 1
        assert counters["slots_skipped"] == 1
    finally:
        dispatcher.close()


def test_closed_dispatcher_refuses_activation():
    registry, dispatcher, _ = make_dispatcher(RoutingSession({}), ["m f"])
    dispatcher.close()

    with pytest.raises(RuntimeError):
        dispatcher.activate()
