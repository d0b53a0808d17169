"""Runtime wiring the slot registry, write client and dispatcher together."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import requests

from slotwriter.config.schema import MAX_SLOTS, DestinationSettings, WriterConfig

from .client import Destination, WriteClient
from .dispatch import Dispatcher
from .metrics import WriteMetrics
from .slots import DEFAULT_VALUE, SlotRegistry
from .status import LastStatus, StatusSink
from .template import MalformedTemplate

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], requests.Session]


def destination_from_settings(settings: DestinationSettings) -> Destination:
    options = dict(
        org=settings.org,
        bucket=settings.bucket,
        token=settings.token,
        timeout_s=settings.timeout_s,
        verify_ssl=settings.verify_ssl,
    )
    if settings.url:
        return Destination(base_url=settings.base_url, **options)
    return Destination.from_host(settings.host, settings.port, **options)


class Gateway:
    """Own the running instance: started once, torn down on shutdown.

    Destination settings are read only at :meth:`start`; changing them needs a
    restart. Slot count and templates can be changed while running.
    """

    def __init__(
        self,
        config: WriterConfig,
        *,
        session_factory: SessionFactory = requests.Session,
        extra_sinks: Sequence[StatusSink] = (),
    ) -> None:
        self.config = config
        self.registry = SlotRegistry()
        self.status = LastStatus()
        self.metrics = WriteMetrics(log_interval_s=config.dispatch.metrics_log_interval_s)
        self._session_factory = session_factory
        self._extra_sinks = list(extra_sinks)
        self.destination: Optional[Destination] = None
        self.client: Optional[WriteClient] = None
        self.dispatcher: Optional[Dispatcher] = None

    @property
    def running(self) -> bool:
        return self.dispatcher is not None

    def start(self) -> None:
        if self.running:
            return
        self.destination = destination_from_settings(self.config.destination)
        self.client = WriteClient(self.destination, session=self._session_factory())
        self.resize(self.config.slots.count)
        for index in range(self.registry.count):
            self._bind_template(index, self.config.slots.template_for(index))
        self.registry.reset_values(DEFAULT_VALUE)
        self.dispatcher = Dispatcher(
            self.registry,
            self.client,
            [self.status, *self._extra_sinks],
            max_workers=self.config.dispatch.max_workers,
            metrics=self.metrics,
        )
        logger.info(
            "Slot writer started: %d slot(s) -> %s",
            self.registry.count,
            self.destination.write_url,
        )

    def close(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.close(wait=True)
            self.dispatcher = None
        if self.client is not None:
            self.client.close()
            self.client = None
        self.metrics.maybe_log(force=True)
        logger.info("Slot writer stopped.")

    def resize(self, count: int) -> None:
        if not 1 <= count <= MAX_SLOTS:
            raise ValueError(f"count debe estar entre 1 y {MAX_SLOTS}")
        self.registry.resize(count)

    def set_template(self, index: int, raw: Optional[str]) -> None:
        self.registry.set_template(index, raw)

    def push_values(self, values: Mapping[int, Any]) -> List[int]:
        """Store ``values`` and activate the dispatcher.

        Returns the indices for which a write was launched.
        """

        if self.dispatcher is None:
            raise RuntimeError("Gateway is not running")
        self.registry.set_values(values)
        return list(self.dispatcher.activate())

    def status_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.status.as_dict())
        payload["state"] = self.dispatcher.state if self.dispatcher is not None else "stopped"
        payload["slot_count"] = self.registry.count
        payload["metrics"] = self.metrics.counters()
        return payload

    def _bind_template(self, index: int, raw: Optional[str]) -> None:
        try:
            self.registry.set_template(index, raw)
        except MalformedTemplate as exc:
            logger.error("Slot %d disabled until its template is fixed: %s", index, exc)
