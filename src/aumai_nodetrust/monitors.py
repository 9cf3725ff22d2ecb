"""Monitor and enforcer contracts, monitor bindings, and an in-process monitor."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, model_validator

from aumai_nodetrust.errors import ExtractionError
from aumai_nodetrust.extractors import Extractor
from aumai_nodetrust.models import MonitorKind, PolicyDecision, SecretSet, WorkloadEvent, WorkloadRuntime

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, WorkloadEvent, WorkloadRuntime], None]


@runtime_checkable
class Monitor(Protocol):
    """A watcher of workload lifecycle events."""

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def register_handler(self, handler: EventHandler) -> None:
        ...


@runtime_checkable
class Enforcer(Protocol):
    """The packet-enforcement layer the daemon configures."""

    def register_secrets(self, secret_set: SecretSet, secrets: Any) -> None:
        ...

    def enforce(self, context_id: str, decision: PolicyDecision) -> None:
        ...


class MonitorBinding(BaseModel):
    """A monitor paired with the extractor that describes its workloads.

    A monitor exposing an ``extractor`` attribute must apply this binding's
    extractor; a mismatch is rejected on construction.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: MonitorKind
    monitor: Any
    extractor: Extractor
    secret_set: SecretSet = SecretSet.remote

    @property
    def name(self) -> str:
        return getattr(self.monitor, "name", self.kind.value)

    @model_validator(mode="after")
    def _monitor_uses_extractor(self) -> MonitorBinding:
        monitor_extractor = getattr(self.monitor, "extractor", None)
        if monitor_extractor is not None and monitor_extractor is not self.extractor:
            raise ValueError(f"monitor {self.name} applies a different extractor than its binding")
        return self

    @classmethod
    def in_process(
        cls,
        kind: MonitorKind,
        name: str,
        extractor: Extractor,
        secret_set: SecretSet = SecretSet.remote,
    ) -> MonitorBinding:
        """Bind a new :class:`InProcessMonitor` that applies *extractor*."""
        return cls(
            kind=kind,
            monitor=InProcessMonitor(name, extractor),
            extractor=extractor,
            secret_set=secret_set,
        )


_STOP = object()


class InProcessMonitor:
    """Monitor fed through :meth:`submit`, dispatching on a worker thread.

    Raw workload descriptions are run through *extractor*; extraction
    failures are logged and the event is dropped.
    """

    def __init__(self, name: str, extractor: Extractor) -> None:
        self.name = name
        self._extractor = extractor
        self._handlers: list[EventHandler] = []
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None

    @property
    def extractor(self) -> Extractor:
        return self._extractor

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def register_handler(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def start(self) -> None:
        if self.running:
            raise RuntimeError(f"Monitor {self.name} is already running")
        self._thread = threading.Thread(
            target=self._run, name=f"monitor-{self.name}", daemon=True
        )
        self._thread.start()
        logger.debug("Monitor %s started", self.name)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join()
        self._thread = None
        logger.debug("Monitor %s stopped", self.name)

    def submit(self, context_id: str, event: WorkloadEvent, info: Mapping[str, Any]) -> None:
        """Queue a workload event for dispatch."""
        self._queue.put((context_id, event, info))

    def drain(self) -> None:
        """Block until every submitted event has been dispatched."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                context_id, event, info = item
                self._dispatch(context_id, event, info)
            finally:
                self._queue.task_done()

    def _dispatch(self, context_id: str, event: WorkloadEvent, info: Mapping[str, Any]) -> None:
        try:
            runtime = self._extractor(info)
        except ExtractionError as exc:
            logger.error("Dropping %s event for %s: %s", event.value, context_id, exc)
            return
        except Exception:
            logger.exception("Extractor failed for %s event on %s", event.value, context_id)
            return
        for handler in self._handlers:
            try:
                handler(context_id, event, runtime)
            except Exception:
                logger.exception("Handler failed for %s event on %s", event.value, context_id)


__all__ = [
    "Enforcer",
    "EventHandler",
    "InProcessMonitor",
    "Monitor",
    "MonitorBinding",
]
