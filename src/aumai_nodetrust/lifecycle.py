"""Start, supervise and stop an assembled instance.

States move strictly forward: created -> running -> stopping -> stopped.
A failed start rolls back the monitors that did start and lands in stopped.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any

from aumai_nodetrust.errors import (
    LifecycleError,
    MonitorStartError,
    MonitorStopError,
    RegistrationError,
)
from aumai_nodetrust.instance import RunningInstance
from aumai_nodetrust.models import InstanceState, ShutdownReport, WorkloadEvent, WorkloadRuntime
from aumai_nodetrust.monitors import Enforcer, MonitorBinding

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGQUIT")
    if hasattr(signal, name)
)

_SIGNAL_POLL_SECONDS = 0.2


class LifecycleManager:
    """Single owner of an instance's lifecycle.

    Args:
        instance: The assembled instance to drive.
        enforcer: Optional enforcement layer; receives the secret bundle for
            each secret set on start and one decision per workload event.
    """

    def __init__(self, instance: RunningInstance, enforcer: Enforcer | None = None) -> None:
        self.instance = instance
        self.enforcer = enforcer
        self.state = InstanceState.created
        self.received_signal: int | None = None
        self._stop_requested = threading.Event()
        self._started: list[MonitorBinding] = []

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Register secrets and start every monitor.

        Raises:
            LifecycleError: if the instance was already started.
            RegistrationError: if the enforcer rejected a secret bundle.
            MonitorStartError: if a monitor failed; started monitors have
                already been stopped again.
        """
        if self.state != InstanceState.created:
            raise LifecycleError(f"Cannot start from state {self.state.value}", self.state.value)

        if self.enforcer is not None:
            for secret_set in self.instance.secret_sets:
                try:
                    self.enforcer.register_secrets(
                        secret_set, self.instance.strategy.for_set(secret_set)
                    )
                except Exception as exc:
                    self.state = InstanceState.stopped
                    raise RegistrationError(
                        f"Enforcer rejected {secret_set.value} secrets: {exc}",
                        node_id=self.instance.node_name,
                    ) from exc

        for binding in self.instance.bindings:
            binding.monitor.register_handler(self._handle_event)

        for binding in self.instance.bindings:
            try:
                binding.monitor.start()
            except Exception as exc:
                logger.error("Monitor %s failed to start: %s", binding.name, exc)
                rollback_errors = self._stop_monitors(self._started)
                self._started = []
                self.state = InstanceState.stopped
                raise MonitorStartError(
                    f"Monitor {binding.name} failed to start: {exc}",
                    monitor=binding.name,
                    rollback_errors=rollback_errors,
                ) from exc
            self._started.append(binding)

        self.state = InstanceState.running
        logger.debug("Instance %s started", self.instance.node_name)

    # ------------------------------------------------------------------
    # Wait
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Wake up :meth:`wait_for_signal` without a signal."""
        self._stop_requested.set()

    def _on_signal(self, signum: int, frame: Any) -> None:
        # Runs on the main thread between bytecodes; must not take locks.
        self.received_signal = signum

    def wait_for_signal(self) -> None:
        """Block until SIGINT, SIGTERM, SIGQUIT or :meth:`request_stop`.

        Must be called from the main thread.  Previous handlers are restored
        before returning.
        """
        previous = {sig: signal.signal(sig, self._on_signal) for sig in TERMINATION_SIGNALS}
        try:
            logger.info("Everything started. Waiting for stop signal")
            while self.received_signal is None:
                if self._stop_requested.wait(_SIGNAL_POLL_SECONDS):
                    break
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)
        if self.received_signal is not None:
            logger.debug("Stop signal %s received", signal.Signals(self.received_signal).name)

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    def _stop_monitors(self, bindings: list[MonitorBinding]) -> list[MonitorStopError]:
        errors = []
        for binding in reversed(bindings):
            try:
                binding.monitor.stop()
            except Exception as exc:
                error = MonitorStopError(
                    f"Monitor {binding.name} failed to stop: {exc}", monitor=binding.name
                )
                logger.warning("%s", error)
                errors.append(error)
        return errors

    def stop(self) -> ShutdownReport:
        """Stop every started monitor.  Calling it again is a no-op."""
        if self.state in (InstanceState.stopping, InstanceState.stopped):
            return ShutdownReport(already_stopped=True)

        self.state = InstanceState.stopping
        errors = self._stop_monitors(self._started)
        self._started = []
        self.state = InstanceState.stopped
        logger.debug("Instance %s stopped", self.instance.node_name)
        return ShutdownReport(errors=errors)

    def run(self) -> ShutdownReport:
        """Start, block until told to stop, then stop."""
        self.start()
        try:
            self.wait_for_signal()
        finally:
            report = self.stop()
        return report

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _handle_event(self, context_id: str, event: WorkloadEvent, runtime: WorkloadRuntime) -> None:
        if event not in (WorkloadEvent.create, WorkloadEvent.start):
            logger.debug("Workload %s: %s", context_id, event.value)
            return
        decision = self.instance.policy_resolver.resolve_policy(context_id, runtime)
        logger.debug("Workload %s resolved to %s", context_id, decision.action)
        if self.enforcer is not None:
            self.enforcer.enforce(context_id, decision)


__all__ = ["LifecycleManager", "TERMINATION_SIGNALS"]
