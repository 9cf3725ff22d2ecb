"""Wire a :class:`DaemonConfig` into a supervised instance."""

from __future__ import annotations

import logging
import sys

from aumai_nodetrust.config import DaemonConfig
from aumai_nodetrust.extractors import (
    cni_extractor,
    container_extractor,
    make_swarm_extractor,
    process_extractor,
)
from aumai_nodetrust.instance import RunningInstance, assemble
from aumai_nodetrust.lifecycle import LifecycleManager
from aumai_nodetrust.models import MonitorKind, SecretSet, ShutdownReport
from aumai_nodetrust.monitors import Enforcer, MonitorBinding
from aumai_nodetrust.policy import NetworkPolicyResolver
from aumai_nodetrust.registry import NodeKeyRegistry
from aumai_nodetrust.selector import SecretStrategySelector

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Send package logs to stderr at *level*."""
    root = logging.getLogger("aumai_nodetrust")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(handler)
    root.setLevel(level)


def build_bindings(config: DaemonConfig) -> list[MonitorBinding]:
    """One binding per enabled monitor.  Linux processes form the local set."""
    bindings = []
    if config.docker:
        extractor = make_swarm_extractor() if config.swarm else container_extractor
        bindings.append(
            MonitorBinding.in_process(MonitorKind.container, "docker", extractor, SecretSet.remote)
        )
    if config.cni:
        bindings.append(
            MonitorBinding.in_process(MonitorKind.cni, "cni", cni_extractor, SecretSet.remote)
        )
    if config.linux_processes:
        bindings.append(
            MonitorBinding.in_process(
                MonitorKind.linux_process, "linux-process", process_extractor, SecretSet.local
            )
        )
    return bindings


def build_instance(config: DaemonConfig) -> RunningInstance:
    """Select secrets, then assemble.  Every failure here is fatal."""
    resolver = NetworkPolicyResolver(
        config.networks, registry=NodeKeyRegistry(config.registry_path)
    )
    selector = SecretStrategySelector(resolver, node_name=config.node_name)
    strategy = selector.select(config.auth_type, config.to_strategy_params())
    return assemble(strategy, build_bindings(config), resolver, node_name=config.node_name)


def run_daemon(config: DaemonConfig, enforcer: Enforcer | None = None) -> ShutdownReport:
    """Build the instance, run it until a termination signal, and stop it."""
    instance = build_instance(config)
    manager = LifecycleManager(instance, enforcer=enforcer)
    report = manager.run()
    for error in report.errors:
        logger.error("Shutdown: %s", error)
    logger.info("Everything stopped")
    return report


__all__ = ["build_bindings", "build_instance", "configure_logging", "run_daemon"]
