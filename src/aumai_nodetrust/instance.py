"""Compose secrets, monitor bindings and a policy resolver into one instance."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict

from aumai_nodetrust.config import DEFAULT_NODE_NAME
from aumai_nodetrust.errors import ConfigurationError
from aumai_nodetrust.models import SecretSet
from aumai_nodetrust.monitors import MonitorBinding
from aumai_nodetrust.strategies import HybridSecrets, SecretStrategy


class RunningInstance(BaseModel):
    """The assembled daemon.  Immutable; lifecycle state lives in the manager."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    node_name: str
    strategy: SecretStrategy
    bindings: tuple[MonitorBinding, ...]
    policy_resolver: Any

    @property
    def secret_sets(self) -> list[SecretSet]:
        """Distinct secret sets used by the bindings, in binding order."""
        seen = []
        for binding in self.bindings:
            if binding.secret_set not in seen:
                seen.append(binding.secret_set)
        return seen


def assemble(
    strategy: SecretStrategy | None,
    bindings: Iterable[MonitorBinding],
    policy_resolver: Any,
    node_name: str = DEFAULT_NODE_NAME,
) -> RunningInstance:
    """Build a :class:`RunningInstance` without starting anything.

    Raises:
        ConfigurationError: no strategy, no bindings, or no resolver.
    """
    if strategy is None:
        raise ConfigurationError("A secret strategy is required", parameter="strategy")
    bindings = tuple(bindings)
    if not bindings:
        raise ConfigurationError("At least one monitor binding is required", parameter="bindings")
    if policy_resolver is None:
        raise ConfigurationError("A policy resolver is required", parameter="policy_resolver")
    if isinstance(strategy, HybridSecrets) and len({b.secret_set for b in bindings}) < 2:
        raise ConfigurationError(
            "Hybrid secrets need monitors for both the local and remote sets",
            parameter="bindings",
        )
    return RunningInstance(
        node_name=node_name,
        strategy=strategy,
        bindings=bindings,
        policy_resolver=policy_resolver,
    )


__all__ = ["RunningInstance", "assemble"]
