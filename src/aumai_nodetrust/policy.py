"""Policy resolver contract and a network-scoped resolver."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from aumai_nodetrust.models import PolicyDecision, WorkloadRuntime
from aumai_nodetrust.registry import NodeKeyRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class PolicyResolver(Protocol):
    """What the daemon needs from a policy engine."""

    def resolve_policy(self, context_id: str, runtime: WorkloadRuntime) -> PolicyDecision:
        ...

    def public_key_add(self, node_id: str, cert_pem: bytes) -> None:
        ...


class NetworkPolicyResolver:
    """Accept workloads inside the configured networks unless a deny tag matches.

    Args:
        networks: CIDRs this node's workloads may talk to.
        registry: Where node identities are recorded; an in-memory registry
            is used when omitted.
        deny_tags: Tag key/value pairs whose workloads are rejected.
    """

    def __init__(
        self,
        networks: list[str],
        registry: NodeKeyRegistry | None = None,
        deny_tags: Mapping[str, str] | None = None,
    ) -> None:
        self.networks = list(networks)
        self.registry = registry if registry is not None else NodeKeyRegistry()
        self.deny_tags = dict(deny_tags or {})

    def resolve_policy(self, context_id: str, runtime: WorkloadRuntime) -> PolicyDecision:
        for key, value in self.deny_tags.items():
            if runtime.tags.get(key) == value:
                logger.info("Rejecting %s: tag %s=%s is denied", context_id, key, value)
                return PolicyDecision(
                    context_id=context_id,
                    action="reject",
                    tags=runtime.tags,
                    reason=f"tag {key}={value} is denied",
                )
        return PolicyDecision(
            context_id=context_id,
            action="accept",
            networks=self.networks,
            tags=runtime.tags,
        )

    def public_key_add(self, node_id: str, cert_pem: bytes) -> None:
        self.registry.add_node(node_id, cert_pem)


__all__ = ["NetworkPolicyResolver", "PolicyResolver"]
