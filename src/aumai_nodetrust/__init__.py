"""aumai-nodetrust: Identity bootstrap and supervision for workload-policy enforcement."""

from aumai_nodetrust.compact_token import CompactTokenMinter, TokenVerifier
from aumai_nodetrust.config import DEFAULT_DEMO_PSK, DaemonConfig
from aumai_nodetrust.instance import RunningInstance, assemble
from aumai_nodetrust.lifecycle import LifecycleManager
from aumai_nodetrust.models import (
    AuthMode,
    CertificateMaterial,
    InstanceState,
    MonitorKind,
    SecretSet,
    ShutdownReport,
    StrategyParams,
    TokenVerification,
    WorkloadEvent,
    WorkloadRuntime,
)
from aumai_nodetrust.monitors import InProcessMonitor, MonitorBinding
from aumai_nodetrust.pki import CertificateFactory
from aumai_nodetrust.policy import NetworkPolicyResolver
from aumai_nodetrust.registry import NodeKeyRegistry
from aumai_nodetrust.selector import SecretStrategySelector
from aumai_nodetrust.strategies import (
    CompactPKISecrets,
    HybridSecrets,
    PKISecrets,
    PSKSecrets,
)

__version__ = "0.1.0"

__all__ = [
    "AuthMode",
    "CertificateFactory",
    "CertificateMaterial",
    "CompactPKISecrets",
    "CompactTokenMinter",
    "DEFAULT_DEMO_PSK",
    "DaemonConfig",
    "HybridSecrets",
    "InProcessMonitor",
    "InstanceState",
    "LifecycleManager",
    "MonitorBinding",
    "MonitorKind",
    "NetworkPolicyResolver",
    "NodeKeyRegistry",
    "PKISecrets",
    "PSKSecrets",
    "RunningInstance",
    "SecretSet",
    "SecretStrategySelector",
    "ShutdownReport",
    "StrategyParams",
    "TokenVerification",
    "TokenVerifier",
    "WorkloadEvent",
    "WorkloadRuntime",
    "assemble",
]
