"""Pydantic models for aumai-nodetrust."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ConfigDict, Field

from aumai_nodetrust.errors import MonitorStopError

# Ten years.
MAX_TOKEN_VALIDITY_SECONDS = 10 * 365 * 24 * 60 * 60


class AuthMode(str, Enum):
    """Mutually exclusive authentication modes."""

    psk = "psk"
    pki = "pki"
    compact_pki = "compact_pki"
    hybrid = "hybrid"


class SecretSet(str, Enum):
    """Which monitor set a secret bundle serves in hybrid mode."""

    local = "local"  # locally-supervised workloads (Linux processes)
    remote = "remote"  # externally-orchestrated workloads (containers, CNI)


class MonitorKind(str, Enum):
    """Workload event sources."""

    container = "container"
    linux_process = "linux_process"
    cni = "cni"


class WorkloadEvent(str, Enum):
    """Lifecycle events reported by monitors."""

    create = "create"
    start = "start"
    stop = "stop"
    destroy = "destroy"


class InstanceState(str, Enum):
    """Lifecycle states of a running instance."""

    created = "created"
    running = "running"
    stopping = "stopping"
    stopped = "stopped"


class CertificateMaterial(BaseModel):
    """A decoded PEM block together with its parsed key material."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    raw_pem: bytes
    public_key: Any  # any cryptography public key type
    private_key: ec.EllipticCurvePrivateKey | None = None
    certificate: x509.Certificate | None = None

    @property
    def is_certificate(self) -> bool:
        return self.certificate is not None


class StrategyParams(BaseModel):
    """Inputs consumed by the secret strategy selector."""

    model_config = ConfigDict(frozen=True)

    passphrase: bytes | None = None
    key_path: str | None = None
    cert_path: str | None = None
    ca_cert_path: str | None = None
    ca_key_path: str | None = None
    hybrid_mode: AuthMode = AuthMode.psk
    token_validity_seconds: int | None = Field(
        default=None, gt=0, le=MAX_TOKEN_VALIDITY_SECONDS
    )


class TokenVerification(BaseModel):
    """Outcome of a compact token verification attempt."""

    valid: bool
    fingerprint: str | None = None
    expires_at: datetime | None = None
    error: str | None = None


class WorkloadRuntime(BaseModel):
    """Identity and placement facts extracted for one workload."""

    name: str
    pid: int = Field(default=0, ge=0)
    tags: dict[str, str] = Field(default_factory=dict)
    ip_addresses: dict[str, str] = Field(default_factory=dict)
    workload_type: MonitorKind = MonitorKind.container


class PolicyDecision(BaseModel):
    """Policy returned by a resolver for one workload."""

    context_id: str
    action: str  # "accept" | "reject"
    networks: list[str] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)
    reason: str = ""


class TrustedNode(BaseModel):
    """A node whose identity certificate has been registered."""

    node_id: str
    certificate_pem: str  # Base-64 encoded PEM
    fingerprint: str
    trusted_since: datetime


class ShutdownReport(BaseModel):
    """Aggregated result of a stop request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    errors: list[MonitorStopError] = Field(default_factory=list)
    already_stopped: bool = False

    @property
    def clean(self) -> bool:
        return not self.errors


__all__ = [
    "MAX_TOKEN_VALIDITY_SECONDS",
    "AuthMode",
    "CertificateMaterial",
    "InstanceState",
    "MonitorKind",
    "PolicyDecision",
    "SecretSet",
    "ShutdownReport",
    "StrategyParams",
    "TokenVerification",
    "TrustedNode",
    "WorkloadEvent",
    "WorkloadRuntime",
]
