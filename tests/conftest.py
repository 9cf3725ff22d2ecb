"""Shared test fixtures for aumai-nodetrust."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from aumai_nodetrust.models import PolicyDecision, SecretSet, StrategyParams, WorkloadRuntime
from aumai_nodetrust.monitors import EventHandler
from aumai_nodetrust.pki import CertificateFactory

# ---------------------------------------------------------------------------
# PEM material — generated once per session
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def factory() -> CertificateFactory:
    """A shared CertificateFactory (stateless, safe to share)."""
    return CertificateFactory()


@pytest.fixture(scope="session")
def ca_pair(factory: CertificateFactory) -> tuple[bytes, bytes]:
    """(ca_key_pem, ca_cert_pem) for the trust anchor under test."""
    return factory.generate_ca("test-ca")


@pytest.fixture(scope="session")
def other_ca_pair(factory: CertificateFactory) -> tuple[bytes, bytes]:
    """An unrelated trust anchor."""
    return factory.generate_ca("unrelated-ca")


@pytest.fixture(scope="session")
def leaf_pair(factory: CertificateFactory, ca_pair: tuple[bytes, bytes]) -> tuple[bytes, bytes]:
    """(key_pem, cert_pem) for a node signed by ca_pair."""
    ca_key_pem, ca_cert_pem = ca_pair
    return factory.issue_certificate(ca_key_pem, ca_cert_pem, "Server1")


@pytest.fixture(scope="session")
def other_leaf_pair(factory: CertificateFactory, ca_pair: tuple[bytes, bytes]) -> tuple[bytes, bytes]:
    """A second node signed by the same CA."""
    ca_key_pem, ca_cert_pem = ca_pair
    return factory.issue_certificate(ca_key_pem, ca_cert_pem, "Server2")


@pytest.fixture(scope="session")
def rsa_key_pem() -> bytes:
    """A PKCS#8 RSA private key, which the loader must reject."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def as_certificate(cert_pem: bytes) -> x509.Certificate:
    return x509.load_pem_x509_certificate(cert_pem)


def as_private_key(key_pem: bytes) -> PrivateKeyTypes:
    return serialization.load_pem_private_key(key_pem, password=None)


# ---------------------------------------------------------------------------
# On-disk PEM set
# ---------------------------------------------------------------------------


@pytest.fixture()
def pem_dir(
    tmp_path: Path,
    factory: CertificateFactory,
    ca_pair: tuple[bytes, bytes],
    leaf_pair: tuple[bytes, bytes],
) -> Path:
    """tmp_path/certs holding ca.key, ca.pem, node.key and node.pem."""
    ca_key_pem, ca_cert_pem = ca_pair
    key_pem, cert_pem = leaf_pair
    factory.save_pem_set(str(tmp_path / "certs"), ca_key_pem, ca_cert_pem, key_pem, cert_pem)
    return tmp_path / "certs"


@pytest.fixture()
def pki_params(pem_dir: Path) -> StrategyParams:
    """Complete parameters for the pki and compact_pki modes."""
    return StrategyParams(
        key_path=str(pem_dir / "node.key"),
        cert_path=str(pem_dir / "node.pem"),
        ca_cert_path=str(pem_dir / "ca.pem"),
        ca_key_path=str(pem_dir / "ca.key"),
    )


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class FakeMonitor:
    """Monitor double recording start/stop calls into a shared journal."""

    def __init__(
        self,
        name: str,
        journal: list[str] | None = None,
        fail_start: bool = False,
        fail_stop: bool = False,
    ) -> None:
        self.name = name
        self.journal = journal if journal is not None else []
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.handlers: list[EventHandler] = []
        self.start_calls = 0
        self.stop_calls = 0

    def register_handler(self, handler: EventHandler) -> None:
        self.handlers.append(handler)

    def start(self) -> None:
        self.start_calls += 1
        self.journal.append(f"start:{self.name}")
        if self.fail_start:
            raise RuntimeError(f"{self.name} cannot start")

    def stop(self) -> None:
        self.stop_calls += 1
        self.journal.append(f"stop:{self.name}")
        if self.fail_stop:
            raise RuntimeError(f"{self.name} cannot stop")


class FakeResolver:
    """Policy resolver double recording registrations and resolutions."""

    def __init__(self, fail_registration: bool = False) -> None:
        self.fail_registration = fail_registration
        self.registered: list[tuple[str, bytes]] = []
        self.resolved: list[str] = []

    def public_key_add(self, node_id: str, cert_pem: bytes) -> None:
        if self.fail_registration:
            raise RuntimeError("resolver unavailable")
        self.registered.append((node_id, cert_pem))

    def resolve_policy(self, context_id: str, runtime: WorkloadRuntime) -> PolicyDecision:
        self.resolved.append(context_id)
        return PolicyDecision(context_id=context_id, action="accept", tags=runtime.tags)


class FakeEnforcer:
    """Enforcer double recording secrets and decisions."""

    def __init__(self, fail_registration: bool = False) -> None:
        self.fail_registration = fail_registration
        self.secrets: dict[SecretSet, Any] = {}
        self.decisions: list[tuple[str, PolicyDecision]] = []

    def register_secrets(self, secret_set: SecretSet, secrets: Any) -> None:
        if self.fail_registration:
            raise RuntimeError("enforcer unavailable")
        self.secrets[secret_set] = secrets

    def enforce(self, context_id: str, decision: PolicyDecision) -> None:
        self.decisions.append((context_id, decision))
