"""aumai-nodetrust quickstart — working demonstrations of the main features.

Run this file directly to verify your installation:

    python examples/quickstart.py

Each demo creates temporary files in the system temp directory and cleans up
after itself.
"""

from __future__ import annotations

import tempfile
import threading

from aumai_nodetrust import (
    AuthMode,
    CertificateFactory,
    InProcessMonitor,
    LifecycleManager,
    MonitorBinding,
    MonitorKind,
    NetworkPolicyResolver,
    SecretStrategySelector,
    StrategyParams,
    TokenVerifier,
    WorkloadEvent,
    assemble,
)
from aumai_nodetrust.extractors import container_extractor
from aumai_nodetrust.loader import load_certificate


# ---------------------------------------------------------------------------
# Demo 1 — compact PKI secrets from a fresh PEM set
# ---------------------------------------------------------------------------

def demo_compact_pki() -> None:
    """Generate a CA and node certificate, then select compact-PKI secrets."""

    print("\n=== Demo 1: Compact PKI ===")

    with tempfile.TemporaryDirectory() as tmpdir:
        factory = CertificateFactory()
        ca_key, ca_cert = factory.generate_ca("demo-ca")
        key, cert = factory.issue_certificate(ca_key, ca_cert, "Server1")
        paths = factory.save_pem_set(tmpdir, ca_key, ca_cert, key, cert)

        resolver = NetworkPolicyResolver(["10.0.0.0/8"])
        selector = SecretStrategySelector(resolver)
        secrets = selector.select(
            AuthMode.compact_pki,
            StrategyParams(
                key_path=str(paths["key"]),
                cert_path=str(paths["cert"]),
                ca_cert_path=str(paths["ca_cert"]),
                ca_key_path=str(paths["ca_key"]),
            ),
        )
        print(f"  Token size      : {len(secrets.token)} bytes")
        print(f"  Certificate size: {len(secrets.cert_pem)} bytes")

        result = TokenVerifier().verify(
            secrets.token,
            load_certificate(paths["ca_cert"]).certificate,
            load_certificate(paths["cert"]).certificate,
        )
        print(f"  Token valid     : {result.valid}")
        print(f"  Registered nodes: {[n.node_id for n in resolver.registry.list_nodes()]}")


# ---------------------------------------------------------------------------
# Demo 2 — supervised instance with an in-process container monitor
# ---------------------------------------------------------------------------

def demo_lifecycle() -> None:
    """Start a PSK instance, feed it a container event, then stop it."""

    print("\n=== Demo 2: Lifecycle ===")

    resolver = NetworkPolicyResolver(["10.0.0.0/8"], deny_tags={"env": "untrusted"})
    secrets = SecretStrategySelector(resolver).select(
        AuthMode.psk, StrategyParams(passphrase=b"correct horse battery staple")
    )
    monitor = InProcessMonitor("docker", container_extractor)
    instance = assemble(
        secrets,
        [MonitorBinding(kind=MonitorKind.container, monitor=monitor, extractor=container_extractor)],
        resolver,
    )

    decisions: list[str] = []
    monitor.register_handler(lambda ctx, event, runtime: decisions.append(runtime.name))

    manager = LifecycleManager(instance)
    manager.start()
    monitor.submit(
        "c0ffee",
        WorkloadEvent.start,
        {"Name": "/web", "State": {"Pid": 100}, "Config": {"Image": "nginx"}},
    )
    monitor.drain()

    # Stop from another thread, the way a signal would.
    threading.Timer(0.1, manager.request_stop).start()
    manager.wait_for_signal()
    report = manager.stop()

    print(f"  Workloads seen : {decisions}")
    print(f"  Clean shutdown : {report.clean}")
    print(f"  Second stop    : already_stopped={manager.stop().already_stopped}")


if __name__ == "__main__":
    demo_compact_pki()
    demo_lifecycle()
    print("\nAll demos completed.")
