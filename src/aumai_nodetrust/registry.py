"""Registry of trusted node identities for aumai-nodetrust."""

from __future__ import annotations

import base64
import json
from datetime import UTC, datetime
from pathlib import Path

from aumai_nodetrust.compact_token import TokenVerifier, public_key_fingerprint
from aumai_nodetrust.errors import PEMDecodeError
from aumai_nodetrust.loader import load_certificate, parse_pem
from aumai_nodetrust.models import TokenVerification, TrustedNode


class NodeKeyRegistry:
    """Node certificate registry with JSON file persistence.

    Holds the certificates that peers published for their own identity and
    checks compact tokens presented by those peers.  All mutating operations
    persist the change immediately.

    Security note: the registry file is stored as plain JSON without integrity
    protection.  Anyone able to write it can substitute certificates, so keep
    it read-only for every account except the daemon's.
    """

    def __init__(self, registry_path: str | None = None) -> None:
        self._registry_path = Path(registry_path) if registry_path else None
        self._nodes: dict[str, TrustedNode] = {}

        if self._registry_path and self._registry_path.exists():
            self._load()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add_node(self, node_id: str, cert_pem: bytes) -> TrustedNode:
        """Add or replace the certificate registered for *node_id*.

        Raises:
            MaterialError: if *cert_pem* does not hold a certificate.
        """
        material = parse_pem(cert_pem, f"certificate of {node_id}")
        if material.certificate is None:
            raise PEMDecodeError(f"Expected a certificate for node '{node_id}'")
        node = TrustedNode(
            node_id=node_id,
            certificate_pem=base64.b64encode(material.raw_pem).decode("ascii"),
            fingerprint=public_key_fingerprint(material.certificate).hex(),
            trusted_since=datetime.now(tz=UTC),
        )
        self._nodes[node_id] = node
        self._save()
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node from the registry.

        Raises:
            KeyError: if the node_id is not in the registry.
        """
        if node_id not in self._nodes:
            raise KeyError(f"Node not found: {node_id}")
        del self._nodes[node_id]
        self._save()

    def get_node(self, node_id: str) -> TrustedNode | None:
        """Return the :class:`TrustedNode` for *node_id*, or None."""
        return self._nodes.get(node_id)

    def list_nodes(self) -> list[TrustedNode]:
        """Return all registered nodes."""
        return list(self._nodes.values())

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_peer(self, node_id: str, token: bytes, ca_cert_path: str) -> TokenVerification:
        """Verify a compact token presented by *node_id* against the trust anchor.

        Returns:
            A :class:`TokenVerification`.  If the node is unknown the result
            is invalid but contains a descriptive error message.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return TokenVerification(
                valid=False,
                error=f"Node '{node_id}' is not in the trusted node registry.",
            )

        leaf = parse_pem(base64.b64decode(node.certificate_pem), node_id).certificate
        ca_cert = load_certificate(ca_cert_path).certificate
        return TokenVerifier().verify(token, ca_cert, leaf)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _save(self) -> None:
        if self._registry_path is None:
            return
        self._registry_path.parent.mkdir(parents=True, exist_ok=True)
        data = [n.model_dump(mode="json") for n in self._nodes.values()]
        self._registry_path.write_text(
            json.dumps(data, indent=2, default=str), encoding="utf-8"
        )

    def _load(self) -> None:
        if self._registry_path is None or not self._registry_path.exists():
            return
        raw = json.loads(self._registry_path.read_text(encoding="utf-8"))
        for entry in raw:
            node = TrustedNode(**entry)
            self._nodes[node.node_id] = node


__all__ = ["NodeKeyRegistry"]
