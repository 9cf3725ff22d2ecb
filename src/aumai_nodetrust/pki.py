"""Generate elliptic-curve CA and node certificates."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "p256": ec.SECP256R1,
    "p384": ec.SECP384R1,
    "p521": ec.SECP521R1,
}

# File names written by save_pem_set and read back by the daemon defaults.
CA_KEY_FILE = "ca.key"
CA_CERT_FILE = "ca.pem"
NODE_KEY_FILE = "node.key"
NODE_CERT_FILE = "node.pem"


def _private_pem(key: ec.EllipticCurvePrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


class CertificateFactory:
    """Issue the PEM material a node needs for PKI and compact-PKI modes.

    Args:
        curve: One of ``p256``, ``p384`` or ``p521``.
        validity: Lifetime of generated certificates.
    """

    def __init__(self, curve: str = "p256", validity: timedelta = timedelta(days=365)) -> None:
        if curve not in _CURVES:
            raise ValueError(f"Unknown curve '{curve}'. Choose from {sorted(_CURVES)}")
        self._curve = _CURVES[curve]
        self._validity = validity

    def generate_ca(self, common_name: str = "nodetrust-ca") -> tuple[bytes, bytes]:
        """Return ``(ca_key_pem, ca_cert_pem)`` for a self-signed CA."""
        key = ec.generate_private_key(self._curve())
        now = datetime.now(tz=UTC)
        cert = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(_name(common_name))
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + self._validity)
            .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
            .sign(key, hashes.SHA256())
        )
        return _private_pem(key), cert.public_bytes(serialization.Encoding.PEM)

    def issue_certificate(
        self,
        ca_key_pem: bytes,
        ca_cert_pem: bytes,
        common_name: str,
    ) -> tuple[bytes, bytes]:
        """Return ``(key_pem, cert_pem)`` for a node certificate signed by the CA."""
        ca_key = serialization.load_pem_private_key(ca_key_pem, password=None)
        if not isinstance(ca_key, ec.EllipticCurvePrivateKey):
            raise ValueError("CA key must be an elliptic-curve key")
        ca_cert = x509.load_pem_x509_certificate(ca_cert_pem)

        key = ec.generate_private_key(self._curve())
        now = datetime.now(tz=UTC)
        cert = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(ca_cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + self._validity)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .sign(ca_key, hashes.SHA256())
        )
        return _private_pem(key), cert.public_bytes(serialization.Encoding.PEM)

    def save_pem_set(
        self,
        path: str,
        ca_key_pem: bytes,
        ca_cert_pem: bytes,
        key_pem: bytes,
        cert_pem: bytes,
    ) -> dict[str, Path]:
        """Write the four PEM files to *path* and return their locations.

        The directory is created if missing.  Private keys are written with
        mode 0o600 on POSIX systems.
        """
        out_dir = Path(path)
        out_dir.mkdir(parents=True, exist_ok=True)

        files = {
            "ca_key": (out_dir / CA_KEY_FILE, ca_key_pem, True),
            "ca_cert": (out_dir / CA_CERT_FILE, ca_cert_pem, False),
            "key": (out_dir / NODE_KEY_FILE, key_pem, True),
            "cert": (out_dir / NODE_CERT_FILE, cert_pem, False),
        }
        for file_path, data, private in files.values():
            file_path.write_bytes(data)
            if private:
                try:
                    os.chmod(file_path, 0o600)
                except NotImplementedError:
                    pass  # Windows
        return {name: entry[0] for name, entry in files.items()}


__all__ = [
    "CA_CERT_FILE",
    "CA_KEY_FILE",
    "NODE_CERT_FILE",
    "NODE_KEY_FILE",
    "CertificateFactory",
]
