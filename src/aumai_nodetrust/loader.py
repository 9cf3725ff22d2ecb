"""Load PEM certificates and elliptic-curve keys from disk."""

from __future__ import annotations

import re
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from aumai_nodetrust.errors import (
    MaterialReadError,
    PEMDecodeError,
    UnsupportedKeyTypeError,
)
from aumai_nodetrust.models import CertificateMaterial

_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n.*?-----END (?P=label)-----",
    re.DOTALL,
)

_CERTIFICATE_LABELS = {b"CERTIFICATE", b"X509 CERTIFICATE"}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise MaterialReadError(f"Unable to read {path}: {exc}", path=str(path)) from exc


def first_pem_block(data: bytes, source: str | None = None) -> tuple[str, bytes]:
    """Return ``(label, block)`` for the first PEM block in *data*.

    Raises:
        PEMDecodeError: if *data* contains no PEM block.
    """
    match = _PEM_BLOCK.search(data)
    if match is None:
        raise PEMDecodeError(f"No PEM block found in {source or 'input'}", path=source)
    return match.group("label").decode("ascii"), match.group(0) + b"\n"


def _parse_certificate(block: bytes, source: str | None) -> CertificateMaterial:
    try:
        certificate = x509.load_pem_x509_certificate(block)
    except ValueError as exc:
        raise PEMDecodeError(
            f"Failed to parse certificate from {source or 'input'}: {exc}", path=source
        ) from exc
    return CertificateMaterial(
        raw_pem=block,
        public_key=certificate.public_key(),
        certificate=certificate,
    )


def _parse_private_key(block: bytes, source: str | None) -> CertificateMaterial:
    try:
        private_key = serialization.load_pem_private_key(block, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        # TypeError covers encrypted keys supplied without a password.
        raise PEMDecodeError(
            f"Failed to parse private key from {source or 'input'}: {exc}", path=source
        ) from exc
    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        key_type = type(private_key).__name__
        raise UnsupportedKeyTypeError(
            f"Unsupported key type in {source or 'input'}: {key_type}. "
            "Only elliptic-curve keys are supported.",
            path=source,
            key_type=key_type,
        )
    return CertificateMaterial(
        raw_pem=block,
        public_key=private_key.public_key(),
        private_key=private_key,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_pem(data: bytes, source: str | None = None) -> CertificateMaterial:
    """Decode the first PEM block of *data* as a certificate or an EC key."""
    label, block = first_pem_block(data, source)
    if label.encode("ascii") in _CERTIFICATE_LABELS:
        return _parse_certificate(block, source)
    if label.endswith("PRIVATE KEY"):
        return _parse_private_key(block, source)
    raise PEMDecodeError(f"Unexpected PEM block '{label}' in {source or 'input'}", path=source)


def load(path: str | Path) -> CertificateMaterial:
    """Read *path* and decode its first PEM block."""
    return parse_pem(_read(path), str(path))


def load_certificate(path: str | Path) -> CertificateMaterial:
    """Read *path* and decode its first PEM block as an X.509 certificate."""
    source = str(path)
    label, block = first_pem_block(_read(path), source)
    if label.encode("ascii") not in _CERTIFICATE_LABELS:
        raise PEMDecodeError(f"Expected a certificate in {source}, found '{label}'", path=source)
    return _parse_certificate(block, source)


def load_private_key(path: str | Path) -> CertificateMaterial:
    """Read *path* and decode its first PEM block as an elliptic-curve private key."""
    source = str(path)
    label, block = first_pem_block(_read(path), source)
    if not label.endswith("PRIVATE KEY"):
        raise PEMDecodeError(f"Expected a private key in {source}, found '{label}'", path=source)
    return _parse_private_key(block, source)


def key_matches_certificate(key: CertificateMaterial, cert: CertificateMaterial) -> bool:
    """True when *key* holds the private half of *cert*'s public key."""
    if key.private_key is None or cert.certificate is None:
        return False
    cert_public = cert.certificate.public_key()
    if not isinstance(cert_public, ec.EllipticCurvePublicKey):
        return False
    return cert_public.public_numbers() == key.private_key.public_key().public_numbers()


__all__ = [
    "first_pem_block",
    "key_matches_certificate",
    "load",
    "load_certificate",
    "load_private_key",
    "parse_pem",
]
