"""Compact identity tokens: a CA-signed digest of a leaf certificate's public key.

A token substitutes for the full certificate chain during identity exchange.
Layout::

    version (1 byte) | expiry (int64, -1 = unlimited) | sha256(leaf SPKI) | signature

The signature is DER-encoded ECDSA-SHA256 by the CA key over everything that
precedes it.  Tokens carry no reference to the signing key and verify with
the CA certificate alone.
"""

from __future__ import annotations

import hashlib
import struct
from datetime import UTC, datetime, timedelta

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import ECDSA

from aumai_nodetrust.errors import ConfigurationError, KeyMismatchError, SigningError
from aumai_nodetrust.models import MAX_TOKEN_VALIDITY_SECONDS, TokenVerification

TOKEN_VERSION = 1
UNLIMITED_EXPIRY = -1

_HEADER = struct.Struct(">Bq")
_FINGERPRINT_SIZE = 32
_PAYLOAD_SIZE = _HEADER.size + _FINGERPRINT_SIZE


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def public_key_fingerprint(certificate: x509.Certificate) -> bytes:
    """SHA-256 of the DER SubjectPublicKeyInfo of *certificate*."""
    spki = certificate.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(spki).digest()


def _canonical_payload(expiry: int, fingerprint: bytes) -> bytes:
    return _HEADER.pack(TOKEN_VERSION, expiry) + fingerprint


# ---------------------------------------------------------------------------
# CompactTokenMinter
# ---------------------------------------------------------------------------


class CompactTokenMinter:
    """Sign compact tokens for leaf certificates with a CA key.

    Args:
        validity: Optional lifetime of minted tokens.  ``None`` mints tokens
            that never expire (encoded as ``-1``).  At most
            ``MAX_TOKEN_VALIDITY_SECONDS``; longer lifetimes raise
            :class:`ConfigurationError`.
    """

    def __init__(self, validity: timedelta | None = None) -> None:
        if validity is not None and validity <= timedelta(0):
            raise ValueError("validity must be positive")
        if validity is not None and validity > timedelta(seconds=MAX_TOKEN_VALIDITY_SECONDS):
            raise ConfigurationError(
                f"Token validity may not exceed {MAX_TOKEN_VALIDITY_SECONDS} seconds",
                parameter="token_validity_seconds",
            )
        self._validity = validity

    def _expiry(self) -> int:
        if self._validity is None:
            return UNLIMITED_EXPIRY
        return int((datetime.now(tz=UTC) + self._validity).timestamp())

    def mint(
        self,
        ca_key: ec.EllipticCurvePrivateKey,
        ca_certificate: x509.Certificate,
        leaf_certificate: x509.Certificate,
    ) -> bytes:
        """Return a token asserting that *ca_certificate* vouches for *leaf_certificate*.

        Raises:
            KeyMismatchError: if the CA key or certificate is not elliptic
                curve, or the key does not belong to the certificate.
            SigningError: if the signing primitive fails.
        """
        ca_public = ca_certificate.public_key()
        if not isinstance(ca_public, ec.EllipticCurvePublicKey):
            raise KeyMismatchError(
                f"CA certificate key is {type(ca_public).__name__}, expected elliptic curve"
            )
        if not isinstance(ca_key, ec.EllipticCurvePrivateKey):
            raise KeyMismatchError(
                f"CA private key is {type(ca_key).__name__}, expected elliptic curve"
            )
        if ca_key.public_key().public_numbers() != ca_public.public_numbers():
            raise KeyMismatchError("CA private key does not match the CA certificate")

        payload = _canonical_payload(self._expiry(), public_key_fingerprint(leaf_certificate))
        try:
            signature = ca_key.sign(payload, ECDSA(hashes.SHA256()))
        except (ValueError, TypeError) as exc:
            raise SigningError(f"Failed to sign compact token: {exc}") from exc
        return payload + signature


# ---------------------------------------------------------------------------
# TokenVerifier
# ---------------------------------------------------------------------------


class TokenVerifier:
    """Verify compact tokens against a trust anchor and a leaf certificate."""

    def verify(
        self,
        token: bytes,
        ca_certificate: x509.Certificate,
        leaf_certificate: x509.Certificate,
        now: datetime | None = None,
    ) -> TokenVerification:
        """Check that *token* was issued by *ca_certificate* for *leaf_certificate*.

        Returns:
            A :class:`TokenVerification`; malformed or foreign tokens produce
            ``valid=False`` with an error message rather than an exception.
        """
        if len(token) <= _PAYLOAD_SIZE:
            return TokenVerification(valid=False, error="Token is truncated")

        payload, signature = token[:_PAYLOAD_SIZE], token[_PAYLOAD_SIZE:]
        version, expiry = _HEADER.unpack(payload[: _HEADER.size])
        fingerprint = payload[_HEADER.size :]

        if version != TOKEN_VERSION:
            return TokenVerification(valid=False, error=f"Unsupported token version {version}")

        ca_public = ca_certificate.public_key()
        if not isinstance(ca_public, ec.EllipticCurvePublicKey):
            return TokenVerification(
                valid=False,
                error=f"Unsupported trust anchor key type: {type(ca_public).__name__}",
            )

        try:
            ca_public.verify(signature, payload, ECDSA(hashes.SHA256()))
        except InvalidSignature:
            return TokenVerification(valid=False, error="Signature verification failed")

        if fingerprint != public_key_fingerprint(leaf_certificate):
            return TokenVerification(
                valid=False,
                fingerprint=fingerprint.hex(),
                error="Token was issued for a different certificate",
            )

        expires_at = None
        if expiry != UNLIMITED_EXPIRY:
            expires_at = datetime.fromtimestamp(expiry, tz=UTC)
            if (now or datetime.now(tz=UTC)) >= expires_at:
                return TokenVerification(
                    valid=False,
                    fingerprint=fingerprint.hex(),
                    expires_at=expires_at,
                    error="Token has expired",
                )

        return TokenVerification(
            valid=True, fingerprint=fingerprint.hex(), expires_at=expires_at
        )


__all__ = [
    "CompactTokenMinter",
    "TOKEN_VERSION",
    "TokenVerifier",
    "UNLIMITED_EXPIRY",
    "public_key_fingerprint",
]
