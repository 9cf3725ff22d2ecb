"""Secret strategy variants.

Exactly one variant is active per running instance.  Each variant checks on
construction that its material is complete and internally consistent, so an
instance of :class:`PKISecrets` always holds a key that belongs to its
certificate and :class:`CompactPKISecrets` always holds a token that
verifies against its CA certificate.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from aumai_nodetrust.compact_token import TokenVerifier
from aumai_nodetrust.loader import key_matches_certificate, parse_pem
from aumai_nodetrust.models import AuthMode, SecretSet


class _Secrets(BaseModel):
    model_config = ConfigDict(frozen=True)

    def for_set(self, secret_set: SecretSet) -> SecretBundle:
        """Bundle serving *secret_set*; single-mode bundles serve every set."""
        return self  # type: ignore[return-value]


class PSKSecrets(_Secrets):
    """Pre-shared key authentication."""

    kind: Literal["psk"] = "psk"
    passphrase: bytes = Field(min_length=1, repr=False)


class PKISecrets(_Secrets):
    """Full-certificate authentication; the certificate is exchanged at connect time."""

    kind: Literal["pki"] = "pki"
    key_pem: bytes = Field(repr=False)
    cert_pem: bytes
    ca_cert_pem: bytes

    @model_validator(mode="after")
    def _key_belongs_to_certificate(self) -> PKISecrets:
        key = parse_pem(self.key_pem, "key_pem")
        cert = parse_pem(self.cert_pem, "cert_pem")
        ca_cert = parse_pem(self.ca_cert_pem, "ca_cert_pem")
        if not cert.is_certificate or not ca_cert.is_certificate:
            raise ValueError("cert_pem and ca_cert_pem must hold certificates")
        if not key_matches_certificate(key, cert):
            raise ValueError("key_pem does not match the public key of cert_pem")
        return self


class CompactPKISecrets(PKISecrets):
    """PKI authentication exchanging only a CA-signed compact token."""

    kind: Literal["compact_pki"] = "compact_pki"  # type: ignore[assignment]
    token: bytes

    @model_validator(mode="after")
    def _token_verifies(self) -> CompactPKISecrets:
        ca_cert = parse_pem(self.ca_cert_pem, "ca_cert_pem").certificate
        cert = parse_pem(self.cert_pem, "cert_pem").certificate
        result = TokenVerifier().verify(self.token, ca_cert, cert)
        if not result.valid:
            raise ValueError(f"token does not verify: {result.error}")
        return self


SecretBundle = Annotated[
    Union[PSKSecrets, PKISecrets, CompactPKISecrets],
    Field(discriminator="kind"),
]


class HybridSecrets(_Secrets):
    """Two isolated bundles for two concurrently active monitor sets."""

    kind: Literal["hybrid"] = "hybrid"
    local: SecretBundle
    remote: SecretBundle

    @model_validator(mode="after")
    def _bundles_are_isolated(self) -> HybridSecrets:
        if self.local is self.remote:
            raise ValueError("local and remote bundles must be distinct objects")
        if self.local.kind != self.remote.kind:
            raise ValueError(
                f"hybrid bundles must share a mode, got {self.local.kind} and {self.remote.kind}"
            )
        if isinstance(self.local, PKISecrets) and isinstance(self.remote, PKISecrets):
            if self.local.ca_cert_pem != self.remote.ca_cert_pem:
                raise ValueError("hybrid bundles must share the same trust anchor")
        return self

    def for_set(self, secret_set: SecretSet) -> SecretBundle:
        return self.local if secret_set == SecretSet.local else self.remote


SecretStrategy = Annotated[
    Union[PSKSecrets, PKISecrets, CompactPKISecrets, HybridSecrets],
    Field(discriminator="kind"),
]


def strategy_mode(strategy: _Secrets) -> AuthMode:
    """The :class:`AuthMode` a strategy instance implements."""
    return AuthMode(strategy.kind)  # type: ignore[attr-defined]


__all__ = [
    "CompactPKISecrets",
    "HybridSecrets",
    "PKISecrets",
    "PSKSecrets",
    "SecretBundle",
    "SecretStrategy",
    "strategy_mode",
]
