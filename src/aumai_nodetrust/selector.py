"""Choose the authentication mode and build its secret bundle."""

from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import ValidationError

from aumai_nodetrust.compact_token import CompactTokenMinter
from aumai_nodetrust.config import DEFAULT_DEMO_PSK, DEFAULT_NODE_NAME
from aumai_nodetrust.errors import ConfigurationError, CryptoError, RegistrationError
from aumai_nodetrust.loader import load_certificate, load_private_key
from aumai_nodetrust.models import AuthMode, StrategyParams
from aumai_nodetrust.policy import PolicyResolver
from aumai_nodetrust.strategies import (
    CompactPKISecrets,
    HybridSecrets,
    PKISecrets,
    PSKSecrets,
    SecretBundle,
    SecretStrategy,
    strategy_mode,
)

logger = logging.getLogger(__name__)

_PKI_PATHS = ("key_path", "cert_path", "ca_cert_path")
_COMPACT_PKI_PATHS = _PKI_PATHS + ("ca_key_path",)


def _require(params: StrategyParams, names: tuple[str, ...], mode: AuthMode) -> None:
    missing = [name for name in names if not getattr(params, name)]
    if missing:
        raise ConfigurationError(
            f"Mode '{mode.value}' requires {', '.join(missing)}", parameter=missing[0]
        )


class SecretStrategySelector:
    """Select exactly one authentication mode and produce its secrets.

    Args:
        resolver: Policy resolver that receives this node's certificate in
            the PKI modes.  ``None`` skips registration.
        node_name: Identifier the certificate is registered under.
    """

    def __init__(
        self,
        resolver: PolicyResolver | None = None,
        node_name: str = DEFAULT_NODE_NAME,
    ) -> None:
        self._resolver = resolver
        self._node_name = node_name

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def select(self, mode: AuthMode | str | None, params: StrategyParams) -> SecretStrategy:
        """Build the strategy for *mode* from *params*.

        Raises:
            ConfigurationError: unknown mode or missing parameters.
            MaterialError: unreadable or malformed PEM input.
            CryptoError: key mismatch or signing failure while minting.
            RegistrationError: the resolver rejected this node's certificate.
        """
        if mode is None:
            raise ConfigurationError("No authentication option given", parameter="auth_type")
        try:
            mode = AuthMode(mode)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown authentication mode '{mode}'", parameter="auth_type"
            ) from exc

        if mode == AuthMode.hybrid:
            strategy: SecretStrategy = self._hybrid(params)
        else:
            strategy = self._bundle(mode, params)
        logger.info("Selected %s secrets for %s", strategy_mode(strategy).value, self._node_name)

        # Both hybrid bundles carry the same node certificate.
        bundle = strategy.local if isinstance(strategy, HybridSecrets) else strategy
        if isinstance(bundle, PKISecrets):
            self._register(bundle.cert_pem)
        return strategy

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _bundle(self, mode: AuthMode, params: StrategyParams) -> SecretBundle:
        if mode == AuthMode.psk:
            return self._psk(params)
        if mode == AuthMode.pki:
            return self._pki(params)
        if mode == AuthMode.compact_pki:
            return self._compact_pki(params)
        raise ConfigurationError(
            f"Mode '{mode.value}' cannot be nested in a hybrid strategy", parameter="hybrid_mode"
        )

    def _psk(self, params: StrategyParams) -> PSKSecrets:
        if not params.passphrase:
            raise ConfigurationError("PSK mode requires a non-empty passphrase", parameter="passphrase")
        if params.passphrase == DEFAULT_DEMO_PSK:
            logger.warning("Using the demonstration pre-shared key. Should NOT be used in production")
        logger.info("Initializing secrets with PSK auth")
        return PSKSecrets(passphrase=params.passphrase)

    def _pki(self, params: StrategyParams) -> PKISecrets:
        _require(params, _PKI_PATHS, AuthMode.pki)
        logger.info("Initializing secrets with PKI auth")
        key = load_private_key(params.key_path)
        cert = load_certificate(params.cert_path)
        ca_cert = load_certificate(params.ca_cert_path)
        return self._build(
            PKISecrets,
            key_pem=key.raw_pem,
            cert_pem=cert.raw_pem,
            ca_cert_pem=ca_cert.raw_pem,
        )

    def _compact_pki(self, params: StrategyParams) -> CompactPKISecrets:
        _require(params, _COMPACT_PKI_PATHS, AuthMode.compact_pki)
        logger.info("Initializing secrets with compact PKI auth")
        key = load_private_key(params.key_path)
        cert = load_certificate(params.cert_path)
        ca_cert = load_certificate(params.ca_cert_path)

        # The CA key is only held for the duration of minting.
        ca_key = load_private_key(params.ca_key_path)
        validity = (
            timedelta(seconds=params.token_validity_seconds)
            if params.token_validity_seconds
            else None
        )
        token = CompactTokenMinter(validity).mint(
            ca_key.private_key, ca_cert.certificate, cert.certificate
        )
        logger.debug("Minted compact token of %d bytes", len(token))

        return self._build(
            CompactPKISecrets,
            key_pem=key.raw_pem,
            cert_pem=cert.raw_pem,
            ca_cert_pem=ca_cert.raw_pem,
            token=token,
        )

    def _hybrid(self, params: StrategyParams) -> HybridSecrets:
        inner = params.hybrid_mode
        if inner == AuthMode.hybrid:
            raise ConfigurationError("Hybrid mode cannot nest itself", parameter="hybrid_mode")
        logger.info("Initializing hybrid secrets with inner mode %s", inner.value)
        # Each set gets its own bundle built from scratch.
        local = self._bundle(inner, params)
        remote = self._bundle(inner, params)
        try:
            return HybridSecrets(local=local, remote=remote)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid hybrid strategy: {exc}", parameter="hybrid_mode") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build(model: type[PKISecrets], **fields: bytes) -> PKISecrets:
        try:
            return model(**fields)
        except ValidationError as exc:
            raise CryptoError(f"Inconsistent {model.__name__} material: {exc}") from exc

    def _register(self, cert_pem: bytes) -> None:
        if self._resolver is None:
            return
        try:
            self._resolver.public_key_add(self._node_name, cert_pem)
        except Exception as exc:
            raise RegistrationError(
                f"Failed to register public key for {self._node_name}: {exc}",
                node_id=self._node_name,
            ) from exc
        logger.debug("Registered public key for %s", self._node_name)


__all__ = ["SecretStrategySelector"]
