"""Daemon configuration."""

from __future__ import annotations

import ipaddress

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aumai_nodetrust.models import MAX_TOKEN_VALIDITY_SECONDS, AuthMode, StrategyParams

# Demonstration passphrase for PSK mode.  Deliberately weak and public: it
# must never protect real traffic.  Supplied explicitly through DaemonConfig
# so every call site can see and override it.
DEFAULT_DEMO_PSK = b"THIS IS A BAD PASSWORD"

DEFAULT_NODE_NAME = "Server1"
DEFAULT_NETWORKS = ("0.0.0.0/0",)
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class DaemonConfig(BaseModel):
    """Validated settings for ``aumai-nodetrust daemon``."""

    model_config = ConfigDict(frozen=True)

    auth_type: AuthMode | None = None
    psk: bytes = Field(default=DEFAULT_DEMO_PSK, repr=False)
    key_path: str | None = None
    cert_path: str | None = None
    ca_cert_path: str | None = None
    ca_key_path: str | None = None
    hybrid_mode: AuthMode = AuthMode.psk
    token_validity_seconds: int | None = Field(
        default=None, gt=0, le=MAX_TOKEN_VALIDITY_SECONDS
    )

    node_name: str = Field(default=DEFAULT_NODE_NAME, min_length=1)
    networks: list[str] = Field(default_factory=lambda: list(DEFAULT_NETWORKS))

    docker: bool = True
    swarm: bool = False
    linux_processes: bool = False
    cni: bool = False

    registry_path: str | None = None
    log_level: str = "INFO"

    @field_validator("networks")
    @classmethod
    def _parse_networks(cls, value: list[str]) -> list[str]:
        parsed = []
        for network in value:
            try:
                parsed.append(str(ipaddress.ip_network(network.strip(), strict=False)))
            except ValueError as exc:
                raise ValueError(f"Invalid network '{network}': {exc}") from exc
        return parsed

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def uses_demo_psk(self) -> bool:
        return self.psk == DEFAULT_DEMO_PSK

    def to_strategy_params(self) -> StrategyParams:
        """Parameters for :meth:`SecretStrategySelector.select`."""
        return StrategyParams(
            passphrase=self.psk,
            key_path=self.key_path,
            cert_path=self.cert_path,
            ca_cert_path=self.ca_cert_path,
            ca_key_path=self.ca_key_path,
            hybrid_mode=self.hybrid_mode,
            token_validity_seconds=self.token_validity_seconds,
        )


__all__ = [
    "DEFAULT_DEMO_PSK",
    "DEFAULT_NETWORKS",
    "DEFAULT_NODE_NAME",
    "DaemonConfig",
]
