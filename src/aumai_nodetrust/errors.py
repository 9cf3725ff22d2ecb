"""Exception hierarchy for aumai-nodetrust.

Every startup failure is raised as a :class:`NodeTrustError` subclass and is
fatal for the process.  Only :class:`MonitorStopError` is collected instead
of raised, inside a :class:`~aumai_nodetrust.models.ShutdownReport`.
"""

from __future__ import annotations

from typing import Any


class NodeTrustError(Exception):
    """Base exception for all aumai-nodetrust errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "NODETRUST_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(NodeTrustError):
    """Missing or contradictory authentication / assembly parameters."""

    def __init__(self, message: str, parameter: str | None = None) -> None:
        super().__init__(
            message, code="CONFIGURATION_ERROR", details={"parameter": parameter}
        )
        self.parameter = parameter


# ---------------------------------------------------------------------------
# Cryptographic input
# ---------------------------------------------------------------------------


class MaterialError(NodeTrustError):
    """Unreadable or malformed cryptographic input."""

    def __init__(
        self, message: str, path: str | None = None, code: str = "MATERIAL_ERROR"
    ) -> None:
        super().__init__(message, code=code, details={"path": path})
        self.path = path


class MaterialReadError(MaterialError):
    """The PEM source could not be read."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, path=path, code="MATERIAL_READ_ERROR")


class PEMDecodeError(MaterialError):
    """No usable PEM block was found in the source."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, path=path, code="PEM_DECODE_ERROR")


class CryptoError(NodeTrustError):
    """Key-type mismatch or signing failure while minting a token."""

    def __init__(
        self,
        message: str,
        code: str = "CRYPTO_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class UnsupportedKeyTypeError(MaterialError, CryptoError):
    """A private key is not an elliptic-curve key.

    This is both a material problem (the file holds the wrong kind of key)
    and a crypto problem (the key cannot sign compact tokens), so callers
    may catch either base.
    """

    def __init__(self, message: str, path: str | None = None, key_type: str = "") -> None:
        NodeTrustError.__init__(
            self,
            message,
            code="UNSUPPORTED_KEY_TYPE",
            details={"path": path, "key_type": key_type},
        )
        self.path = path
        self.key_type = key_type


class KeyMismatchError(CryptoError):
    """CA certificate and CA key are not a usable elliptic-curve pair."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="KEY_MISMATCH")


class SigningError(CryptoError):
    """The signing primitive failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SIGNING_ERROR")


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class RegistrationError(NodeTrustError):
    """Local identity could not be published to a collaborator."""

    def __init__(self, message: str, node_id: str | None = None) -> None:
        super().__init__(message, code="REGISTRATION_ERROR", details={"node_id": node_id})
        self.node_id = node_id


class ExtractionError(NodeTrustError):
    """Workload metadata could not be extracted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="EXTRACTION_ERROR")


class LifecycleError(NodeTrustError):
    """A lifecycle transition was requested from the wrong state."""

    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message, code="LIFECYCLE_ERROR", details={"state": state})
        self.state = state


class MonitorStartError(NodeTrustError):
    """A monitor failed to start; already-started monitors were rolled back."""

    def __init__(
        self,
        message: str,
        monitor: str,
        rollback_errors: list[MonitorStopError] | None = None,
    ) -> None:
        rollback_errors = rollback_errors or []
        super().__init__(
            message,
            code="MONITOR_START_ERROR",
            details={
                "monitor": monitor,
                "rollback_errors": [str(e) for e in rollback_errors],
            },
        )
        self.monitor = monitor
        self.rollback_errors = rollback_errors


class MonitorStopError(NodeTrustError):
    """A monitor failed to stop.  Never raised by shutdown, only reported."""

    def __init__(self, message: str, monitor: str) -> None:
        super().__init__(message, code="MONITOR_STOP_ERROR", details={"monitor": monitor})
        self.monitor = monitor


__all__ = [
    "ConfigurationError",
    "CryptoError",
    "ExtractionError",
    "KeyMismatchError",
    "LifecycleError",
    "MaterialError",
    "MaterialReadError",
    "MonitorStartError",
    "MonitorStopError",
    "NodeTrustError",
    "PEMDecodeError",
    "RegistrationError",
    "SigningError",
    "UnsupportedKeyTypeError",
]
