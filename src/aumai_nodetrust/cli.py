"""CLI entry point for aumai-nodetrust."""

from __future__ import annotations

import base64
import binascii
import sys
from datetime import timedelta
from pathlib import Path

import click
from pydantic import ValidationError

from aumai_nodetrust.compact_token import CompactTokenMinter, TokenVerifier
from aumai_nodetrust.config import DEFAULT_DEMO_PSK, DEFAULT_NODE_NAME, DaemonConfig
from aumai_nodetrust.daemon import configure_logging, run_daemon
from aumai_nodetrust.errors import NodeTrustError
from aumai_nodetrust.loader import load_certificate, load_private_key
from aumai_nodetrust.models import MAX_TOKEN_VALIDITY_SECONDS, AuthMode
from aumai_nodetrust.pki import CertificateFactory

_MODES = [mode.value for mode in AuthMode]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_token(path: str) -> bytes:
    raw = Path(path).read_bytes()
    try:
        return base64.b64decode(raw.strip(), validate=True)
    except (binascii.Error, ValueError):
        return raw


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option()
def main() -> None:
    """AumAI NodeTrust — identity bootstrap for workload-policy enforcement."""


@main.command("certgen")
@click.option(
    "--output",
    default="certs",
    show_default=True,
    metavar="DIR",
    help="Directory to write ca.key, ca.pem, node.key and node.pem.",
)
@click.option("--common-name", default=DEFAULT_NODE_NAME, show_default=True)
@click.option("--ca-common-name", default="nodetrust-ca", show_default=True)
@click.option(
    "--curve",
    type=click.Choice(["p256", "p384", "p521"], case_sensitive=False),
    default="p256",
    show_default=True,
)
def certgen_command(output: str, common_name: str, ca_common_name: str, curve: str) -> None:
    """Generate an EC CA and a node certificate signed by it."""
    factory = CertificateFactory(curve=curve.lower())
    ca_key_pem, ca_cert_pem = factory.generate_ca(ca_common_name)
    key_pem, cert_pem = factory.issue_certificate(ca_key_pem, ca_cert_pem, common_name)
    paths = factory.save_pem_set(output, ca_key_pem, ca_cert_pem, key_pem, cert_pem)
    click.echo(f"PEM set ({curve.lower()}) written to '{output}/'")
    for name, path in paths.items():
        click.echo(f"  {name:<8}: {path}")


@main.command("mint-token")
@click.option("--ca-key", required=True, metavar="PATH", help="CA private key (PEM).")
@click.option("--ca-cert", required=True, metavar="PATH", help="CA certificate (PEM).")
@click.option("--cert", required=True, metavar="PATH", help="Node certificate (PEM).")
@click.option(
    "--validity",
    type=click.IntRange(min=1, max=MAX_TOKEN_VALIDITY_SECONDS),
    default=None,
    metavar="SECONDS",
    help="Token lifetime. Tokens never expire when omitted.",
)
@click.option(
    "--output",
    default=None,
    metavar="PATH",
    help="Write the raw token here instead of printing it base64-encoded.",
)
def mint_token_command(
    ca_key: str,
    ca_cert: str,
    cert: str,
    validity: int | None,
    output: str | None,
) -> None:
    """Mint a compact token binding a node certificate to the CA."""
    try:
        minter = CompactTokenMinter(timedelta(seconds=validity) if validity else None)
        token = minter.mint(
            load_private_key(ca_key).private_key,
            load_certificate(ca_cert).certificate,
            load_certificate(cert).certificate,
        )
    except NodeTrustError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output:
        Path(output).write_bytes(token)
        click.echo(f"Token ({len(token)} bytes) written to: {output}")
    else:
        click.echo(base64.b64encode(token).decode("ascii"))


@main.command("verify-token")
@click.option(
    "--token",
    "token_path",
    required=True,
    metavar="PATH",
    help="Token file, raw or base64.",
)
@click.option("--ca-cert", required=True, metavar="PATH", help="CA certificate (PEM).")
@click.option("--cert", required=True, metavar="PATH", help="Node certificate (PEM).")
def verify_token_command(token_path: str, ca_cert: str, cert: str) -> None:
    """Verify a compact token against a CA and a node certificate."""
    try:
        token = _read_token(token_path)
        result = TokenVerifier().verify(
            token,
            load_certificate(ca_cert).certificate,
            load_certificate(cert).certificate,
        )
    except (OSError, NodeTrustError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if result.valid:
        click.echo("Token: VALID")
        click.echo(f"  Fingerprint: {result.fingerprint}")
        expires = result.expires_at.isoformat() if result.expires_at else "never"
        click.echo(f"  Expires    : {expires}")
    else:
        click.echo(f"Token: INVALID — {result.error}")
        sys.exit(2)


@main.command("daemon")
@click.option(
    "--auth-type",
    type=click.Choice(_MODES, case_sensitive=False),
    default=None,
    envvar="NODETRUST_AUTH_TYPE",
    help="Authentication mode.",
)
@click.option(
    "--psk",
    default=DEFAULT_DEMO_PSK.decode("ascii"),
    envvar="NODETRUST_PSK",
    show_default="demonstration passphrase",
    help="Pre-shared key for psk mode.",
)
@click.option("--key", "key_path", default=None, envvar="NODETRUST_KEY", metavar="PATH")
@click.option("--cert", "cert_path", default=None, envvar="NODETRUST_CERT", metavar="PATH")
@click.option("--ca-cert", "ca_cert_path", default=None, envvar="NODETRUST_CA_CERT", metavar="PATH")
@click.option("--ca-key", "ca_key_path", default=None, envvar="NODETRUST_CA_KEY", metavar="PATH")
@click.option(
    "--hybrid-mode",
    type=click.Choice([AuthMode.psk.value, AuthMode.pki.value, AuthMode.compact_pki.value]),
    default=AuthMode.psk.value,
    show_default=True,
    envvar="NODETRUST_HYBRID_MODE",
    help="Mode of both bundles when --auth-type is hybrid.",
)
@click.option(
    "--token-validity",
    type=click.IntRange(min=1, max=MAX_TOKEN_VALIDITY_SECONDS),
    default=None,
    metavar="SECONDS",
)
@click.option("--node-name", default=DEFAULT_NODE_NAME, show_default=True, envvar="NODETRUST_NODE_NAME")
@click.option("--network", "networks", multiple=True, metavar="CIDR", help="Repeatable.")
@click.option("--docker/--no-docker", default=True, show_default=True)
@click.option("--swarm", is_flag=True, help="Use swarm service labels for containers.")
@click.option("--linux-processes", is_flag=True, help="Monitor Linux processes.")
@click.option("--cni", is_flag=True, help="Monitor CNI-attached containers.")
@click.option("--registry", "registry_path", default=None, metavar="PATH", envvar="NODETRUST_REGISTRY")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    envvar="NODETRUST_LOG_LEVEL",
)
def daemon_command(
    auth_type: str | None,
    psk: str,
    key_path: str | None,
    cert_path: str | None,
    ca_cert_path: str | None,
    ca_key_path: str | None,
    hybrid_mode: str,
    token_validity: int | None,
    node_name: str,
    networks: tuple[str, ...],
    docker: bool,
    swarm: bool,
    linux_processes: bool,
    cni: bool,
    registry_path: str | None,
    log_level: str,
) -> None:
    """Run the daemon until SIGINT, SIGTERM or SIGQUIT."""
    try:
        fields = dict(
            auth_type=auth_type.lower() if auth_type else None,
            psk=psk.encode("utf-8"),
            key_path=key_path,
            cert_path=cert_path,
            ca_cert_path=ca_cert_path,
            ca_key_path=ca_key_path,
            hybrid_mode=hybrid_mode,
            token_validity_seconds=token_validity,
            node_name=node_name,
            docker=docker,
            swarm=swarm,
            linux_processes=linux_processes,
            cni=cni,
            registry_path=registry_path,
            log_level=log_level,
        )
        if networks:
            fields["networks"] = list(networks)
        config = DaemonConfig(**fields)
    except ValidationError as exc:
        click.echo(f"Error: invalid configuration: {exc}", err=True)
        sys.exit(1)

    configure_logging(config.log_level)
    try:
        report = run_daemon(config)
    except NodeTrustError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if not report.clean:
        click.echo(f"Stopped with {len(report.errors)} monitor error(s)", err=True)
    click.echo("Everything stopped. Bye!")


if __name__ == "__main__":
    main()
