"""Tests for aumai_nodetrust.cli — Click command group."""

from __future__ import annotations

import base64
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from aumai_nodetrust.cli import main
from aumai_nodetrust.lifecycle import LifecycleManager

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _certgen(tmp_path: Path, common_name: str = "Server1") -> Path:
    out = tmp_path / f"certs-{common_name}"
    result = CliRunner().invoke(
        main, ["certgen", "--output", str(out), "--common-name", common_name]
    )
    assert result.exit_code == 0, result.output
    return out


def _mint(certs: Path, *extra: str) -> str:
    result = CliRunner().invoke(
        main,
        [
            "mint-token",
            "--ca-key", str(certs / "ca.key"),
            "--ca-cert", str(certs / "ca.pem"),
            "--cert", str(certs / "node.pem"),
            *extra,
        ],
    )
    assert result.exit_code == 0, result.output
    return result.output.strip()


@pytest.fixture()
def no_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make the daemon stop as soon as it has started."""
    monkeypatch.setattr(LifecycleManager, "wait_for_signal", lambda self: None)
    monkeypatch.setattr("aumai_nodetrust.cli.configure_logging", lambda level: None)


# ===========================================================================
# Global flags
# ===========================================================================


class TestCliVersion:
    def test_version_flag_reports_0_1_0(self) -> None:
        runner = CliRunner()
        with patch("importlib.metadata.version", return_value="0.1.0"):
            result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_shows_subcommands(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for cmd in ("certgen", "mint-token", "verify-token", "daemon"):
            assert cmd in result.output


# ===========================================================================
# certgen
# ===========================================================================


class TestCertgenCommand:
    def test_writes_pem_set(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        for name in ("ca.key", "ca.pem", "node.key", "node.pem"):
            assert (certs / name).exists()

    def test_reports_curve(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            main, ["certgen", "--output", str(tmp_path / "c"), "--curve", "P384"]
        )
        assert result.exit_code == 0
        assert "p384" in result.output

    def test_unknown_curve_rejected(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            main, ["certgen", "--output", str(tmp_path / "c"), "--curve", "p192"]
        )
        assert result.exit_code != 0


# ===========================================================================
# mint-token / verify-token
# ===========================================================================


class TestMintTokenCommand:
    def test_prints_base64(self, tmp_path: Path) -> None:
        token = base64.b64decode(_mint(_certgen(tmp_path)), validate=True)
        assert token[0] == 1

    def test_writes_raw_token(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        out = tmp_path / "node.token"
        output = _mint(certs, "--output", str(out))
        assert "written to" in output
        assert out.read_bytes()[0] == 1

    def test_missing_key_exits_1(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        result = CliRunner().invoke(
            main,
            [
                "mint-token",
                "--ca-key", str(tmp_path / "missing.key"),
                "--ca-cert", str(certs / "ca.pem"),
                "--cert", str(certs / "node.pem"),
            ],
        )
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_validity_above_maximum_is_usage_error(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        result = CliRunner().invoke(
            main,
            [
                "mint-token",
                "--ca-key", str(certs / "ca.key"),
                "--ca-cert", str(certs / "ca.pem"),
                "--cert", str(certs / "node.pem"),
                "--validity", str(10**12),
            ],
        )
        assert result.exit_code == 2
        assert "Traceback" not in result.output

    def test_foreign_ca_key_exits_1(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        other = _certgen(tmp_path, "Server2")
        result = CliRunner().invoke(
            main,
            [
                "mint-token",
                "--ca-key", str(other / "ca.key"),
                "--ca-cert", str(certs / "ca.pem"),
                "--cert", str(certs / "node.pem"),
            ],
        )
        assert result.exit_code == 1
        assert "does not match" in result.output


class TestVerifyTokenCommand:
    def _verify(self, token_path: Path, certs: Path, cert: Path | None = None) -> object:
        return CliRunner().invoke(
            main,
            [
                "verify-token",
                "--token", str(token_path),
                "--ca-cert", str(certs / "ca.pem"),
                "--cert", str(cert or certs / "node.pem"),
            ],
        )

    def test_base64_token_valid(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        token_path = tmp_path / "token.b64"
        token_path.write_text(_mint(certs), encoding="ascii")
        result = self._verify(token_path, certs)
        assert result.exit_code == 0
        assert "Token: VALID" in result.output
        assert "never" in result.output

    def test_raw_token_valid(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        token_path = tmp_path / "token.bin"
        _mint(certs, "--output", str(token_path), "--validity", "3600")
        result = self._verify(token_path, certs)
        assert result.exit_code == 0

    def test_other_certificate_exits_2(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        other = _certgen(tmp_path, "Server2")
        token_path = tmp_path / "token.b64"
        token_path.write_text(_mint(certs), encoding="ascii")
        result = self._verify(token_path, certs, cert=other / "node.pem")
        assert result.exit_code == 2
        assert "INVALID" in result.output

    def test_missing_token_exits_1(self, tmp_path: Path) -> None:
        certs = _certgen(tmp_path)
        result = self._verify(tmp_path / "nope", certs)
        assert result.exit_code == 1


# ===========================================================================
# daemon
# ===========================================================================


class TestDaemonCommand:
    def test_no_auth_type_exits_1(self, no_wait: None) -> None:
        result = CliRunner().invoke(main, ["daemon"])
        assert result.exit_code == 1
        assert "No authentication option" in result.output

    def test_psk_runs_and_stops(self, no_wait: None) -> None:
        result = CliRunner().invoke(main, ["daemon", "--auth-type", "psk", "--psk", "s3cret"])
        assert result.exit_code == 0, result.output
        assert "Everything stopped. Bye!" in result.output

    def test_auth_type_from_env(self, no_wait: None) -> None:
        result = CliRunner().invoke(main, ["daemon"], env={"NODETRUST_AUTH_TYPE": "psk"})
        assert result.exit_code == 0, result.output

    def test_compact_pki_runs(self, tmp_path: Path, no_wait: None) -> None:
        certs = _certgen(tmp_path)
        registry = tmp_path / "registry.json"
        result = CliRunner().invoke(
            main,
            [
                "daemon",
                "--auth-type", "compact_pki",
                "--key", str(certs / "node.key"),
                "--cert", str(certs / "node.pem"),
                "--ca-cert", str(certs / "ca.pem"),
                "--ca-key", str(certs / "ca.key"),
                "--registry", str(registry),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Server1" in registry.read_text(encoding="utf-8")

    def test_pki_without_material_exits_1(self, no_wait: None) -> None:
        result = CliRunner().invoke(main, ["daemon", "--auth-type", "pki"])
        assert result.exit_code == 1
        assert "requires" in result.output

    def test_no_monitors_exits_1(self, no_wait: None) -> None:
        result = CliRunner().invoke(main, ["daemon", "--auth-type", "psk", "--no-docker"])
        assert result.exit_code == 1
        assert "monitor" in result.output

    def test_token_validity_above_maximum_rejected(self, no_wait: None) -> None:
        result = CliRunner().invoke(
            main, ["daemon", "--auth-type", "psk", "--token-validity", str(10**12)]
        )
        assert result.exit_code == 2

    def test_invalid_network_exits_1(self, no_wait: None) -> None:
        result = CliRunner().invoke(
            main, ["daemon", "--auth-type", "psk", "--network", "not-a-cidr"]
        )
        assert result.exit_code == 1
        assert "invalid configuration" in result.output
