from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest

from faasr_backend import cli


def _configure_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_APP_ID", "12345")
    monkeypatch.setenv("GITHUB_PRIVATE_KEY", "pem")
    monkeypatch.setenv("GITHUB_CLIENT_ID", "Iv1.client")
    monkeypatch.setenv("GITHUB_CLIENT_SECRET", "secret")
    monkeypatch.setenv("JWT_SECRET", "x" * 32)


def test_check_config_reports_missing_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)

    assert cli.main(["check-config"]) == 1
    assert "warning: GITHUB_APP_ID is not set" in capsys.readouterr().out


def test_check_config_passes_when_configured(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    _configure_env(monkeypatch)

    assert cli.main(["check-config"]) == 0
    assert "Configuration OK" in capsys.readouterr().out


def test_invalid_configuration_exits_with_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("JWT_SECRET", "short")

    assert cli.main(["check-config"]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_serve_runs_uvicorn(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    run = Mock()
    monkeypatch.setattr(cli.uvicorn, "run", run)
    monkeypatch.setattr(cli, "configure_logging", Mock())

    assert cli.main(["serve", "--host", "0.0.0.0", "--port", "9000"]) == 0

    run.assert_called_once()
    assert run.call_args.kwargs["host"] == "0.0.0.0"
    assert run.call_args.kwargs["port"] == 9000
