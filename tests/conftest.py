"""Shared test fixtures for cloudshell.

Provides isolated config/data directories, output state management, sample
API payloads, and a CLI runner. These fixtures are automatically discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from cloudshell.config import Paths
from cloudshell.models import ClientSecrets, Credential
from cloudshell.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless OutputManager for library-level tests."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    return output


# ---------------------------------------------------------------------------
# Isolated directories
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Paths:
    """Point XDG config/data dirs at ``tmp_path`` and clear env overrides."""
    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"
    monkeypatch.setattr("cloudshell.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    for var in (
        "CLOUDSHELL_API_URL",
        "CLOUDSHELL_POLL_INTERVAL",
        "CLOUDSHELL_START_TIMEOUT",
        "CLOUDSHELL_CONNECT_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    return Paths.default()


@pytest.fixture
def client_secrets(isolated_config: Paths) -> ClientSecrets:
    """Write a desktop-app ``client_secrets.json`` into the config dir."""
    data = {
        "installed": {
            "client_id": "test-client.apps.googleusercontent.com",
            "client_secret": "test-secret",
            "auth_uri": "https://accounts.example.com/o/oauth2/auth",
            "token_uri": "https://oauth2.example.com/token",
        }
    }
    isolated_config.client_secrets.write_text(json.dumps(data), encoding="utf-8")
    return ClientSecrets.model_validate(data)


@pytest.fixture
def credential() -> Credential:
    return Credential(access_token="ya29.test-token", refresh_token="1//refresh")


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


def environment_payload(state: str = "RUNNING", **overrides: Any) -> dict[str, Any]:
    """Build a ``GET environments/default`` response body."""
    body: dict[str, Any] = {
        "name": "users/me/environments/default",
        "id": "default",
        "dockerImage": "gcr.io/cloudshell-images/cloudshell:latest",
        "state": state,
        "webHost": "shell.example.com",
        "publicKeys": ["ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIExampleKeyMaterial"],
    }
    if state == "RUNNING":
        body.update(sshHost="1.2.3.4", sshPort=6000, sshUsername="user")
    body.update(overrides)
    return body


@pytest.fixture
def make_environment():
    """Factory fixture for environment response bodies."""
    return environment_payload


@pytest.fixture
def running_payload() -> dict[str, Any]:
    return environment_payload("RUNNING")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Typer CliRunner."""
    return CliRunner()
