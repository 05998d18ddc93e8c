"""Configuration management with XDG paths, atomic writes, and env overrides.

This module handles all persistent local state for cloudshell:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cloudshell/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`. Both directories are created with ``0o700``.
* **Client secrets** -- the OAuth2 client registration the user downloads
  from the Google Cloud console, see :func:`load_client_secrets`.
* **Settings** -- optional ``config.json`` deserialised into
  :class:`~cloudshell.models.Settings`, overridden by ``CLOUDSHELL_*``
  environment variables. See :func:`load_settings`.
* **State paths** -- where the credential and the managed key pair live,
  bundled in :class:`Paths`.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so readers never observe a partial file.
"""

from __future__ import annotations

import contextlib
import json
import os
import platform
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from cloudshell.exceptions import ConfigError
from cloudshell.models import ClientSecrets, Settings

_APP_NAME = "cloudshell"
_CONFIG_FILENAME = "config.json"
_CLIENT_SECRETS_FILENAME = "client_secrets.json"
_CREDENTIALS_FILENAME = "credentials.json"
_KEY_FILENAME = "id_ed25519"

SETUP_URL = "https://github.com/astrophena/cloudshell#setup"

_ENV_OVERRIDES = {
    "CLOUDSHELL_API_URL": "api_url",
    "CLOUDSHELL_POLL_INTERVAL": "poll_interval",
    "CLOUDSHELL_START_TIMEOUT": "start_timeout",
    "CLOUDSHELL_CONNECT_TIMEOUT": "connect_timeout",
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow the XDG base directory layout."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _xdg_home(env_var: str, *fallback: str) -> Path:
    value = os.environ.get(env_var)
    return Path(value) if value else Path.home().joinpath(*fallback)


def _private_dir(path: Path) -> Path:
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``client_secrets.json`` and ``config.json``.

    ``$XDG_CONFIG_HOME/cloudshell`` (default ``~/.config/cloudshell``) on
    XDG platforms, ``~/.cloudshell`` elsewhere. Created on first call.
    """
    if _is_xdg_platform():
        return _private_dir(_xdg_home("XDG_CONFIG_HOME", ".config") / _APP_NAME)
    return _private_dir(Path.home() / f".{_APP_NAME}")


def get_data_dir() -> Path:
    """Directory holding the credential, the managed key pair and crash logs.

    ``$XDG_DATA_HOME/cloudshell`` (default ``~/.local/share/cloudshell``) on
    XDG platforms, ``~/.cloudshell/state`` elsewhere. Created ``0700`` on
    first call.
    """
    if _is_xdg_platform():
        return _private_dir(_xdg_home("XDG_DATA_HOME", ".local", "share") / _APP_NAME)
    return _private_dir(Path.home() / f".{_APP_NAME}" / "state")


@dataclass(frozen=True)
class Paths:
    """Resolved locations of every file cloudshell reads or writes."""

    config_dir: Path
    data_dir: Path

    @classmethod
    def default(cls) -> Paths:
        return cls(config_dir=get_config_dir(), data_dir=get_data_dir())

    @property
    def client_secrets(self) -> Path:
        return self.config_dir / _CLIENT_SECRETS_FILENAME

    @property
    def settings(self) -> Path:
        return self.config_dir / _CONFIG_FILENAME

    @property
    def credentials(self) -> Path:
        return self.data_dir / _CREDENTIALS_FILENAME

    @property
    def private_key(self) -> Path:
        return self.data_dir / _KEY_FILENAME

    @property
    def public_key(self) -> Path:
        return self.data_dir / f"{_KEY_FILENAME}.pub"


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* so readers see the old file or the new one.

    The content goes to a sibling temp file that is synced and then renamed
    over *path*. *mode* is set on the temp file before anything is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with handle:
            if mode is not None:
                os.chmod(handle.name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(handle.name)
        raise


# --- Client secrets ---


def load_client_secrets(path: Path) -> ClientSecrets:
    """Load the OAuth2 client registration from *path*.

    Args:
        path: Location of ``client_secrets.json``.

    Returns:
        The parsed :class:`~cloudshell.models.ClientSecrets`.

    Raises:
        ConfigError: If the file is missing, is not JSON, or lacks a
            client ID or secret. Raised before any network activity.
    """
    if not path.is_file():
        raise ConfigError(
            f"{_CLIENT_SECRETS_FILENAME} is missing in {path.parent}.\n"
            f"See {SETUP_URL} for setup instructions."
        )
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientSecrets.model_validate(data)
    except (json.JSONDecodeError, ValidationError, OSError) as exc:
        raise ConfigError(f"Invalid client secrets file at {path}: {exc}") from exc


# --- Settings ---


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, field in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            overrides[field] = value
    return overrides


def load_settings(path: Path) -> Settings:
    """Load settings with precedence env vars > ``config.json`` > defaults.

    Args:
        path: Location of the optional ``config.json``.

    Returns:
        The effective :class:`~cloudshell.models.Settings`.

    Raises:
        ConfigError: If the file contains invalid JSON or any value (from
            the file or the environment) fails validation.
    """
    data: dict[str, Any] = {}
    if path.is_file():
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"Invalid settings file at {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Invalid settings file at {path}: expected a JSON object")
        data.update(loaded)

    data.update(_env_overrides())
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
