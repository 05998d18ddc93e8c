"""Managed SSH key pair used to authenticate to the environment.

The key pair is generated once per state directory, on first use, and reused
for every later connection. It is never rotated automatically.

Security requirements:

- Private key: OpenSSH format, ``0o600``, never logged.
- Public key: ``<format> <content>`` line as the API expects it, ``0o644``.
- Ed25519 only.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from cloudshell.config import atomic_write
from cloudshell.exceptions import ConfigError
from cloudshell.models import ManagedKeyPair

logger = logging.getLogger(__name__)


class KeyStore:
    """Create and load the managed key pair.

    Args:
        private_key_path: Where the OpenSSH private key lives.
        public_key_path: Where the matching public key line lives.
    """

    def __init__(self, private_key_path: Path, public_key_path: Path) -> None:
        self._private_path = private_key_path
        self._public_path = public_key_path
        self._lock = threading.Lock()

    @property
    def private_key_path(self) -> Path:
        return self._private_path

    def exists(self) -> bool:
        """Return ``True`` if the private key file is present."""
        return self._private_path.is_file()

    def ensure(self) -> ManagedKeyPair:
        """Return the key pair, generating it if the private key is absent.

        A missing public key file is re-derived from the private key.

        Raises:
            ConfigError: If an existing private key cannot be parsed.
        """
        with self._lock:
            if not self.exists():
                return self._generate()

            if self._public_path.is_file():
                public_key = self._public_path.read_text(encoding="utf-8").strip()
            else:
                public_key = self._derive_public_key()
                atomic_write(self._public_path, public_key + "\n", mode=0o644)
            return ManagedKeyPair(private_key_path=self._private_path, public_key=public_key)

    def _generate(self) -> ManagedKeyPair:
        logger.debug("Generating managed key pair at %s", self._private_path)
        key = Ed25519PrivateKey.generate()
        private_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.OpenSSH,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")
        public_key = _public_line(key)

        # Public first: a crash in between leaves no private key, so the next
        # call regenerates both.
        atomic_write(self._public_path, public_key + "\n", mode=0o644)
        atomic_write(self._private_path, private_pem, mode=0o600)
        return ManagedKeyPair(private_key_path=self._private_path, public_key=public_key)

    def _derive_public_key(self) -> str:
        try:
            key = serialization.load_ssh_private_key(
                self._private_path.read_bytes(), password=None
            )
        except (ValueError, TypeError, OSError) as exc:
            raise ConfigError(
                f"Cannot read managed private key {self._private_path}: {exc}"
            ) from exc
        if not isinstance(key, Ed25519PrivateKey):
            raise ConfigError(f"Managed key {self._private_path} is not an Ed25519 key")
        return _public_line(key)


def _public_line(key: Ed25519PrivateKey) -> str:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode("ascii")
