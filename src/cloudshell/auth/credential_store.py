"""Persistent store for the single OAuth2 credential.

Stores the credential in ``~/.local/share/cloudshell/credentials.json``
(XDG) or the platform-equivalent directory. Files are written atomically
via :func:`~cloudshell.config.atomic_write` with ``0o600`` permissions so
the token is never world-readable, even momentarily, and a concurrent
reader never observes a half-written file.

See Also:
    :class:`~cloudshell.auth.oauth.TokenAcquirer` -- the only writer.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from cloudshell.config import atomic_write
from cloudshell.models import Credential

logger = logging.getLogger(__name__)


class CredentialStore:
    """Read/write the bearer credential at a fixed path.

    The file holds one serialised :class:`~cloudshell.models.Credential`.
    It is replaced wholesale on every save; there is no partial update.

    Args:
        path: Location of the credential file.

    Example::

        store = CredentialStore(paths.credentials)
        store.save(Credential(access_token="ya29.abc"))
        assert store.load().access_token == "ya29.abc"
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """The filesystem path of the credential file."""
        return self._path

    def save(self, credential: Credential) -> None:
        """Persist *credential* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        data = credential.model_dump(mode="json", exclude_none=True)
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)
        logger.debug("Saved credential to %s", self._path)

    def load(self) -> Optional[Credential]:
        """Load the stored credential from disk.

        Returns:
            The deserialised :class:`~cloudshell.models.Credential`, or
            ``None`` if the file does not exist or cannot be parsed.
        """
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return Credential.model_validate(data)
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, OSError) as exc:
            logger.debug("Ignoring unreadable credential file %s: %s", self._path, exc)
            return None

    def clear(self) -> bool:
        """Delete the stored credential file.

        Returns:
            ``True`` if a file was removed, ``False`` if there was none.
        """
        if self._path.is_file():
            self._path.unlink()
            return True
        return False
