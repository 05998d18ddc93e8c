"""Credential acquisition and persistence for the Cloud Shell API.

The main entry points are:

- :class:`CredentialStore` -- the cached bearer credential on disk.
- :class:`TokenAcquirer` -- returns the cached credential or runs the
  loopback OAuth2 authorization-code flow to obtain a new one.

Typical usage::

    from cloudshell.auth import CredentialStore, TokenAcquirer

    acquirer = TokenAcquirer(secrets, CredentialStore(paths.credentials))
    credential = acquirer.acquire(cancel)
"""

from cloudshell.auth.credential_store import CredentialStore
from cloudshell.auth.oauth import SCOPE, STATE_TOKEN, TokenAcquirer

__all__ = [
    "CredentialStore",
    "SCOPE",
    "STATE_TOKEN",
    "TokenAcquirer",
]
