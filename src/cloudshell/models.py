"""Canonical Pydantic models shared across all cloudshell modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Local state** -- serialised as JSON in the user's config/data directories:
    :class:`Credential`, :class:`ClientSecrets`, :class:`Settings`, and
    :class:`ManagedKeyPair`.

**API projections** -- decoded from Cloud Shell REST responses and never
cached beyond the call that fetched them:
    :class:`EnvironmentState` and :class:`Environment`.

All models use Pydantic v2. API models accept the provider's camelCase keys
through an alias generator and ignore fields this client does not use.
"""

from __future__ import annotations

import enum
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_API_URL = "https://cloudshell.googleapis.com/v1"
DEFAULT_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


# --- OAuth2 ---


class Credential(BaseModel):
    """A bearer credential issued by the OAuth2 token endpoint.

    Field names follow the token endpoint's wire names so the persisted
    file is interchangeable with other OAuth2 tooling. Instances are
    replaced wholesale on every successful exchange and never mutated.

    Attributes:
        access_token: The bearer token sent with every API request.
        token_type: Authorization scheme, almost always ``"Bearer"``.
        refresh_token: Long-lived token granted because offline access is
            requested. Stored for completeness; this client does not
            refresh automatically.
        expiry: UTC time at which ``access_token`` stops being accepted.
    """

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None

    @property
    def authorization_header(self) -> str:
        """Value for the ``Authorization`` request header."""
        return f"{self.token_type or 'Bearer'} {self.access_token}"


class ClientSecrets(BaseModel):
    """OAuth2 client registration loaded from ``client_secrets.json``.

    Google's download wraps the fields in an ``installed`` (desktop app) or
    ``web`` section; both layouts, as well as a flat object, are accepted.
    """

    model_config = ConfigDict(extra="ignore")

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    auth_uri: str = DEFAULT_AUTH_URI
    token_uri: str = DEFAULT_TOKEN_URI

    @model_validator(mode="before")
    @classmethod
    def _unwrap_section(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for section in ("installed", "web"):
                if isinstance(data.get(section), dict):
                    return data[section]
        return data


# --- Cloud Shell environment ---


class EnvironmentState(str, enum.Enum):
    """Lifecycle state of the remote environment.

    ``RUNNING`` is the only state in which a session can be opened.
    ``DELETING`` is terminal for a start attempt. Every provider value this
    client does not recognise maps to ``UNKNOWN`` and is polled like
    ``STARTING``.
    """

    DISABLED = "DISABLED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    DELETING = "DELETING"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> EnvironmentState:
        """Map a raw provider state string onto a member of this enum."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper()
        raw = _STATE_ALIASES.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


# The v1 API reports a stopped environment as SUSPENDED and a booting one as PENDING.
_STATE_ALIASES = {
    "SUSPENDED": "DISABLED",
    "PENDING": "STARTING",
}


class Environment(BaseModel):
    """Projection of the remote environment as returned by ``GET environments/default``.

    Connection fields are only populated while the environment is
    ``RUNNING``; use :attr:`has_ssh` rather than testing them one by one.

    Attributes:
        name: Full resource name, e.g. ``users/me/environments/default``.
        state: Parsed lifecycle state.
        raw_state: The state string exactly as the provider reported it.
        docker_image: Image the environment runs.
        web_host: Host serving the browser-based terminal.
        ssh_host: SSH endpoint host.
        ssh_port: SSH endpoint port (``0`` when unavailable).
        ssh_username: Login name on the environment.
        public_keys: Authorized OpenSSH public keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    name: str = ""
    id: str = ""
    state: EnvironmentState = EnvironmentState.UNKNOWN
    raw_state: str = ""
    docker_image: str = ""
    web_host: str = ""
    ssh_host: str = ""
    ssh_port: int = 0
    ssh_username: str = ""
    public_keys: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _keep_raw_state(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("raw_state") or data.get("rawState")):
            state = data.get("state")
            if state is not None:
                raw = state.value if isinstance(state, EnvironmentState) else str(state)
                data = {**data, "raw_state": raw}
        return data

    @field_validator("state", mode="before")
    @classmethod
    def _parse_state(cls, value: Any) -> EnvironmentState:
        return EnvironmentState.parse(value)

    @property
    def has_ssh(self) -> bool:
        """``True`` when host, port, and username are all populated."""
        return bool(self.ssh_host and self.ssh_port and self.ssh_username)

    @property
    def display_state(self) -> str:
        """Human-friendly state, e.g. ``"Running"`` for ``"RUNNING"``."""
        raw = self.raw_state or self.state.value
        return raw.lower().capitalize()


class ManagedKeyPair(BaseModel):
    """The Ed25519 key pair this tool uses to authenticate to the environment.

    Attributes:
        private_key_path: OpenSSH-format private key file (mode ``0o600``).
        public_key: The public key as a single ``authorized_keys`` line.
    """

    private_key_path: Path
    public_key: str


# --- Settings ---


class Settings(BaseModel):
    """User-tunable settings persisted at ``~/.config/cloudshell/config.json``.

    Loaded by :func:`~cloudshell.config.load_settings`, which layers
    ``CLOUDSHELL_*`` environment variables on top of the file.
    """

    api_url: str = Field(
        default=DEFAULT_API_URL, description="Base URL of the Cloud Shell API"
    )
    poll_interval: float = Field(
        default=5.0, gt=0, description="Seconds between state polls while starting"
    )
    start_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Give up waiting for RUNNING after this many seconds (None = wait forever)",
    )
    connect_timeout: float = Field(
        default=30.0, gt=0, description="SSH connection timeout in seconds"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="HTTP request timeout in seconds"
    )
