"""Interactive SSH shell on a running environment.

:class:`InteractiveSession` connects with the managed key, requests a
PTY sized like the local terminal, and relays bytes between the local
terminal and the remote shell until the shell exits. The remote exit
status is returned so the CLI can exit with it.

Host keys are not verified. The environment presents a new host key on
every boot and its endpoint comes from an authenticated API response.
"""

from __future__ import annotations

import logging
import os
import select
import socket
import sys
from pathlib import Path
from typing import IO, Any, Optional, Sequence

import paramiko

from cloudshell.exceptions import SessionError, UnavailableError
from cloudshell.models import Environment, EnvironmentState
from cloudshell.session.forward import PortForward
from cloudshell.session.terminal import ResizeWatcher, raw_mode, terminal_size

logger = logging.getLogger(__name__)

NO_EXIT_STATUS = 255

_BUFFER_SIZE = 32768
_SELECT_TIMEOUT = 0.1


class InteractiveSession:
    """Open a login shell on the environment over SSH.

    Args:
        private_key_path: The managed Ed25519 private key.
        connect_timeout: Seconds allowed for the TCP connect and SSH handshake.
        forwards: Local port forwards kept open for the session's lifetime.
        stdin: Local terminal input. Must be a TTY.
        stdout: Receives the remote shell's standard output.
        stderr: Receives the remote shell's standard error.
        term: Terminal type requested for the PTY. Defaults to ``$TERM``.
    """

    def __init__(
        self,
        private_key_path: Path,
        connect_timeout: float = 30.0,
        forwards: Optional[Sequence[PortForward]] = None,
        stdin: Optional[IO[Any]] = None,
        stdout: Optional[IO[Any]] = None,
        stderr: Optional[IO[Any]] = None,
        term: Optional[str] = None,
    ) -> None:
        self._private_key_path = private_key_path
        self._connect_timeout = connect_timeout
        self._forwards = list(forwards or [])
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._stderr = stderr if stderr is not None else sys.stderr
        self._term = term or os.environ.get("TERM") or "xterm"

    def connect(self, env: Environment) -> int:
        """Run an interactive shell on *env* and return its exit status.

        Raises:
            UnavailableError: If *env* is not running, lacks SSH details, or
                stdin is not a terminal.
            SessionError: If the SSH transport or channel fails. A non-zero
                exit status from the shell itself is not an error.
        """
        if env.state is not EnvironmentState.RUNNING:
            raise UnavailableError(f"Environment is not running (state: {env.display_state})")
        if not env.has_ssh:
            raise UnavailableError("SSH is unavailable for this environment")

        pkey = self._load_key()
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            logger.debug("Connecting to %s@%s:%d", env.ssh_username, env.ssh_host, env.ssh_port)
            try:
                client.connect(
                    hostname=env.ssh_host,
                    port=env.ssh_port,
                    username=env.ssh_username,
                    pkey=pkey,
                    timeout=self._connect_timeout,
                    banner_timeout=self._connect_timeout,
                    auth_timeout=self._connect_timeout,
                    look_for_keys=False,
                    allow_agent=False,
                )
                transport = client.get_transport()
                if transport is None:
                    raise SessionError("SSH transport closed unexpectedly")
                channel = transport.open_session()
            except paramiko.AuthenticationException as exc:
                raise SessionError(f"SSH authentication failed: {exc}") from exc
            except (paramiko.SSHException, socket.error) as exc:
                raise SessionError(
                    f"Cannot connect to {env.ssh_host}:{env.ssh_port}: {exc}"
                ) from exc

            if not self._stdin.isatty():
                raise UnavailableError("stdin is not a terminal")

            started: list[PortForward] = []
            try:
                for forward in self._forwards:
                    forward.start(transport)
                    started.append(forward)
                return self._run_shell(channel)
            finally:
                for forward in started:
                    forward.stop()
        finally:
            client.close()

    def _load_key(self) -> paramiko.PKey:
        try:
            return paramiko.Ed25519Key.from_private_key_file(str(self._private_key_path))
        except (paramiko.SSHException, OSError) as exc:
            raise SessionError(
                f"Cannot load managed key {self._private_key_path}: {exc}"
            ) from exc

    def _run_shell(self, channel: paramiko.Channel) -> int:
        fd = self._stdin.fileno()
        try:
            with raw_mode(fd):
                width, height = terminal_size(fd)
                channel.get_pty(term=self._term, width=width, height=height)
                with ResizeWatcher(fd, lambda w, h: channel.resize_pty(width=w, height=h)):
                    channel.invoke_shell()
                    self._relay(fd, channel)
            status = channel.recv_exit_status()
        except (paramiko.SSHException, socket.error) as exc:
            raise SessionError(f"SSH session failed: {exc}") from exc

        logger.debug("Remote shell exited with status %d", status)
        return NO_EXIT_STATUS if status == -1 else status

    def _relay(self, fd: int, channel: paramiko.Channel) -> None:
        """Copy terminal input to the channel and channel output to the terminal."""
        watch: list[Any] = [fd, channel]
        while True:
            readable, _, _ = select.select(watch, [], [], _SELECT_TIMEOUT)

            while channel.recv_stderr_ready():
                _write(self._stderr, channel.recv_stderr(_BUFFER_SIZE))
            if channel in readable or channel.recv_ready():
                data = channel.recv(_BUFFER_SIZE)
                if not data:
                    return
                _write(self._stdout, data)

            if fd in readable:
                data = os.read(fd, _BUFFER_SIZE)
                if data:
                    channel.sendall(data)
                else:
                    channel.shutdown_write()
                    watch.remove(fd)

            if channel.exit_status_ready() and not (
                channel.recv_ready() or channel.recv_stderr_ready()
            ):
                return


def _write(stream: IO[Any], data: bytes) -> None:
    target = getattr(stream, "buffer", stream)
    target.write(data)
    target.flush()
