"""Local port forwarding over an established SSH transport.

A :class:`PortForward` listens on ``127.0.0.1:<local>`` and tunnels every
accepted connection to ``<host>:<remote>`` as seen from the environment,
through a ``direct-tcpip`` channel. Forwards live exactly as long as the
interactive session that started them.
"""

from __future__ import annotations

import logging
import select
import socket
import socketserver
import threading
from typing import Any, Optional

import paramiko

from cloudshell.exceptions import InvalidUsageError, SessionError

logger = logging.getLogger(__name__)

_BUFFER_SIZE = 32768
_SELECT_TIMEOUT = 0.5


class PortForward:
    """One ``local -> remote`` TCP forward.

    Args:
        local_port: Port to listen on locally. ``0`` picks a free port.
        remote_port: Port to reach on the environment.
        remote_host: Host the environment connects to, normally itself.
    """

    def __init__(self, local_port: int, remote_port: int, remote_host: str = "localhost") -> None:
        self.local_port = local_port
        self.remote_port = remote_port
        self.remote_host = remote_host
        self._server: Optional[_ForwardServer] = None
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def parse(cls, text: str) -> PortForward:
        """Parse ``LOCAL:REMOTE`` or ``LOCAL:HOST:REMOTE``.

        Raises:
            InvalidUsageError: If the value is malformed or a port is out of range.
        """
        parts = text.strip().split(":")
        if len(parts) == 2:
            local, remote = parts
            host = "localhost"
        elif len(parts) == 3:
            local, host, remote = parts
        else:
            raise InvalidUsageError(
                f"Invalid forward '{text}': expected LOCAL:REMOTE, e.g. 8080:8080"
            )
        if not host:
            raise InvalidUsageError(f"Invalid forward '{text}': empty host")
        return cls(_port(local, text), _port(remote, text), host)

    @property
    def bound_port(self) -> int:
        """The local port actually listened on, once started."""
        if self._server is None:
            return self.local_port
        return self._server.server_address[1]

    def start(self, transport: paramiko.Transport) -> None:
        """Start listening and tunnelling through *transport*.

        Raises:
            SessionError: If the local port cannot be bound.
        """
        try:
            self._server = _ForwardServer(("127.0.0.1", self.local_port), _ForwardHandler)
        except OSError as exc:
            raise SessionError(f"Cannot listen on local port {self.local_port}: {exc}") from exc
        self._server.transport = transport
        self._server.remote = (self.remote_host, self.remote_port)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": _SELECT_TIMEOUT},
            name=f"cloudshell-forward-{self.bound_port}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(
            "Forwarding 127.0.0.1:%d -> %s:%d", self.bound_port, self.remote_host, self.remote_port
        )

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None

    def __repr__(self) -> str:
        return f"PortForward({self.local_port}:{self.remote_host}:{self.remote_port})"


def _port(value: str, text: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise InvalidUsageError(f"Invalid forward '{text}': '{value}' is not a port") from None
    if not 0 <= port <= 65535:
        raise InvalidUsageError(f"Invalid forward '{text}': port {port} out of range")
    return port


class _ForwardServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    transport: paramiko.Transport
    remote: tuple[str, int]


class _ForwardHandler(socketserver.BaseRequestHandler):
    server: _ForwardServer

    def handle(self) -> None:
        peer = self.request.getpeername()
        try:
            channel = self.server.transport.open_channel(
                "direct-tcpip", self.server.remote, peer
            )
        except (paramiko.SSHException, socket.error) as exc:
            logger.debug("Forward to %s:%d refused: %s", *self.server.remote, exc)
            return
        if channel is None:
            logger.debug("Forward to %s:%d rejected by server", *self.server.remote)
            return

        try:
            _pump(self.request, channel)
        finally:
            channel.close()


def _pump(sock: socket.socket, channel: Any) -> None:
    """Copy bytes both ways until either side closes or fails."""
    try:
        while True:
            readable, _, _ = select.select([sock, channel], [], [], _SELECT_TIMEOUT)
            if sock in readable:
                data = sock.recv(_BUFFER_SIZE)
                if not data:
                    return
                channel.sendall(data)
            if channel in readable:
                data = channel.recv(_BUFFER_SIZE)
                if not data:
                    return
                sock.sendall(data)
    except (OSError, paramiko.SSHException) as exc:
        logger.debug("Forwarded connection dropped: %s", exc)
