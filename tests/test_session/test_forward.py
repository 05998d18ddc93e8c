"""Tests for local port forwarding."""

from __future__ import annotations

import socket
import socketserver
import threading
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from cloudshell.exceptions import InvalidUsageError, SessionError
from cloudshell.session.forward import PortForward, _pump


class TestParse:
    def test_local_remote(self) -> None:
        forward = PortForward.parse("8080:3000")
        assert forward.local_port == 8080
        assert forward.remote_port == 3000
        assert forward.remote_host == "localhost"

    def test_with_host(self) -> None:
        forward = PortForward.parse("5432:db.internal:5432")
        assert forward.remote_host == "db.internal"
        assert forward.remote_port == 5432

    @pytest.mark.parametrize(
        "value", ["8080", "a:b", "8080:", "1:2:3:4", "70000:22", "8080::22", ""]
    )
    def test_invalid(self, value: str) -> None:
        with pytest.raises(InvalidUsageError):
            PortForward.parse(value)


def _echo_peer() -> tuple[socket.socket, threading.Thread]:
    """Return one end of a socket pair whose other end echoes everything back."""
    local, remote = socket.socketpair()

    def echo() -> None:
        with remote:
            while True:
                data = remote.recv(1024)
                if not data:
                    return
                remote.sendall(data)

    thread = threading.Thread(target=echo, daemon=True)
    thread.start()
    return local, thread


class TestTunnel:
    def test_relays_through_direct_tcpip_channel(self) -> None:
        channel, echo_thread = _echo_peer()
        transport = MagicMock(spec=paramiko.Transport)
        transport.open_channel.return_value = channel

        forward = PortForward(0, 8080)
        forward.start(transport)
        try:
            with socket.create_connection(("127.0.0.1", forward.bound_port), timeout=5) as conn:
                conn.sendall(b"ping")
                assert conn.recv(1024) == b"ping"
        finally:
            forward.stop()

        kind, dest, _origin = transport.open_channel.call_args.args
        assert kind == "direct-tcpip"
        assert dest == ("localhost", 8080)

    def test_rejected_channel_closes_connection(self) -> None:
        transport = MagicMock(spec=paramiko.Transport)
        transport.open_channel.side_effect = paramiko.ChannelException(2, "Connect failed")

        forward = PortForward(0, 9)
        forward.start(transport)
        try:
            with socket.create_connection(("127.0.0.1", forward.bound_port), timeout=5) as conn:
                assert conn.recv(1024) == b""
        finally:
            forward.stop()

    def test_port_in_use(self) -> None:
        with socket.socket() as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen(1)
            port = taken.getsockname()[1]
            forward = PortForward(port, 22)
            with pytest.raises(SessionError, match=str(port)):
                forward.start(MagicMock(spec=paramiko.Transport))

    def test_stop_releases_port(self) -> None:
        forward = PortForward(0, 22)
        forward.start(MagicMock(spec=paramiko.Transport))
        port = forward.bound_port
        forward.stop()

        with socket.socket() as rebind:
            rebind.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            rebind.bind(("127.0.0.1", port))

    def test_stop_without_start(self) -> None:
        PortForward(0, 22).stop()


class _ResettingChannel:
    """Channel stand-in whose peer has gone away."""

    def __init__(self) -> None:
        self._sock, self._peer = socket.socketpair()

    def fileno(self) -> int:
        return self._sock.fileno()

    def recv(self, size: int) -> bytes:
        return self._sock.recv(size)

    def sendall(self, data: bytes) -> None:
        raise ConnectionResetError(104, "Connection reset by peer")

    def close(self) -> None:
        self._sock.close()
        self._peer.close()


class TestPump:
    def test_connection_reset_ends_relay_quietly(self) -> None:
        local, client = socket.socketpair()
        channel = _ResettingChannel()
        try:
            client.sendall(b"payload")
            _pump(local, channel)
        finally:
            channel.close()
            local.close()
            client.close()

    def test_reset_does_not_reach_server_error_handler(self) -> None:
        channel = _ResettingChannel()
        transport = MagicMock(spec=paramiko.Transport)
        transport.open_channel.return_value = channel

        forward = PortForward(0, 8080)
        forward.start(transport)
        try:
            with patch.object(socketserver.BaseServer, "handle_error") as handle_error:
                with socket.create_connection(("127.0.0.1", forward.bound_port), timeout=5) as conn:
                    conn.sendall(b"payload")
                    assert conn.recv(1024) == b""
        finally:
            forward.stop()

        handle_error.assert_not_called()
