"""Local stream sockets connecting the controller and the daemon."""

from __future__ import annotations

import os
import socket
import sys

_ABSTRACT_NAMESPACE = sys.platform.startswith("linux")


class StreamError(OSError):
    """Failure on a local socket stream."""

    def __init__(self, message: str, *, other: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.other = other

    def __str__(self) -> str:
        prefix = "Unknow Error" if self.other else "IO Error"
        return f"{prefix}: {self.message}"


def socket_address(name: str) -> str:
    """Return the socket address for ``name``.

    Linux uses the abstract namespace; elsewhere the name is a file path.
    """
    if _ABSTRACT_NAMESPACE:
        return "\0" + name
    return name


class SocketStream:
    """A connected stream with exact-length reads and whole writes."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    @classmethod
    def connect(cls, name: str) -> SocketStream:
        """Connect to the listener registered under ``name``."""
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(socket_address(name))
        except OSError as err:
            sock.close()
            raise StreamError(str(err)) from err
        return cls(sock)

    def write(self, data: bytes) -> None:
        """Write ``data`` in one call; a partial write is an error."""
        try:
            written = self._sock.send(data)
        except OSError as err:
            raise StreamError(str(err)) from err
        if written != len(data):
            raise StreamError(
                f"Failed to write all bytes. Expected: {len(data)}, Written: {written}",
                other=True,
            )

    def read(self, length: int) -> bytes:
        """Read exactly ``length`` bytes."""
        received = bytearray()
        while len(received) < length:
            try:
                chunk = self._sock.recv(length - len(received))
            except OSError as err:
                raise StreamError(str(err)) from err
            if not chunk:
                raise StreamError("failed to fill whole buffer")
            received += chunk
        return bytes(received)

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> SocketStream:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class StreamListener:
    """Listening socket that hands out ``SocketStream`` connections."""

    def __init__(self, name: str) -> None:
        self._address = socket_address(name)
        self._sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            self._sock.bind(self._address)
            self._sock.listen()
        except OSError as err:
            self._sock.close()
            raise StreamError(str(err)) from err

    def accept(self) -> SocketStream:
        """Wait for the next client and return its stream."""
        try:
            conn, _ = self._sock.accept()
        except OSError as err:
            raise StreamError(str(err)) from err
        return SocketStream(conn)

    def close(self) -> None:
        self._sock.close()
        if not self._address.startswith("\0"):
            try:
                os.unlink(self._address)
            except FileNotFoundError:
                pass

    def __enter__(self) -> StreamListener:
        return self

    def __exit__(self, *args) -> None:
        self.close()