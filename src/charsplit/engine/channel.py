"""Byte channels between the coordinator and one worker.

A channel is a bidirectional byte stream with two guarantees the binary
protocol relies on: ``write_all`` transfers every byte or raises, and
``read_exact`` returns exactly the requested number of bytes or raises.
Short transfers are never returned to the caller.

Two transports are provided:

- ``FdChannel`` wraps a pair of raw OS pipe descriptors (fork backend).
- ``ConnectionChannel`` wraps a ``multiprocessing.connection.Connection``
  (named-pipe backend). The connection frames each ``send_bytes`` call, so
  reads are buffered until enough bytes have arrived.
"""

from __future__ import annotations

import contextlib
import os
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from charsplit._internal.errors import TransportError

if TYPE_CHECKING:
    from multiprocessing.connection import Connection
    from types import TracebackType


class Channel(ABC):
    """One endpoint of a coordinator/worker channel."""

    @abstractmethod
    def write_all(self, data: bytes) -> None:
        """Write every byte of ``data`` or raise.

        Args:
            data: Bytes to send.

        Raises:
            TransportError: If the channel fails before all bytes are sent.
        """

    @abstractmethod
    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes or raise.

        Args:
            size: Number of bytes to read.

        Returns:
            The bytes read, of length ``size``.

        Raises:
            TransportError: If the peer closes or the read fails first.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the endpoint. Safe to call more than once."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Return True once ``close()`` has been called."""

    def __enter__(self) -> Channel:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _short_read(size: int, received: int) -> TransportError:
    msg = f"Channel closed after {received} of {size} bytes"
    return TransportError(msg, expected=size, transferred=received)


class FdChannel(Channel):
    """Channel over two unidirectional OS pipe descriptors.

    Args:
        read_fd: Descriptor this endpoint reads from.
        write_fd: Descriptor this endpoint writes to.
    """

    def __init__(self, read_fd: int, write_fd: int) -> None:
        self.read_fd = read_fd
        self.write_fd = write_fd
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_all(self, data: bytes) -> None:
        if self._closed:
            msg = "Write on closed channel"
            raise TransportError(msg, expected=len(data))

        view = memoryview(data)
        sent = 0
        while sent < len(view):
            try:
                written = os.write(self.write_fd, view[sent:])
            except OSError as exc:
                msg = f"Writing {len(view)} bytes to channel failed after {sent}: {exc}"
                raise TransportError(msg, expected=len(view), transferred=sent) from exc
            if written == 0:
                msg = f"Channel accepted 0 bytes after {sent} of {len(view)}"
                raise TransportError(msg, expected=len(view), transferred=sent)
            sent += written

    def read_exact(self, size: int) -> bytes:
        if self._closed:
            msg = "Read on closed channel"
            raise TransportError(msg, expected=size)

        buf = bytearray()
        while len(buf) < size:
            try:
                chunk = os.read(self.read_fd, size - len(buf))
            except OSError as exc:
                msg = f"Reading {size} bytes from channel failed after {len(buf)}: {exc}"
                raise TransportError(msg, expected=size, transferred=len(buf)) from exc
            if not chunk:
                raise _short_read(size, len(buf))
            buf += chunk
        return bytes(buf)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for fd in (self.read_fd, self.write_fd):
            # Tolerate descriptors already closed by the owner
            with contextlib.suppress(OSError):
                os.close(fd)


class ConnectionChannel(Channel):
    """Channel over a duplex ``multiprocessing.connection.Connection``.

    Each ``write_all`` call is sent as one framed message, so the bytes on
    the wire carry a length header per write. ``read_exact`` ignores message
    boundaries and returns the payload bytes as one stream.

    Args:
        conn: An established connection (listener side or client side).
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._pending = bytearray()

    @property
    def closed(self) -> bool:
        return self._conn.closed

    def write_all(self, data: bytes) -> None:
        try:
            self._conn.send_bytes(data)
        except (OSError, ValueError) as exc:
            msg = f"Writing {len(data)} bytes to channel failed: {exc}"
            raise TransportError(msg, expected=len(data)) from exc

    def read_exact(self, size: int) -> bytes:
        while len(self._pending) < size:
            try:
                chunk = self._conn.recv_bytes()
            except EOFError:
                raise _short_read(size, len(self._pending)) from None
            except (OSError, ValueError) as exc:
                msg = f"Reading {size} bytes from channel failed: {exc}"
                raise TransportError(
                    msg, expected=size, transferred=len(self._pending)
                ) from exc
            self._pending += chunk

        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def close(self) -> None:
        self._conn.close()
