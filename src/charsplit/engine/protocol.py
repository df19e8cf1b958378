"""Binary messages exchanged between the coordinator and a worker.

Every scalar travels as its raw native-width, native-byte-order encoding
(``size_t`` for lengths, offsets and counts; one raw byte for the target
character). The file path is the only variable-length field and is preceded
by its own length. Each field is written with a separate channel write, in
this order::

    file_path_length  size_t
    file_path         file_path_length bytes, no terminator
    block_length      size_t
    target_char       1 byte
    start_offset      size_t

The worker answers with a single ``size_t`` count.

On the fork backend these bytes are the whole wire. On the named-pipe
backend each field write becomes one ``Connection.send_bytes`` message, which
the connection prefixes with its own length header; the reader strips the
headers and sees the same field bytes in the same order.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING

from charsplit._internal.errors import MalformedJobError

if TYPE_CHECKING:
    from charsplit.engine.channel import Channel

SIZE_FIELD = struct.Struct("@N")
CHAR_FIELD = struct.Struct("@c")


@dataclass(frozen=True)
class JobDescriptor:
    """Work order sent from the coordinator to one worker.

    Attributes:
        file_path: Path of the file to scan, as raw filesystem bytes.
        block_length: Number of bytes the worker must scan.
        target_char: The single byte to count.
        start_offset: Byte offset of the block from the start of the file.
    """

    file_path: bytes
    block_length: int
    target_char: bytes
    start_offset: int

    @classmethod
    def for_path(
        cls,
        path: str | os.PathLike[str],
        *,
        block_length: int,
        target_char: bytes,
        start_offset: int,
    ) -> JobDescriptor:
        """Build a descriptor from a filesystem path."""
        return cls(
            file_path=os.fsencode(path),
            block_length=block_length,
            target_char=target_char,
            start_offset=start_offset,
        )

    @property
    def file_path_length(self) -> int:
        return len(self.file_path)

    @property
    def path(self) -> str:
        """The file path decoded for use with ``open()``."""
        return os.fsdecode(self.file_path)


@dataclass(frozen=True)
class ResultMessage:
    """Result sent from a worker back to the coordinator.

    Attributes:
        count: Bytes in the block equal to the target character.
    """

    count: int


def _write_size(channel: Channel, value: int) -> None:
    channel.write_all(SIZE_FIELD.pack(value))


def _read_size(channel: Channel) -> int:
    (value,) = SIZE_FIELD.unpack(channel.read_exact(SIZE_FIELD.size))
    return value


def send_job(channel: Channel, job: JobDescriptor) -> None:
    """Write a job descriptor field by field.

    Args:
        channel: Coordinator-side channel endpoint.
        job: Descriptor to send.

    Raises:
        TransportError: If any field is not fully written.
    """
    _write_size(channel, job.file_path_length)
    channel.write_all(job.file_path)
    _write_size(channel, job.block_length)
    channel.write_all(CHAR_FIELD.pack(job.target_char))
    _write_size(channel, job.start_offset)


def receive_job(channel: Channel) -> JobDescriptor:
    """Read and validate a job descriptor.

    Validation happens as fields arrive, so a zero path length is rejected
    before the worker waits for a path that will never come.

    Args:
        channel: Worker-side channel endpoint.

    Returns:
        The decoded JobDescriptor.

    Raises:
        TransportError: If any field is not fully read.
        MalformedJobError: If the path or block is empty, or the target
            character is NUL.
    """
    path_length = _read_size(channel)
    if path_length < 1:
        msg = "Job has an empty file path"
        raise MalformedJobError(msg)
    file_path = channel.read_exact(path_length)

    block_length = _read_size(channel)
    if block_length < 1:
        msg = "Job has an empty block"
        raise MalformedJobError(msg)

    (target_char,) = CHAR_FIELD.unpack(channel.read_exact(CHAR_FIELD.size))
    if target_char == b"\x00":
        msg = "Job has a NUL target character"
        raise MalformedJobError(msg)

    start_offset = _read_size(channel)

    return JobDescriptor(
        file_path=file_path,
        block_length=block_length,
        target_char=target_char,
        start_offset=start_offset,
    )


def send_result(channel: Channel, result: ResultMessage) -> None:
    """Write a worker's count.

    Raises:
        TransportError: If the count is not fully written.
    """
    _write_size(channel, result.count)


def receive_result(channel: Channel) -> ResultMessage:
    """Read a worker's count.

    Raises:
        TransportError: If the count is not fully read.
    """
    return ResultMessage(count=_read_size(channel))
