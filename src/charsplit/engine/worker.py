"""Worker process entry points and the block scan loop."""

from __future__ import annotations

import contextlib
import logging
import os
import sys
from multiprocessing.connection import Client
from typing import TYPE_CHECKING

from charsplit._internal.config import DEFAULT_SCAN_CHUNK_SIZE
from charsplit._internal.errors import CharSplitError, MalformedJobError
from charsplit._internal.logging import get_logger, setup_logging
from charsplit.engine.channel import ConnectionChannel, FdChannel
from charsplit.engine.protocol import ResultMessage, receive_job, send_result

if TYPE_CHECKING:
    from collections.abc import Iterable

    from charsplit._internal.types import ListenerAddress
    from charsplit.engine.channel import Channel

logger = get_logger("engine.worker")

WORKER_FAILURE_EXIT_CODE = 1


def scan_block(
    path: str | os.PathLike[str],
    start_offset: int,
    block_length: int,
    target_char: bytes,
    *,
    chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
) -> int:
    """Count occurrences of ``target_char`` in one byte range of a file.

    Args:
        path: File to scan.
        start_offset: Offset of the first byte to scan.
        block_length: Number of bytes to scan.
        target_char: The single byte to count.
        chunk_size: Bytes to read per call.

    Returns:
        Number of bytes in the range equal to ``target_char``.

    Raises:
        OSError: If the file cannot be opened or read.
        MalformedJobError: If the file ends before the range does.
    """
    count = 0
    remaining = block_length
    with open(path, "rb") as fh:
        fh.seek(start_offset)
        while remaining > 0:
            chunk = fh.read(min(chunk_size, remaining))
            if not chunk:
                msg = (
                    f"File ended {remaining} bytes before the end of block "
                    f"[{start_offset}, {start_offset + block_length})"
                )
                raise MalformedJobError(msg)
            count += chunk.count(target_char)
            remaining -= len(chunk)
    return count


def serve_job(
    channel: Channel,
    *,
    worker_id: int = 0,
    chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
) -> ResultMessage:
    """Receive one job, scan its block, and send the count back.

    Args:
        channel: Worker-side channel endpoint.
        worker_id: Worker identifier used in log messages.
        chunk_size: Bytes to read from the file per call.

    Returns:
        The ResultMessage that was sent.

    Raises:
        TransportError: If the job or result cannot be transferred.
        MalformedJobError: If the job is unusable.
        OSError: If the file cannot be opened or read.
    """
    job = receive_job(channel)
    logger.debug(
        "Worker %d: scanning %s [%d, %d) for %r",
        worker_id,
        job.path,
        job.start_offset,
        job.start_offset + job.block_length,
        job.target_char,
    )

    count = scan_block(
        job.path,
        job.start_offset,
        job.block_length,
        job.target_char,
        chunk_size=chunk_size,
    )
    result = ResultMessage(count=count)
    send_result(channel, result)

    logger.debug("Worker %d: counted %d", worker_id, count)
    return result


def _serve_and_exit(channel: Channel, worker_id: int, chunk_size: int) -> None:
    """Serve one job; on failure exit non-zero without sending a result."""
    try:
        serve_job(channel, worker_id=worker_id, chunk_size=chunk_size)
    except (CharSplitError, OSError) as exc:
        logger.error("Worker %d: failed: %s", worker_id, exc)
        sys.exit(WORKER_FAILURE_EXIT_CODE)
    finally:
        channel.close()


# =============================================================================
# Process entry points
# =============================================================================


def run_pipe_worker(
    read_fd: int,
    write_fd: int,
    inherited_fds: Iterable[int],
    worker_id: int,
    chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
    log_level: int = logging.WARNING,
    json_logs: bool = False,
) -> None:
    """Entry point for a forked worker that talks over inherited pipes.

    Args:
        read_fd: Pipe descriptor carrying the job from the coordinator.
        write_fd: Pipe descriptor carrying the result to the coordinator.
        inherited_fds: Coordinator-side descriptors copied by the fork.
            They are closed first so that only the coordinator holds them
            and end-of-stream propagates when it closes its endpoints.
        worker_id: Worker identifier.
        chunk_size: Bytes to read from the file per call.
        log_level: Logging level.
        json_logs: Emit JSON logs.
    """
    for fd in inherited_fds:
        with contextlib.suppress(OSError):
            os.close(fd)

    setup_logging(level=log_level, json_format=json_logs)
    _serve_and_exit(FdChannel(read_fd, write_fd), worker_id, chunk_size)


def run_connection_worker(
    address: ListenerAddress,
    family: str,
    worker_id: int,
    chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
    log_level: int = logging.WARNING,
    json_logs: bool = False,
) -> None:
    """Entry point for a spawned worker that connects to a named pipe.

    Args:
        address: Listener address published by the coordinator.
        family: Connection family (``AF_PIPE`` or ``AF_UNIX``).
        worker_id: Worker identifier.
        chunk_size: Bytes to read from the file per call.
        log_level: Logging level.
        json_logs: Emit JSON logs.
    """
    setup_logging(level=log_level, json_format=json_logs)

    try:
        conn = Client(address, family=family)
    except OSError as exc:
        logger.error("Worker %d: cannot connect to %s: %s", worker_id, address, exc)
        sys.exit(WORKER_FAILURE_EXIT_CODE)

    _serve_and_exit(ConnectionChannel(conn), worker_id, chunk_size)
