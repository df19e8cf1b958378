"""Backends that spawn one worker process connected by a duplex channel.

Both backends create the channel before the process, so a job written
right after ``spawn()`` returns can never be lost:

- ``ForkPipeBackend`` (POSIX): two anonymous pipes, then a ``fork``-context
  process that inherits the worker-side descriptors.
- ``NamedPipeBackend``: a ``multiprocessing.connection.Listener`` (named
  pipe on Windows, Unix socket elsewhere), then a ``spawn``-context process
  that connects back to the listener address.
"""

from __future__ import annotations

import contextlib
import logging
import multiprocessing
import os
import sys
from abc import ABC, abstractmethod
from multiprocessing.connection import Listener
from typing import TYPE_CHECKING

from charsplit._internal.config import DEFAULT_SCAN_CHUNK_SIZE
from charsplit._internal.errors import InvalidInputError, ResourceCreationError
from charsplit._internal.logging import get_logger
from charsplit._internal.types import BACKEND_NAMES
from charsplit.engine.channel import ConnectionChannel, FdChannel
from charsplit.engine.handle import WorkerHandle
from charsplit.engine.worker import run_connection_worker, run_pipe_worker

if TYPE_CHECKING:
    from charsplit._internal.types import BackendName
    from charsplit.engine.partition import Block

logger = get_logger("engine.backends")


class WorkerBackend(ABC):
    """Capability to spawn a worker with a dedicated duplex channel.

    Args:
        chunk_size: Bytes each worker reads from the file per call.
        log_level: Logging level for workers.
        json_logs: Emit JSON logs from workers.
    """

    name: str = ""

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
        log_level: int = logging.WARNING,
        json_logs: bool = False,
    ) -> None:
        self.chunk_size = chunk_size
        self.log_level = log_level
        self.json_logs = json_logs

    @abstractmethod
    def spawn(self, block: Block) -> WorkerHandle:
        """Create a channel, start a worker on it, and return its handle.

        Args:
            block: The block the worker will be assigned. Its index is
                used as the worker id.

        Returns:
            A live WorkerHandle owning the process and channel.

        Raises:
            ResourceCreationError: If the channel or process cannot be
                created. No resources are left open in that case.
        """

    def close(self) -> None:  # noqa: B027
        """Release backend-wide resources. Handles are released separately."""


class ForkPipeBackend(WorkerBackend):
    """Fork a worker that inherits one end of two anonymous pipes."""

    name = "fork-pipe"

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
        log_level: int = logging.WARNING,
        json_logs: bool = False,
    ) -> None:
        if sys.platform == "win32":
            msg = "The fork-pipe backend requires a POSIX platform"
            raise InvalidInputError(msg)
        super().__init__(chunk_size=chunk_size, log_level=log_level, json_logs=json_logs)
        self._ctx = multiprocessing.get_context("fork")
        self._channels: list[FdChannel] = []

    def _open_coordinator_fds(self) -> list[int]:
        """Descriptors a new child must close so EOF reaches other workers."""
        return [
            fd
            for channel in self._channels
            if not channel.closed
            for fd in (channel.read_fd, channel.write_fd)
        ]

    def spawn(self, block: Block) -> WorkerHandle:
        worker_id = block.index
        try:
            job_r, job_w = os.pipe()
        except OSError as exc:
            msg = f"Cannot create job pipe for worker {worker_id}: {exc}"
            raise ResourceCreationError(msg) from exc
        try:
            result_r, result_w = os.pipe()
        except OSError as exc:
            _close_fds(job_r, job_w)
            msg = f"Cannot create result pipe for worker {worker_id}: {exc}"
            raise ResourceCreationError(msg) from exc

        inherited = [*self._open_coordinator_fds(), job_w, result_r]
        process = self._ctx.Process(
            target=run_pipe_worker,
            args=(
                job_r,
                result_w,
                inherited,
                worker_id,
                self.chunk_size,
                self.log_level,
                self.json_logs,
            ),
            name=f"charsplit-worker-{worker_id}",
            daemon=False,
        )
        try:
            process.start()
        except OSError as exc:
            _close_fds(job_r, job_w, result_r, result_w)
            msg = f"Cannot start worker {worker_id}: {exc}"
            raise ResourceCreationError(msg) from exc

        # The worker now holds its own copies of these
        _close_fds(job_r, result_w)

        channel = FdChannel(read_fd=result_r, write_fd=job_w)
        self._channels.append(channel)
        logger.debug(
            "Forked worker %d: pid=%s, job_fd=%d, result_fd=%d",
            worker_id,
            process.pid,
            job_w,
            result_r,
        )
        return WorkerHandle(worker_id, block, process, channel)

    def close(self) -> None:
        self._channels.clear()


class NamedPipeBackend(WorkerBackend):
    """Spawn a worker that connects back to a per-worker listener.

    Args:
        family: Connection family; defaults to ``AF_PIPE`` on Windows and
            ``AF_UNIX`` elsewhere.
        chunk_size: Bytes each worker reads from the file per call.
        log_level: Logging level for workers.
        json_logs: Emit JSON logs from workers.
    """

    name = "named-pipe"

    def __init__(
        self,
        *,
        family: str | None = None,
        chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
        log_level: int = logging.WARNING,
        json_logs: bool = False,
    ) -> None:
        super().__init__(chunk_size=chunk_size, log_level=log_level, json_logs=json_logs)
        self.family = family or ("AF_PIPE" if sys.platform == "win32" else "AF_UNIX")
        self._ctx = multiprocessing.get_context("spawn")

    def spawn(self, block: Block) -> WorkerHandle:
        worker_id = block.index
        try:
            listener = Listener(family=self.family)
        except OSError as exc:
            msg = f"Cannot create pipe for worker {worker_id}: {exc}"
            raise ResourceCreationError(msg) from exc

        with contextlib.closing(listener):
            address = str(listener.address)
            process = self._ctx.Process(
                target=run_connection_worker,
                args=(
                    address,
                    self.family,
                    worker_id,
                    self.chunk_size,
                    self.log_level,
                    self.json_logs,
                ),
                name=f"charsplit-worker-{worker_id}",
                daemon=False,
            )
            try:
                process.start()
            except OSError as exc:
                msg = f"Cannot start worker {worker_id}: {exc}"
                raise ResourceCreationError(msg) from exc

            try:
                conn = listener.accept()
            except OSError as exc:
                process.join()
                msg = f"Worker {worker_id} failed to connect to {address}: {exc}"
                raise ResourceCreationError(msg) from exc

        logger.debug(
            "Spawned worker %d: pid=%s, address=%s",
            worker_id,
            process.pid,
            address,
        )
        return WorkerHandle(worker_id, block, process, ConnectionChannel(conn))


def default_backend_name() -> BackendName:
    """Backend used for ``auto``: named pipes on Windows, fork elsewhere."""
    return "named-pipe" if sys.platform == "win32" else "fork-pipe"


def resolve_backend(
    name: str,
    *,
    chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE,
    log_level: int = logging.WARNING,
    json_logs: bool = False,
) -> WorkerBackend:
    """Construct a backend by name.

    Args:
        name: One of ``auto``, ``fork-pipe``, ``named-pipe``.
        chunk_size: Bytes each worker reads per call.
        log_level: Logging level for workers.
        json_logs: Emit JSON logs from workers.

    Returns:
        A ready WorkerBackend.

    Raises:
        InvalidInputError: If the name is unknown or the backend is not
            available on this platform.
    """
    if name not in BACKEND_NAMES:
        msg = f"Unknown backend: {name}. Choose from: {', '.join(BACKEND_NAMES)}"
        raise InvalidInputError(msg)

    if name == "auto":
        name = default_backend_name()

    if name == "fork-pipe":
        return ForkPipeBackend(
            chunk_size=chunk_size, log_level=log_level, json_logs=json_logs
        )
    return NamedPipeBackend(chunk_size=chunk_size, log_level=log_level, json_logs=json_logs)


def _close_fds(*fds: int) -> None:
    for fd in fds:
        with contextlib.suppress(OSError):
            os.close(fd)
