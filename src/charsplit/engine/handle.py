"""Coordinator-owned handle for one spawned worker."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from charsplit._internal.logging import get_logger

if TYPE_CHECKING:
    from multiprocessing.process import BaseProcess

    from charsplit.engine.channel import Channel
    from charsplit.engine.partition import Block

logger = get_logger("engine.handle")


class WorkerHandle:
    """A spawned worker process together with its channel and block.

    The handle owns both resources. ``release()`` closes the channel and then
    blocks until the process exits; it runs at most once, so a handle can be
    released from both the normal and the error path without double joins.
    Handles cannot be copied.

    Attributes:
        worker_id: Worker index, equal to its block index.
        block: The byte range assigned to the worker.
        process: The worker process.
        channel: Coordinator-side channel endpoint.
    """

    def __init__(
        self,
        worker_id: int,
        block: Block,
        process: BaseProcess,
        channel: Channel,
    ) -> None:
        self.worker_id = worker_id
        self.block = block
        self.process = process
        self.channel = channel
        self._released = False
        self._exitcode: int | None = None

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<WorkerHandle worker_id={self.worker_id} pid={self.pid} {state}>"

    def __copy__(self) -> NoReturn:
        msg = "WorkerHandle owns a process and cannot be copied"
        raise TypeError(msg)

    def __deepcopy__(self, memo: dict[int, object]) -> NoReturn:
        self.__copy__()

    @property
    def pid(self) -> int | None:
        return None if self._released else self.process.pid

    @property
    def released(self) -> bool:
        return self._released

    @property
    def exitcode(self) -> int | None:
        """Exit status once released, else the live process's status."""
        if self._released:
            return self._exitcode
        return self.process.exitcode

    def release(self) -> int | None:
        """Close the channel and wait for the process to exit.

        Returns:
            The process exit status.
        """
        if self._released:
            return self._exitcode

        self.channel.close()
        self.process.join()
        self._exitcode = self.process.exitcode
        self.process.close()
        self._released = True

        logger.debug("Worker %d exited with status %s", self.worker_id, self._exitcode)
        return self._exitcode
