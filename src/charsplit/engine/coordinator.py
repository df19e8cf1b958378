"""Multi-process worker coordinator for block counting."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from charsplit._internal.logging import get_logger
from charsplit.engine.aggregator import collect_results
from charsplit.engine.protocol import JobDescriptor, send_job

if TYPE_CHECKING:
    from types import TracebackType

    from charsplit.engine.aggregator import BlockResult
    from charsplit.engine.backends import WorkerBackend
    from charsplit.engine.handle import WorkerHandle
    from charsplit.engine.partition import PartitionPlan

logger = get_logger("engine.coordinator")


class Coordinator:
    """Manages the lifecycle of one worker process per block.

    Spawns a worker for each block of the plan, sends it its job
    descriptor, collects the counts, and always reaps every worker it
    started. Use it as a context manager so workers are released on every
    exit path::

        with Coordinator(path, plan, b"a", backend=backend) as coordinator:
            coordinator.start()
            results = coordinator.collect()

    Attributes:
        file_path: Path of the file being scanned.
        plan: The partition plan the workers follow.
        target_char: The byte being counted.
    """

    def __init__(
        self,
        file_path: str | os.PathLike[str],
        plan: PartitionPlan,
        target_char: bytes,
        *,
        backend: WorkerBackend,
    ) -> None:
        """Initialize the coordinator.

        Args:
            file_path: File every worker opens.
            plan: Blocks to hand out, one per worker.
            target_char: Single byte to count.
            backend: Backend used to spawn workers and their channels.
        """
        self.file_path = os.fspath(file_path)
        self.plan = plan
        self.target_char = target_char
        self._backend = backend
        self._handles: list[WorkerHandle] = []

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    @property
    def handles(self) -> tuple[WorkerHandle, ...]:
        """Handles of every worker started so far, in block order."""
        return tuple(self._handles)

    @property
    def is_alive(self) -> bool:
        """Return True if any worker has not been released yet."""
        return any(not h.released for h in self._handles)

    def start(self) -> None:
        """Spawn one worker per block and send each its job.

        Jobs are sent in block order, each right after its worker starts.

        Raises:
            ResourceCreationError: If a channel or process cannot be created.
            TransportError: If a job cannot be fully written.
        """
        for block in self.plan.blocks:
            handle = self._backend.spawn(block)
            self._handles.append(handle)

            job = JobDescriptor.for_path(
                self.file_path,
                block_length=block.length,
                target_char=self.target_char,
                start_offset=block.offset,
            )
            send_job(handle.channel, job)
            logger.debug(
                "Sent job to worker %d: offset=%d, length=%d",
                handle.worker_id,
                block.offset,
                block.length,
            )

        logger.info(
            "Started %d worker processes (%s backend)",
            len(self._handles),
            self._backend.name,
        )

    def collect(self) -> list[BlockResult]:
        """Read one count from every worker, in block order.

        Raises:
            WorkerFailedError: If a worker exits without reporting.
            TransportError: If a count cannot be read.
        """
        return collect_results(self._handles)

    def stop(self) -> None:
        """Close every channel and wait for every worker to exit.

        Safe to call more than once; each worker is joined exactly once.
        """
        for handle in self._handles:
            exitcode = handle.release()
            if exitcode:
                logger.warning("Worker %d exited with status %d", handle.worker_id, exitcode)
        self._backend.close()
        logger.debug("All %d workers released", len(self._handles))
