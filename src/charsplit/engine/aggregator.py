"""Fan-in of per-worker counts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from charsplit._internal.errors import TransportError, WorkerFailedError
from charsplit._internal.logging import get_logger
from charsplit.engine.protocol import receive_result

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from charsplit.engine.handle import WorkerHandle
    from charsplit.engine.partition import Block

logger = get_logger("engine.aggregator")


@dataclass(frozen=True)
class BlockResult:
    """Count reported by one worker for its block.

    Attributes:
        worker_id: Worker that produced the count.
        block: The block that was scanned.
        count: Occurrences of the target character in the block.
    """

    worker_id: int
    block: Block
    count: int


def collect_results(handles: Sequence[WorkerHandle]) -> list[BlockResult]:
    """Read exactly one result from each worker, in block order.

    Each channel is closed as soon as its result has been consumed. When a
    channel ends before a result arrives, the worker is joined to tell a
    worker that died apart from a broken transport.

    Args:
        handles: Live worker handles in block order.

    Returns:
        One BlockResult per handle, in the same order.

    Raises:
        WorkerFailedError: If a worker exited non-zero without a result.
        TransportError: If a result could not be read for any other reason.
    """
    results: list[BlockResult] = []
    for handle in handles:
        try:
            message = receive_result(handle.channel)
        except TransportError as exc:
            exitcode = handle.release()
            if exitcode != 0:
                raise WorkerFailedError(handle.worker_id, exitcode) from exc
            raise

        handle.channel.close()
        logger.debug(
            "Worker %d: block [%d, %d) -> %d",
            handle.worker_id,
            handle.block.offset,
            handle.block.end,
            message.count,
        )
        results.append(
            BlockResult(worker_id=handle.worker_id, block=handle.block, count=message.count)
        )
    return results


def total_count(results: Iterable[BlockResult]) -> int:
    """Sum the counts of all block results."""
    return sum(r.count for r in results)
