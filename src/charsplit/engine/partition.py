"""Partitioning of a file's byte range into per-worker blocks."""

from __future__ import annotations

from dataclasses import dataclass

from charsplit._internal.errors import InvalidInputError
from charsplit._internal.logging import get_logger

logger = get_logger("engine.partition")

MIN_FILE_SIZE = 2


@dataclass(frozen=True)
class Block:
    """A contiguous byte range assigned to exactly one worker.

    Attributes:
        index: Position of the block in the plan (also the worker id).
        offset: Byte offset of the first byte in the block.
        length: Number of bytes in the block (always >= 1).
    """

    index: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        """Offset one past the last byte of the block."""
        return self.offset + self.length


@dataclass(frozen=True)
class PartitionPlan:
    """Result of splitting a file into worker blocks.

    Attributes:
        file_size: Size of the file in bytes.
        requested_workers: Worker count asked for by the operator.
        effective_workers: Worker count after clamping.
        blocks: Blocks in offset order; ``len(blocks) == effective_workers``.
    """

    file_size: int
    requested_workers: int
    effective_workers: int
    blocks: tuple[Block, ...]

    @property
    def clamped(self) -> bool:
        """Return True if the requested worker count was reduced."""
        return self.effective_workers < self.requested_workers

    @property
    def block_size(self) -> int:
        """Size of every block except possibly the last one."""
        return self.file_size // self.effective_workers

    def describe_clamp(self) -> str:
        """Human-readable warning for a clamped plan."""
        return (
            f"Quantity of processes you entered ({self.requested_workers}) exceeds "
            f"half of the amount of data ({self.file_size // 2}) to be processed. "
            "Actual number of processes will be reduced."
        )


def plan_blocks(file_size: int, requested_workers: int) -> PartitionPlan:
    """Split ``file_size`` bytes into contiguous blocks, one per worker.

    The worker count is clamped to ``file_size // 2``. Every block but the
    last has ``file_size // n`` bytes; the last block absorbs the remainder,
    so it is never smaller than the others.

    Args:
        file_size: Size of the file in bytes, at least 2.
        requested_workers: Desired number of workers, at least 1.

    Returns:
        A PartitionPlan whose blocks exactly cover ``[0, file_size)``.

    Raises:
        InvalidInputError: If the file is too small or the worker count is
            not positive.
    """
    if file_size < MIN_FILE_SIZE:
        msg = f"Invalid file contents: too little symbols in file ({file_size} bytes)"
        raise InvalidInputError(msg)
    if requested_workers < 1:
        msg = f"Number of processes must be >= 1, got: {requested_workers}"
        raise InvalidInputError(msg)

    effective = min(requested_workers, file_size // 2)
    if effective < requested_workers:
        logger.warning(
            "Requested %d processes for %d bytes, reducing to %d",
            requested_workers,
            file_size,
            effective,
        )

    block_size = file_size // effective
    blocks = [
        Block(index=i, offset=i * block_size, length=block_size)
        for i in range(effective - 1)
    ]
    last_offset = (effective - 1) * block_size
    blocks.append(
        Block(index=effective - 1, offset=last_offset, length=file_size - last_offset)
    )

    return PartitionPlan(
        file_size=file_size,
        requested_workers=requested_workers,
        effective_workers=effective,
        blocks=tuple(blocks),
    )
