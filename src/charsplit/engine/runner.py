"""Top-level counting run: validation, partitioning, fan-out and fan-in."""

from __future__ import annotations

import logging
import os
import stat
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from charsplit._internal.config import load_config
from charsplit._internal.errors import CharSplitError, InvalidInputError
from charsplit._internal.logging import get_logger, setup_logging
from charsplit.engine.aggregator import total_count
from charsplit.engine.backends import resolve_backend
from charsplit.engine.coordinator import Coordinator
from charsplit.engine.partition import plan_blocks

if TYPE_CHECKING:
    from charsplit.engine.aggregator import BlockResult
    from charsplit.engine.partition import PartitionPlan

logger = get_logger("engine.runner")


@dataclass(frozen=True)
class RunResult:
    """Outcome of a completed counting run.

    Attributes:
        file_path: Absolute path of the scanned file.
        target_char: The byte that was counted.
        plan: Partition the workers followed.
        block_results: Per-worker counts in block order.
        total: Sum of all block counts.
        duration_seconds: Wall-clock time of the fan-out and fan-in.
        backend: Name of the backend that spawned the workers.
    """

    file_path: str
    target_char: bytes
    plan: PartitionPlan
    block_results: tuple[BlockResult, ...]
    total: int
    duration_seconds: float
    backend: str

    @property
    def requested_workers(self) -> int:
        return self.plan.requested_workers

    @property
    def effective_workers(self) -> int:
        return self.plan.effective_workers

    @property
    def clamped(self) -> bool:
        return self.plan.clamped


def encode_target_char(value: str | bytes) -> bytes:
    """Convert the character to count into the single byte workers compare.

    Strings are encoded the way the OS encodes arguments, so a raw byte
    that arrived in ``argv`` as a surrogate escape maps back to itself.

    Args:
        value: A one-character string that encodes to one byte, or a
            one-byte bytes object.

    Returns:
        The target byte.

    Raises:
        InvalidInputError: If the value is not exactly one non-NUL byte.
    """
    if isinstance(value, bytes):
        encoded = value
    else:
        try:
            encoded = os.fsencode(value)
        except UnicodeEncodeError as exc:
            msg = f"Invalid argument value for character_to_count: {value!r} cannot be encoded"
            raise InvalidInputError(msg) from exc
    if len(encoded) != 1:
        msg = f"Invalid argument value for character_to_count: {value!r} is not a single byte"
        raise InvalidInputError(msg)
    if encoded == b"\x00":
        msg = "Invalid argument value for character_to_count: NUL cannot be counted"
        raise InvalidInputError(msg)
    return encoded


def probe_file_size(path: str | os.PathLike[str]) -> int:
    """Return the size of a regular file.

    Raises:
        InvalidInputError: If the path cannot be stat'ed or is not a
            regular file.
    """
    try:
        st = os.stat(path)
    except OSError as exc:
        msg = f"Invalid file provided: {exc.strerror or exc}: {os.fspath(path)!r}"
        raise InvalidInputError(msg) from exc
    if not stat.S_ISREG(st.st_mode):
        msg = f"Invalid file provided: {os.fspath(path)!r} is not a regular file"
        raise InvalidInputError(msg)
    return st.st_size


class CountRunner:
    """Counts one character in a file with one worker process per block.

    Validates everything up front, so an invalid request fails before any
    process is spawned, then wires together partitioning, the coordinator,
    and aggregation.

    Attributes:
        file_path: Absolute path of the file to scan.
        num_workers: Requested number of worker processes.
        target_char: The byte to count.
        file_size: Size of the file when the runner was created.
        backend_name: Backend used to spawn workers.
    """

    def __init__(
        self,
        file_path: str | Path,
        num_workers: int,
        target_char: str | bytes,
        *,
        backend: str | None = None,
        chunk_size: int | None = None,
        log_level: int = logging.WARNING,
        json_logs: bool | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            file_path: Path of the file to scan.
            num_workers: Requested number of worker processes (>= 1).
            target_char: Character to count; must encode to one byte.
            backend: Backend name. Defaults to the configured backend.
            chunk_size: Worker read size. Defaults to the configured size.
            log_level: Logging level for the coordinator and workers.
            json_logs: Emit JSON logs. Defaults to the configured value.

        Raises:
            InvalidInputError: If any input is invalid.
            ConfigError: If the environment configuration is invalid.
        """
        config = load_config()

        self.file_path = str(Path(file_path).resolve())
        self.target_char = encode_target_char(target_char)
        if num_workers < 1:
            msg = f"Invalid argument value for number_of_processes: {num_workers}"
            raise InvalidInputError(msg)
        self.num_workers = num_workers
        self.file_size = probe_file_size(self.file_path)

        self.backend_name = backend or config.backend
        self._chunk_size = chunk_size or config.scan_chunk_size
        self._log_level = log_level
        self._json_logs = config.json_logs if json_logs is None else json_logs

    def plan(self) -> PartitionPlan:
        """Partition the file for the requested worker count.

        Raises:
            InvalidInputError: If the file holds fewer than two bytes.
        """
        return plan_blocks(self.file_size, self.num_workers)

    def run(self) -> RunResult:
        """Execute the run and return the aggregated result.

        This is a blocking call: it returns once every worker has reported
        and been reaped.

        Returns:
            RunResult with per-block counts and the total.

        Raises:
            InvalidInputError: If the file is too small.
            ResourceCreationError: If a worker or channel cannot be created.
            TransportError: If a job or result cannot be transferred.
            WorkerFailedError: If a worker exits without reporting.
        """
        setup_logging(level=self._log_level, json_format=self._json_logs)

        plan = self.plan()
        backend = resolve_backend(
            self.backend_name,
            chunk_size=self._chunk_size,
            log_level=self._log_level,
            json_logs=self._json_logs,
        )

        logger.info(
            "Counting %r in %s: size=%d, workers=%d, backend=%s",
            self.target_char,
            self.file_path,
            self.file_size,
            plan.effective_workers,
            backend.name,
        )

        start_time = time.monotonic()
        try:
            with Coordinator(
                self.file_path, plan, self.target_char, backend=backend
            ) as coordinator:
                coordinator.start()
                block_results = coordinator.collect()
        except CharSplitError as exc:
            logger.error("Counting run failed: %s", exc)
            raise
        duration = time.monotonic() - start_time

        total = total_count(block_results)
        logger.info("Counted %d occurrences in %.3fs", total, duration)

        return RunResult(
            file_path=self.file_path,
            target_char=self.target_char,
            plan=plan,
            block_results=tuple(block_results),
            total=total,
            duration_seconds=duration,
            backend=backend.name,
        )


def count_char(
    file_path: str | Path,
    target_char: str | bytes,
    num_workers: int = 1,
    *,
    backend: str | None = None,
) -> int:
    """Count ``target_char`` in ``file_path`` using ``num_workers`` processes.

    Convenience wrapper around :class:`CountRunner`.

    Returns:
        Total number of occurrences.
    """
    runner = CountRunner(file_path, num_workers, target_char, backend=backend)
    return runner.run().total
