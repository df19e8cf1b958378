"""Custom exception hierarchy for charsplit."""

from __future__ import annotations


class CharSplitError(Exception):
    """Base exception for all charsplit errors.

    Every failure the coordinator or a worker can report derives from this
    class, so callers can treat any charsplit failure as fatal with a single
    except clause.
    """


class InvalidInputError(CharSplitError):
    """Raised when the requested run is invalid before any worker starts.

    Examples:
        - The file does not exist or cannot be stat'ed.
        - The file holds fewer than two bytes.
        - The process count is not a positive integer.
        - The character to count is not exactly one byte.
    """


class ConfigError(CharSplitError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Required environment variable has an invalid value.
        - Configuration value is out of acceptable range.
    """


class ResourceCreationError(CharSplitError):
    """Raised when a channel or a worker process cannot be created."""


class TransportError(CharSplitError):
    """Raised on any failed or incomplete read/write on a channel.

    Attributes:
        expected: Number of bytes the operation had to transfer.
        transferred: Number of bytes actually transferred before failing.
    """

    def __init__(self, message: str, *, expected: int = 0, transferred: int = 0) -> None:
        super().__init__(message)
        self.expected = expected
        self.transferred = transferred


class MalformedJobError(CharSplitError):
    """Raised by a worker when the received job descriptor is unusable.

    Examples:
        - Zero-length file path.
        - Zero-length block.
        - NUL target character.
    """


class WorkerFailedError(CharSplitError):
    """Raised when a worker exits without delivering its result.

    Attributes:
        worker_id: Index of the worker (equal to its block index).
        exitcode: Process exit status, or None if it could not be determined.
    """

    def __init__(self, worker_id: int, exitcode: int | None) -> None:
        super().__init__(
            f"Worker {worker_id} exited with status {exitcode} without reporting a result"
        )
        self.worker_id = worker_id
        self.exitcode = exitcode
