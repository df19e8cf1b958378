"""charsplit — count a character in a file with one process per block."""

from __future__ import annotations

from charsplit._internal.errors import (
    CharSplitError,
    ConfigError,
    InvalidInputError,
    MalformedJobError,
    ResourceCreationError,
    TransportError,
    WorkerFailedError,
)
from charsplit.engine.partition import Block, PartitionPlan, plan_blocks
from charsplit.engine.runner import CountRunner, RunResult, count_char

__version__ = "0.1.0"

__all__ = [
    "Block",
    "CharSplitError",
    "ConfigError",
    "CountRunner",
    "InvalidInputError",
    "MalformedJobError",
    "PartitionPlan",
    "ResourceCreationError",
    "RunResult",
    "TransportError",
    "WorkerFailedError",
    "count_char",
    "plan_blocks",
]
