"""Shared test fixtures for the charsplit test suite."""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

import pytest

from charsplit.engine.channel import FdChannel

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Files
# =============================================================================


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes bytes to a file under tmp_path and returns it."""

    def _make(content: bytes, name: str = "input.txt") -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def sample_file(make_file: Callable[..., Path]) -> Path:
    """The seven-byte ``aabcabc`` file."""
    return make_file(b"aabcabc", "sample.txt")


# =============================================================================
# Channels and backends
# =============================================================================


@pytest.fixture
def pipe_channels() -> Iterator[tuple[FdChannel, FdChannel]]:
    """A connected (coordinator, worker) pair of FdChannels in this process."""
    job_r, job_w = os.pipe()
    result_r, result_w = os.pipe()
    coordinator_side = FdChannel(read_fd=result_r, write_fd=job_w)
    worker_side = FdChannel(read_fd=job_r, write_fd=result_w)
    yield coordinator_side, worker_side
    coordinator_side.close()
    worker_side.close()


@pytest.fixture(
    params=[
        pytest.param(
            "fork-pipe",
            marks=pytest.mark.skipif(sys.platform == "win32", reason="requires fork"),
        ),
        "named-pipe",
    ]
)
def backend_name(request: pytest.FixtureRequest) -> str:
    """Every worker backend available on this platform."""
    return request.param


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True)
def charsplit_logger() -> Iterator[logging.Logger]:
    """Drop handlers installed by setup_logging so streams do not leak across tests."""
    logger = logging.getLogger("charsplit")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
