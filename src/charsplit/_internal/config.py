"""Configuration loading for charsplit."""

from __future__ import annotations

import os
from dataclasses import dataclass

from charsplit._internal.errors import ConfigError
from charsplit._internal.types import BACKEND_NAMES

DEFAULT_SCAN_CHUNK_SIZE = 64 * 1024

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"", "0", "false", "no", "off"})


@dataclass(frozen=True)
class CharSplitConfig:
    """Global charsplit configuration.

    Attributes:
        backend: Default worker backend name (auto, fork-pipe, named-pipe).
        scan_chunk_size: Bytes a worker reads from the file per call.
        json_logs: Emit structured JSON logs instead of text.
    """

    backend: str = "auto"
    scan_chunk_size: int = DEFAULT_SCAN_CHUNK_SIZE
    json_logs: bool = False


def load_config() -> CharSplitConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        CHARSPLIT_BACKEND: Worker backend (default: auto).
        CHARSPLIT_SCAN_CHUNK_SIZE: Worker read size in bytes (default: 65536).
        CHARSPLIT_LOG_JSON: Enable JSON logs (default: off).

    Returns:
        Populated CharSplitConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    backend = os.environ.get("CHARSPLIT_BACKEND", "auto").strip().lower()
    if backend not in BACKEND_NAMES:
        msg = (
            f"CHARSPLIT_BACKEND must be one of {', '.join(BACKEND_NAMES)}, "
            f"got: {backend!r}"
        )
        raise ConfigError(msg)

    chunk_str = os.environ.get("CHARSPLIT_SCAN_CHUNK_SIZE", str(DEFAULT_SCAN_CHUNK_SIZE))
    try:
        chunk_size = int(chunk_str)
    except ValueError:
        msg = f"CHARSPLIT_SCAN_CHUNK_SIZE must be an integer, got: {chunk_str!r}"
        raise ConfigError(msg) from None

    if chunk_size < 1:
        msg = f"CHARSPLIT_SCAN_CHUNK_SIZE must be >= 1, got: {chunk_size}"
        raise ConfigError(msg)

    json_str = os.environ.get("CHARSPLIT_LOG_JSON", "").strip().lower()
    if json_str in _TRUTHY:
        json_logs = True
    elif json_str in _FALSY:
        json_logs = False
    else:
        msg = f"CHARSPLIT_LOG_JSON must be a boolean flag, got: {json_str!r}"
        raise ConfigError(msg)

    return CharSplitConfig(
        backend=backend,
        scan_chunk_size=chunk_size,
        json_logs=json_logs,
    )
