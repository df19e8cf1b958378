"""Shared type aliases for charsplit."""

from __future__ import annotations

from typing import Literal

# Name of a worker spawning backend, as accepted by the CLI and config.
BackendName = Literal["auto", "fork-pipe", "named-pipe"]

# Valid backend names, in help-text order.
BACKEND_NAMES: tuple[str, ...] = ("auto", "fork-pipe", "named-pipe")

# multiprocessing.connection address (socket path or \\.\pipe\ name).
ListenerAddress = str
