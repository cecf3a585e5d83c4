"""Unique 64-bit identifier generation.

The insert builder asks an :class:`IdGenerator` for a fresh identifier
whenever a record arrives without one. The default implementation is a
snowflake-style generator: 41 bits of milliseconds since a custom epoch,
10 bits of node number and a 12-bit per-millisecond sequence, so IDs from one
process are strictly increasing and IDs from different nodes never collide.
"""

import threading
import time
from typing import Final, Optional, Protocol, runtime_checkable

from sqlweave.exceptions import ImproperConfigurationError

__all__ = (
    "IdGenerator",
    "SnowflakeGenerator",
    "get_default_generator",
    "set_default_generator",
)

DEFAULT_EPOCH_MS: Final = 1288834974657
NODE_BITS: Final = 10
STEP_BITS: Final = 12
MAX_NODE: Final = (1 << NODE_BITS) - 1
STEP_MASK: Final = (1 << STEP_BITS) - 1
TIME_SHIFT: Final = NODE_BITS + STEP_BITS


@runtime_checkable
class IdGenerator(Protocol):
    """Anything that yields globally unique 64-bit identifiers."""

    def next_id(self) -> int: ...


class SnowflakeGenerator:
    """Thread-safe snowflake ID generator."""

    __slots__ = ("_epoch_ms", "_last_ms", "_lock", "_node", "_step")

    def __init__(self, node: int = 1, epoch_ms: int = DEFAULT_EPOCH_MS) -> None:
        if not 0 <= node <= MAX_NODE:
            msg = f"Snowflake node must be between 0 and {MAX_NODE}, got {node}"
            raise ImproperConfigurationError(msg)
        self._node = node
        self._epoch_ms = epoch_ms
        self._last_ms = -1
        self._step = 0
        self._lock = threading.Lock()

    @property
    def node(self) -> int:
        return self._node

    def _now_ms(self) -> int:
        return time.time_ns() // 1_000_000

    def next_id(self) -> int:
        """Return the next identifier.

        Returns:
            A positive 63-bit integer.
        """
        with self._lock:
            now = self._now_ms()
            if now < self._last_ms:
                # clock moved backwards, keep issuing from the last timestamp
                now = self._last_ms
            if now == self._last_ms:
                self._step = (self._step + 1) & STEP_MASK
                if self._step == 0:
                    while now <= self._last_ms:
                        now = self._now_ms()
            else:
                self._step = 0
            self._last_ms = now
            return ((now - self._epoch_ms) << TIME_SHIFT) | (self._node << STEP_BITS) | self._step


_default_generator: Optional[IdGenerator] = None
_default_lock = threading.Lock()


def get_default_generator() -> IdGenerator:
    """Return the process-wide generator, creating a node-1 snowflake on first use."""
    global _default_generator  # noqa: PLW0603
    if _default_generator is None:
        with _default_lock:
            if _default_generator is None:
                _default_generator = SnowflakeGenerator(node=1)
    return _default_generator


def set_default_generator(generator: Optional[IdGenerator]) -> None:
    """Replace the process-wide generator (``None`` resets to the lazy default)."""
    global _default_generator  # noqa: PLW0603
    with _default_lock:
        _default_generator = generator
