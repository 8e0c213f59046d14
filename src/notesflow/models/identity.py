"""Collision-free identifiers for notes and folders."""

import threading
import time
from typing import Callable, Optional

# Epoch milliseconds
Clock = Callable[[], int]


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class IdGenerator:
    """Produces identifiers that are unique for the lifetime of the process.

    Each id combines the wall-clock time in milliseconds with a counter
    that only ever increases, so two ids minted in the same millisecond
    (or after the clock steps backwards) still differ. The counter is
    owned by the generator and is never reset or exposed.

    Format: ``<prefix>-<millis>-<counter>``, e.g. ``note-1718035200000-000042``.
    """

    def __init__(self, prefix: str = "note", clock: Optional[Clock] = None):
        if not prefix or not prefix.strip():
            raise ValueError("Id prefix cannot be empty")
        if "-" in prefix:
            raise ValueError("Id prefix cannot contain '-'")
        self._prefix = prefix
        self._clock = clock or _wall_clock_ms
        self._lock = threading.Lock()
        self._counter = 0

    @property
    def prefix(self) -> str:
        return self._prefix

    def next(self) -> str:
        """Return a fresh identifier."""
        with self._lock:
            self._counter += 1
            counter = self._counter
            millis = self._clock()
        return f"{self._prefix}-{millis}-{counter:06d}"


_generators = {
    "note": IdGenerator("note"),
    "folder": IdGenerator("folder"),
}
_generators_lock = threading.Lock()


def generate_id(prefix: str = "note") -> str:
    """Generate an id from the process-wide generator for ``prefix``."""
    with _generators_lock:
        generator = _generators.get(prefix)
        if generator is None:
            generator = _generators[prefix] = IdGenerator(prefix)
    return generator.next()
