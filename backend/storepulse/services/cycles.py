"""Last-write-wins bookkeeping for refresh cycles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(slots=True)
class CycleTracker(Generic[T]):
    """Hands out monotonically increasing cycle ids and keeps the newest result.

    A result published under a superseded cycle id is dropped so a slow, stale
    refresh can never overwrite state produced by a newer one.
    """

    name: str = "cycle"
    current_id: int = 0
    latest: T | None = None
    latest_id: int | None = None
    _counter: int = field(default=0, repr=False)

    def begin(self) -> int:
        self._counter += 1
        self.current_id = self._counter
        return self.current_id

    def is_current(self, cycle_id: int) -> bool:
        return cycle_id == self.current_id

    def publish(self, cycle_id: int, result: T) -> bool:
        if not self.is_current(cycle_id):
            logger.warning(
                "Discarding stale {} result from cycle {} (current cycle {})",
                self.name,
                cycle_id,
                self.current_id,
            )
            return False
        self.latest = result
        self.latest_id = cycle_id
        return True


__all__ = ["CycleTracker"]
