# Services/handoff.py
from __future__ import annotations

import logging
import threading
from typing import Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class HandoffSlot(Generic[T]):
    """
    Single-item slot between the scheduler (producer) and the display
    loop (consumer).

    - deliver() overwrites: no queueing, an undrained value is dropped.
    - drain() returns the pending value and clears it in one step.
    - The lock covers only the check-and-set / check-and-clear.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Optional[T] = None

    def deliver(self, item: T) -> None:
        with self._lock:
            dropped = self._pending
            self._pending = item
        if dropped is not None:
            log.debug("handoff_overwrite dropped=%r", dropped)

    def drain(self) -> Optional[T]:
        with self._lock:
            item = self._pending
            self._pending = None
        return item

    def peek(self) -> Optional[T]:
        """Diagnostics only; the value may be drained right after."""
        with self._lock:
            return self._pending
