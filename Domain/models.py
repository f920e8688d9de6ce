# Domain/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from Domain.constants import DEFAULT_COOLDOWN, NEVER, TimeoutTier
from Domain.utils import isoformat


def _always() -> bool:
    return True


# ----------------------------
# Dialogue content
# ----------------------------

@dataclass(frozen=True)
class DialogueUnit:
    """
    One expression + text element of an idle line.
    The scheduler never looks inside; the display collaborator does.
    """
    expression: str
    text: str


@dataclass(frozen=True)
class DialogueSequence:
    """One complete idle line: an ordered, fixed-length run of units."""
    units: Tuple[DialogueUnit, ...]

    def __post_init__(self) -> None:
        if not self.units:
            raise ValueError("DialogueSequence needs at least one unit.")

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self):
        return iter(self.units)

    @staticmethod
    def of(units: Iterable[DialogueUnit]) -> "DialogueSequence":
        # element-for-element copy; caller's list may keep mutating
        return DialogueSequence(units=tuple(units))

    def preview(self, max_chars: int = 60) -> str:
        s = " / ".join(u.text for u in self.units)
        if len(s) <= max_chars:
            return s
        return s[: max_chars - 1] + "…"


# ----------------------------
# Response table entry
# ----------------------------

@dataclass(frozen=True)
class TableEntry:
    """
    All candidate lines for one trigger set.

    predicate / cooldown / last_used belong to reactive (triggered) behaviours;
    the idle path has its own timeout system and leaves them untouched.
    """
    candidates: Tuple[DialogueSequence, ...]
    predicate: Callable[[], bool] = field(default=_always, compare=False)
    cooldown: timedelta = DEFAULT_COOLDOWN
    last_used: datetime = NEVER

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError("TableEntry needs at least one candidate sequence.")


# ----------------------------
# Scheduler runtime state
# ----------------------------

@dataclass(frozen=True)
class SchedulerState:
    """
    Mutable-by-replacement state owned by IdleScheduler.

    - timeout: current randomized idle timeout (drawn under `tier`).
    - last_trigger_ts: when idle dialogue last fired (or scheduler start).
    - tier: tier the timeout was drawn under; None while disabled.
    - fired_count: number of gate wins so far.
    """
    timeout: timedelta
    last_trigger_ts: datetime
    tier: Optional[TimeoutTier] = None
    fired_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeout_s": int(self.timeout.total_seconds()),
            "last_trigger_ts": isoformat(self.last_trigger_ts),
            "tier": self.tier.value if self.tier is not None else None,
            "fired_count": self.fired_count,
        }
