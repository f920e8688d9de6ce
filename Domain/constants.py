# Domain/constants.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Tuple


class TimeoutTier(str, Enum):
    """Named idle speed setting (read from the settings store)."""
    VERY_SHORT = "very short"
    SHORT = "short"
    REGULAR = "regular"
    LONG = "long"
    VERY_LONG = "very long"
    OFF = "off"          # idle triggering disabled until reconfigured


# Inclusive [lo, hi] seconds per tier.
TIER_RANGES: Dict[TimeoutTier, Tuple[int, int]] = {
    TimeoutTier.VERY_SHORT: (30, 120),
    TimeoutTier.SHORT: (60, 180),
    TimeoutTier.REGULAR: (120, 300),
    TimeoutTier.LONG: (180, 480),
    TimeoutTier.VERY_LONG: (240, 600),
}

# Reserved response-table key for idle-only content.
IDLE_TRIGGERS: Tuple[str, ...] = ()

DEFAULT_COOLDOWN = timedelta(minutes=5)

# "Never used" sentinel for TableEntry.last_used.
NEVER = datetime.min.replace(tzinfo=timezone.utc)

# 1-in-N extra roll once the idle timeout has elapsed.
IDLE_GATE_SIDES = 20

# Cap on anti-repeat redraws before a repeat is accepted.
MAX_REDRAWS = 32
