# Services/timeout_policy.py
from __future__ import annotations

import random
from datetime import timedelta
from typing import Dict, Mapping, Optional, Tuple, Union

from Domain.constants import TIER_RANGES, TimeoutTier
from Domain.errors import ConfigurationError

TierLike = Union[str, TimeoutTier]


def parse_tier(name: TierLike) -> TimeoutTier:
    """
    Case-insensitive tier lookup.

    Unknown names are rejected with ConfigurationError instead of falling
    back to some default range.
    """
    if isinstance(name, TimeoutTier):
        return name
    key = " ".join(str(name or "").strip().lower().split())
    try:
        return TimeoutTier(key)
    except ValueError as e:
        raise ConfigurationError(f"Unknown idle tier: {name!r}", value=name) from e


class TimeoutPolicy:
    """
    Maps a tier to its inclusive [lo, hi] second range and draws from it.

    Ranges are validated once at construction so draw_timeout() can't fail
    for a known tier.
    """

    def __init__(
        self,
        ranges: Optional[Mapping[TimeoutTier, Tuple[int, int]]] = None,
        *,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self._ranges: Dict[TimeoutTier, Tuple[int, int]] = dict(TIER_RANGES if ranges is None else ranges)
        for tier, (lo, hi) in self._ranges.items():
            if tier == TimeoutTier.OFF:
                raise ConfigurationError("'off' can't carry a timeout range.", value=tier)
            if lo < 0 or hi < lo:
                raise ConfigurationError(f"Bad range for {tier.value!r}: ({lo}, {hi})", value=tier)
        self._rng = rng or random.Random(seed)

    def bounds(self, tier: TierLike) -> Tuple[int, int]:
        t = parse_tier(tier)
        if t not in self._ranges:
            raise ConfigurationError(f"No range configured for {t.value!r}", value=tier)
        return self._ranges[t]

    def draw_timeout(self, tier_name: TierLike) -> Optional[timedelta]:
        """
        Returns a whole-second timeout in the tier's range, or None for "off".
        """
        tier = parse_tier(tier_name)
        if tier == TimeoutTier.OFF:
            return None
        lo, hi = self.bounds(tier)
        return timedelta(seconds=self._rng.randint(lo, hi))
