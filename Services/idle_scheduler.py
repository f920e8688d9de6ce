# Services/idle_scheduler.py
from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Set

from Domain.constants import IDLE_GATE_SIDES, MAX_REDRAWS, TimeoutTier
from Domain.errors import ConfigurationError
from Domain.models import DialogueSequence, SchedulerState
from Domain.utils import utc_now
from Services.handoff import HandoffSlot
from Services.idle_selector import IdleSelector
from Services.response_table import ResponseTable
from Services.timeout_policy import TimeoutPolicy, parse_tier

log = logging.getLogger(__name__)


# ----------------------------
# Protocols (ports)
# ----------------------------

class IClock(Protocol):
    def now(self) -> datetime: ...


TierSource = Callable[[], str]


# ----------------------------
# Config
# ----------------------------

@dataclass(frozen=True)
class IdleSchedulerConfig:
    """
    Knobs for the idle loop.

    Notes:
    - gate_sides: once the timeout has elapsed, each tick still has to roll
      a 0 on randrange(gate_sides) before firing (1 = always fire).
    - max_redraws: anti-repeat retry cap passed to the selector.
    """
    gate_sides: int = IDLE_GATE_SIDES
    max_redraws: int = MAX_REDRAWS


# ----------------------------
# Scheduler
# ----------------------------

class IdleScheduler:
    """
    Poll-driven idle loop.

    Two logical states:
    - Waiting: now - last_trigger_ts <= timeout -> tick() is a no-op.
    - Armed: timeout elapsed; every tick rolls the 1-in-N gate. A win fires
      the selector, stamps last_trigger_ts and redraws the timeout under the
      tier configured at that moment.

    The tier is re-read on every tick. "off" and unknown tiers are both
    no-ops; unknown values are logged once and never raised into the caller's
    polling loop. With no idle content the scheduler stays disabled.
    """

    def __init__(
        self,
        table: ResponseTable,
        *,
        tier_source: TierSource,
        clock: Optional[IClock] = None,
        policy: Optional[TimeoutPolicy] = None,
        slot: Optional[HandoffSlot[DialogueSequence]] = None,
        selector: Optional[IdleSelector] = None,
        config: Optional[IdleSchedulerConfig] = None,
        seed: Optional[int] = None,
    ):
        self.cfg = config or IdleSchedulerConfig()
        if self.cfg.gate_sides < 1:
            raise ConfigurationError("gate_sides must be >= 1", value=self.cfg.gate_sides)

        self.table = table
        self.tier_source = tier_source
        self.clock = clock
        self._rng = random.Random(seed)
        self.policy = policy or TimeoutPolicy(rng=self._rng)

        if selector is not None:
            # the selector delivers into its own slot; drain() must read that one
            if slot is not None and slot is not selector.slot:
                raise ConfigurationError("slot and selector.slot must be the same HandoffSlot")
            if config is not None and selector.max_attempts != config.max_redraws:
                raise ConfigurationError(
                    "config.max_redraws disagrees with selector.max_attempts",
                    value=config.max_redraws,
                )
            self.slot: HandoffSlot[DialogueSequence] = selector.slot
            self.selector = selector
        else:
            self.slot = slot if slot is not None else HandoffSlot()
            self.selector = IdleSelector(
                table,
                self.slot,
                rng=self._rng,
                max_attempts=self.cfg.max_redraws,
            )

        self._lock = threading.Lock()
        self._bad_tiers: Set[str] = set()

        self.enabled = table.has_idle_content()
        if not self.enabled:
            log.warning("idle_disabled reason=no_idle_content entries=%s", len(table))

        # First timeout is drawn up front; the clock starts now.
        start = self._now()
        self._state = SchedulerState(timeout=timedelta(0), last_trigger_ts=start)
        tier = self._read_tier()
        if tier is not None and tier != TimeoutTier.OFF:
            self._state = self._try_redraw(self._state, tier) or self._state

    # ---------
    # Helpers
    # ---------

    def _now(self) -> datetime:
        if self.clock is not None:
            return self.clock.now()
        return utc_now()

    def _read_tier(self) -> Optional[TimeoutTier]:
        raw = self.tier_source()
        try:
            return parse_tier(raw)
        except ConfigurationError:
            key = str(raw)
            if key not in self._bad_tiers:
                self._bad_tiers.add(key)
                log.warning("idle_tier_unknown value=%r treated_as=off", raw)
            return None

    def _redraw(self, state: SchedulerState, tier: TimeoutTier) -> SchedulerState:
        timeout = self.policy.draw_timeout(tier)
        if timeout is None:
            return replace(state, tier=None)
        log.debug("idle_timeout_drawn tier=%s timeout_s=%s", tier.value, int(timeout.total_seconds()))
        return replace(state, timeout=timeout, tier=tier)

    def _try_redraw(self, state: SchedulerState, tier: TimeoutTier) -> Optional[SchedulerState]:
        """_redraw(), but a tier the policy has no range for is logged once and treated as off."""
        try:
            return self._redraw(state, tier)
        except ConfigurationError:
            key = tier.value
            if key not in self._bad_tiers:
                self._bad_tiers.add(key)
                log.warning("idle_tier_unranged value=%r treated_as=off", key)
            return None

    def _sync_tier(self, tier: TimeoutTier) -> Optional[SchedulerState]:
        # caller holds self._lock
        state = self._state
        if state.tier == tier:
            return state
        # reconfigured since the last draw
        synced = self._try_redraw(state, tier)
        if synced is not None:
            self._state = synced
        return synced

    def _roll_gate(self) -> bool:
        return self._rng.randrange(self.cfg.gate_sides) == 0

    def _fire(self, state: SchedulerState, tier: TimeoutTier, now: datetime) -> SchedulerState:
        state = replace(state, last_trigger_ts=now, fired_count=state.fired_count + 1)
        state = self._redraw(state, tier)
        self._state = state
        log.info(
            "idle_fired tier=%s next_timeout_s=%s count=%s",
            tier.value,
            int(state.timeout.total_seconds()),
            state.fired_count,
        )
        self.selector.activate()
        return state

    # ---------
    # Public API
    # ---------

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    def tick(self, now: Optional[datetime] = None) -> bool:
        """
        Advance the idle loop. Returns True iff idle dialogue fired this tick.
        """
        if not self.enabled:
            return False

        tier = self._read_tier()
        if tier is None or tier == TimeoutTier.OFF:
            return False

        now = now or self._now()
        with self._lock:
            state = self._sync_tier(tier)
            if state is None:
                return False

            if now - state.last_trigger_ts <= state.timeout:
                return False
            if not self._roll_gate():
                return False

            self._fire(state, tier, now)
            return True

    def fire(self, now: Optional[datetime] = None) -> bool:
        """
        Fire immediately, skipping timeout and gate (REPL / manual trigger).
        Still a no-op while disabled or "off".
        """
        if not self.enabled:
            return False
        tier = self._read_tier()
        if tier is None or tier == TimeoutTier.OFF:
            return False
        now = now or self._now()
        with self._lock:
            state = self._sync_tier(tier)
            if state is None:
                return False
            self._fire(state, tier, now)
        return True

    def drain(self) -> Optional[DialogueSequence]:
        return self.slot.drain()

    def update(
        self,
        say: Callable[[DialogueSequence], None],
        now: Optional[datetime] = None,
    ) -> Optional[DialogueSequence]:
        """
        Single-thread driver: tick, then hand any pending line to `say`.
        """
        self.tick(now)
        seq = self.slot.drain()
        if seq is not None:
            say(seq)
        return seq
