# tests/test_idle_scheduler.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from Domain.constants import TIER_RANGES, TimeoutTier
from Domain.errors import ConfigurationError
from Domain.models import DialogueSequence
from Domain.schemas import ContentRecord
from Services.handoff import HandoffSlot
from Services.idle_scheduler import IdleScheduler, IdleSchedulerConfig
from Services.idle_selector import IdleSelector
from Services.response_table import ResponseTable, build_table
from Services.timeout_policy import TimeoutPolicy


# ----------------------------
# Helpers
# ----------------------------

def t0() -> datetime:
    return datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@dataclass
class FakeClock:
    now_value: datetime

    def now(self) -> datetime:
        return self.now_value


class TierBox:
    """Mutable settings stand-in; counts reads."""

    def __init__(self, value: str):
        self.value = value
        self.reads = 0

    def __call__(self) -> str:
        self.reads += 1
        return self.value


def idle_table(*texts: str) -> ResponseTable:
    return build_table(
        ContentRecord(triggers=[], units=[{"expression": "a", "text": t}]) for t in texts
    )


def make_scheduler(
    tier: str = "short",
    *,
    texts=("one", "two", "three"),
    gate_sides: int = 1,
    seed: int = 123,
):
    clock = FakeClock(t0())
    box = TierBox(tier)
    sch = IdleScheduler(
        idle_table(*texts),
        tier_source=box,
        clock=clock,
        config=IdleSchedulerConfig(gate_sides=gate_sides),
        seed=seed,
    )
    return sch, clock, box


# ============================================================
# construction
# ============================================================

def test_initial_timeout_is_drawn_for_configured_tier():
    sch, _, _ = make_scheduler("regular")
    lo, hi = TIER_RANGES[TimeoutTier.REGULAR]

    st = sch.state
    assert st.tier == TimeoutTier.REGULAR
    assert lo <= st.timeout.total_seconds() <= hi
    assert st.last_trigger_ts == t0()
    assert st.fired_count == 0


def test_gate_sides_below_one_is_rejected():
    with pytest.raises(ConfigurationError):
        IdleScheduler(
            idle_table("x"),
            tier_source=lambda: "short",
            config=IdleSchedulerConfig(gate_sides=0),
        )


# ============================================================
# tick(): Waiting / Armed
# ============================================================

def test_tick_before_timeout_is_a_no_op():
    sch, _, _ = make_scheduler("short")
    before = sch.state

    # short tier never draws below 60s
    assert sch.tick(t0() + timedelta(seconds=59)) is False
    assert sch.state == before
    assert sch.drain() is None


def test_tick_at_exactly_timeout_does_not_fire():
    sch, _, _ = make_scheduler("short")
    timeout = sch.state.timeout

    assert sch.tick(t0() + timeout) is False
    assert sch.drain() is None


def test_end_to_end_short_tier_fires_once_and_redraws_timeout():
    sch, _, _ = make_scheduler("short", gate_sides=1)
    lo, hi = TIER_RANGES[TimeoutTier.SHORT]
    now = t0() + timedelta(seconds=200)

    assert sch.tick(now) is True

    st = sch.state
    assert st.fired_count == 1
    assert st.last_trigger_ts == now
    assert lo <= st.timeout.total_seconds() <= hi

    first = sch.drain()
    assert first is not None
    assert sch.drain() is None

    # immediately after: back in Waiting
    assert sch.tick(now + timedelta(seconds=1)) is False

    # next firing never repeats the previous line
    later = now + timedelta(seconds=hi + 1)
    assert sch.tick(later) is True
    second = sch.drain()
    assert second is not None
    assert second != first


def test_gate_blocks_until_it_rolls_zero(monkeypatch: pytest.MonkeyPatch):
    sch, _, _ = make_scheduler("short", gate_sides=20)
    rolls: List[int] = [5, 19, 3, 0]
    monkeypatch.setattr(sch, "_roll_gate", lambda: rolls.pop(0) == 0)

    now = t0() + timedelta(seconds=500)
    assert sch.tick(now) is False
    assert sch.tick(now) is False
    assert sch.tick(now) is False
    assert sch.state.fired_count == 0
    assert sch.drain() is None

    assert sch.tick(now) is True
    assert sch.state.fired_count == 1
    assert sch.drain() is not None


def test_real_gate_eventually_fires():
    sch, _, _ = make_scheduler("very short", gate_sides=20, seed=4)
    now = t0() + timedelta(seconds=1000)

    fired = [sch.tick(now) for _ in range(500)]
    assert fired.count(True) == 1
    assert sch.drain() is not None


def test_tick_uses_clock_when_now_is_omitted():
    sch, clock, _ = make_scheduler("short")
    clock.now_value = t0() + timedelta(seconds=181)

    assert sch.tick() is True
    assert sch.state.last_trigger_ts == clock.now_value


def test_many_firings_never_repeat_back_to_back():
    sch, _, _ = make_scheduler("very short", texts=("a", "b", "c", "d"))
    now = t0()
    prev = None
    for _ in range(200):
        now = now + timedelta(seconds=121)
        assert sch.tick(now) is True
        cur = sch.drain()
        assert cur != prev
        prev = cur


# ============================================================
# tick(): "off", unknown tiers, reconfiguration
# ============================================================

def test_off_never_fires_regardless_of_elapsed_time():
    sch, _, box = make_scheduler("off")
    before = sch.state

    for days in (0, 1, 30, 3650):
        assert sch.tick(t0() + timedelta(days=days, seconds=1)) is False

    assert sch.state == before
    assert sch.drain() is None
    assert box.reads >= 4


def test_tier_is_read_every_tick():
    sch, _, box = make_scheduler("short")
    reads = box.reads
    for i in range(5):
        sch.tick(t0() + timedelta(seconds=i))
    assert box.reads == reads + 5


def test_switching_to_off_stops_firing_and_back_resumes():
    sch, _, box = make_scheduler("short")
    now = t0() + timedelta(seconds=500)

    box.value = "OFF"
    assert sch.tick(now) is False
    assert sch.state.last_trigger_ts == t0()

    box.value = "Short"
    assert sch.tick(now) is True


def test_unknown_tier_is_treated_as_off_and_logged_once(caplog: pytest.LogCaptureFixture):
    sch, _, box = make_scheduler("short")
    box.value = "sometimes"
    before = sch.state

    with caplog.at_level(logging.WARNING, logger="Services.idle_scheduler"):
        for _ in range(3):
            assert sch.tick(t0() + timedelta(days=1)) is False

    assert sch.state == before
    warnings = [r for r in caplog.records if "idle_tier_unknown" in r.getMessage()]
    assert len(warnings) == 1


def test_reconfigured_tier_redraws_timeout_within_new_bounds():
    sch, _, box = make_scheduler("very short")
    box.value = "very long"
    lo, hi = TIER_RANGES[TimeoutTier.VERY_LONG]

    # 130s would have been past any very-short timeout but not a very-long one
    assert sch.tick(t0() + timedelta(seconds=130)) is False
    st = sch.state
    assert st.tier == TimeoutTier.VERY_LONG
    assert lo <= st.timeout.total_seconds() <= hi
    assert st.last_trigger_ts == t0()


def test_starting_off_then_enabling_draws_first_timeout():
    sch, _, box = make_scheduler("off")
    assert sch.state.tier is None

    box.value = "long"
    lo, hi = TIER_RANGES[TimeoutTier.LONG]
    sch.tick(t0() + timedelta(seconds=1))
    assert sch.state.tier == TimeoutTier.LONG
    assert lo <= sch.state.timeout.total_seconds() <= hi


# ============================================================
# degraded feature: no content
# ============================================================

def test_no_idle_content_disables_scheduler():
    sch = IdleScheduler(
        ResponseTable(),
        tier_source=lambda: "very short",
        clock=FakeClock(t0()),
        config=IdleSchedulerConfig(gate_sides=1),
    )

    assert sch.enabled is False
    assert sch.tick(t0() + timedelta(days=1)) is False
    assert sch.fire() is False
    assert sch.drain() is None
    assert sch.state.fired_count == 0


# ============================================================
# fire() / update()
# ============================================================

def test_fire_skips_timeout_and_gate():
    sch, _, _ = make_scheduler("long", gate_sides=1000)
    assert sch.fire(t0()) is True
    assert sch.state.fired_count == 1
    assert sch.drain() is not None


def test_fire_is_no_op_when_off():
    sch, _, _ = make_scheduler("off")
    assert sch.fire(t0()) is False
    assert sch.drain() is None


def test_update_ticks_then_hands_line_to_say():
    sch, _, _ = make_scheduler("short")
    said: List[DialogueSequence] = []

    assert sch.update(said.append, t0() + timedelta(seconds=10)) is None
    assert said == []

    out = sch.update(said.append, t0() + timedelta(seconds=200))
    assert out is not None
    assert said == [out]

    # slot was drained by update()
    assert sch.drain() is None


# ============================================================
# tiers the policy has no range for
# ============================================================

def test_tier_without_policy_range_is_treated_as_off_and_logged_once(caplog: pytest.LogCaptureFixture):
    box = TierBox("short")
    sch = IdleScheduler(
        idle_table("one", "two"),
        tier_source=box,
        clock=FakeClock(t0()),
        policy=TimeoutPolicy({TimeoutTier.SHORT: (60, 180)}, seed=1),
        config=IdleSchedulerConfig(gate_sides=1),
    )
    before = sch.state
    box.value = "long"

    with caplog.at_level(logging.WARNING, logger="Services.idle_scheduler"):
        for secs in (1, 500, 5000):
            assert sch.tick(t0() + timedelta(seconds=secs)) is False
        assert sch.fire(t0()) is False

    assert sch.state == before
    assert sch.drain() is None
    warnings = [r for r in caplog.records if "idle_tier_unranged" in r.getMessage()]
    assert len(warnings) == 1

    # back to a ranged tier: works again
    box.value = "short"
    assert sch.tick(t0() + timedelta(seconds=500)) is True


def test_starting_on_unranged_tier_does_not_raise():
    sch = IdleScheduler(
        idle_table("one"),
        tier_source=lambda: "very long",
        clock=FakeClock(t0()),
        policy=TimeoutPolicy({TimeoutTier.SHORT: (60, 180)}, seed=1),
    )
    assert sch.state.tier is None
    assert sch.tick(t0() + timedelta(days=1)) is False


# ============================================================
# injected selector / slot wiring
# ============================================================

def test_injected_selector_delivers_into_slot_the_scheduler_drains():
    table = idle_table("one", "two")
    selector = IdleSelector(table, HandoffSlot(), seed=2)
    sch = IdleScheduler(
        table,
        tier_source=lambda: "short",
        clock=FakeClock(t0()),
        selector=selector,
        config=IdleSchedulerConfig(gate_sides=1),
    )

    assert sch.slot is selector.slot
    assert sch.tick(t0() + timedelta(seconds=500)) is True
    out = sch.drain()
    assert out is not None
    assert out == selector.last_selected


def test_injected_selector_with_matching_slot_is_accepted():
    table = idle_table("one", "two")
    slot: HandoffSlot[DialogueSequence] = HandoffSlot()
    selector = IdleSelector(table, slot, seed=2)
    sch = IdleScheduler(table, tier_source=lambda: "short", slot=slot, selector=selector)
    assert sch.slot is slot


def test_injected_selector_with_different_slot_is_rejected():
    table = idle_table("one", "two")
    selector = IdleSelector(table, HandoffSlot(), seed=2)
    with pytest.raises(ConfigurationError):
        IdleScheduler(table, tier_source=lambda: "short", slot=HandoffSlot(), selector=selector)


def test_injected_selector_with_conflicting_max_redraws_is_rejected():
    table = idle_table("one", "two")
    selector = IdleSelector(table, HandoffSlot(), seed=2, max_attempts=4)
    with pytest.raises(ConfigurationError):
        IdleScheduler(
            table,
            tier_source=lambda: "short",
            selector=selector,
            config=IdleSchedulerConfig(max_redraws=10),
        )
