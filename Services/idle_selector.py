# Services/idle_selector.py
from __future__ import annotations

import logging
import random
from typing import Optional

from Domain.constants import MAX_REDRAWS
from Domain.models import DialogueSequence
from Services.handoff import HandoffSlot
from Services.response_table import ResponseTable

log = logging.getLogger(__name__)


def select_idle_sequence(
    table: ResponseTable,
    last_selected: Optional[DialogueSequence],
    *,
    rng: random.Random,
    max_attempts: int = MAX_REDRAWS,
) -> Optional[DialogueSequence]:
    """
    Uniformly draw one line from the reserved idle entry, avoiding an
    immediate repeat of `last_selected`.

    - One candidate: returned every time, repeat check skipped.
    - Several candidates: redraw while the draw equals last_selected, up to
      max_attempts; past the cap the repeat is accepted.
    - No idle entry: None.
    """
    entry = table.idle_entry()
    if entry is None or not entry.candidates:
        return None

    candidates = entry.candidates
    if len(candidates) == 1:
        return candidates[0]

    attempts = max(1, int(max_attempts))
    choice = rng.choice(candidates)
    for _ in range(attempts - 1):
        if choice != last_selected:
            break
        choice = rng.choice(candidates)
    else:
        if choice == last_selected:
            log.debug("idle_repeat_accepted attempts=%s", attempts)
    return choice


class IdleSelector:
    """
    Picks idle lines and delivers them to the hand-off slot.

    Keeps the last selection for anti-repeat. The draw happens outside the
    slot lock; only the final deliver() takes it.
    """

    def __init__(
        self,
        table: ResponseTable,
        slot: HandoffSlot[DialogueSequence],
        *,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        max_attempts: int = MAX_REDRAWS,
    ):
        self.table = table
        self.slot = slot
        self.max_attempts = int(max_attempts)
        self._rng = rng or random.Random(seed)
        self.last_selected: Optional[DialogueSequence] = None

    def activate(self) -> Optional[DialogueSequence]:
        seq = select_idle_sequence(
            self.table,
            self.last_selected,
            rng=self._rng,
            max_attempts=self.max_attempts,
        )
        if seq is None:
            log.debug("idle_select_skipped reason=no_idle_content")
            return None

        self.last_selected = seq
        self.slot.deliver(seq)
        log.info("idle_selected units=%s preview=%r", len(seq), seq.preview())
        return seq
