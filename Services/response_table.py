# Services/response_table.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from Domain.constants import DEFAULT_COOLDOWN, IDLE_TRIGGERS, NEVER
from Domain.models import DialogueSequence, TableEntry
from Domain.schemas import ContentRecord
from Domain.utils import trigger_key

TriggerKey = Tuple[str, ...]


def normalize_triggers(raw: Iterable[str]) -> TriggerKey:
    return trigger_key(raw)


class ResponseTable:
    """
    Trigger set -> TableEntry. Built once by build_table(), read-only after.

    Idle content lives under IDLE_TRIGGERS (the empty trigger set), so
    lookups never depend on iteration order.
    """

    def __init__(self, entries: Optional[Mapping[TriggerKey, TableEntry]] = None):
        self._entries: Dict[TriggerKey, TableEntry] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, triggers: object) -> bool:
        if not isinstance(triggers, (tuple, list)):
            return False
        return normalize_triggers(triggers) in self._entries

    def __iter__(self) -> Iterator[TriggerKey]:
        return iter(self._entries)

    def keys(self) -> List[TriggerKey]:
        return list(self._entries)

    def entry(self, triggers: Iterable[str]) -> Optional[TableEntry]:
        return self._entries.get(normalize_triggers(triggers))

    def idle_entry(self) -> Optional[TableEntry]:
        return self._entries.get(IDLE_TRIGGERS)

    def has_idle_content(self) -> bool:
        e = self.idle_entry()
        return e is not None and len(e.candidates) > 0

    def candidate_count(self) -> int:
        return sum(len(e.candidates) for e in self._entries.values())


@dataclass
class _EntryDraft:
    candidates: List[DialogueSequence]


def build_table(
    records: Iterable[ContentRecord],
    *,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> ResponseTable:
    """
    Fold parsed records into a ResponseTable.

    Records whose normalized trigger sets are equal (order-insensitive) are
    merged: their lines become extra candidates of one entry, in record order.
    """
    drafts: Dict[TriggerKey, _EntryDraft] = {}
    for rec in records:
        key = normalize_triggers(rec.triggers)
        seq = rec.to_sequence()
        draft = drafts.get(key)
        if draft is None:
            drafts[key] = _EntryDraft(candidates=[seq])
        else:
            draft.candidates.append(seq)

    entries = {
        key: TableEntry(
            candidates=tuple(d.candidates),
            cooldown=cooldown,
            last_used=NEVER,
        )
        for key, d in drafts.items()
    }
    return ResponseTable(entries)
