# Services/content_loader.py
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol

from Domain.errors import ContentLoadError
from Domain.schemas import ContentRecord
from Services.response_table import ResponseTable, build_table

log = logging.getLogger(__name__)


class IContentReader(Protocol):
    def read(self) -> List[ContentRecord]: ...


def load_response_table(
    reader: IContentReader,
    *,
    report: Optional[Callable[[str], None]] = None,
) -> ResponseTable:
    """
    Build the response table from a content reader.

    A ContentLoadError is fatal to the idle feature, never to the process:
    it is logged, passed to `report` (the operator channel) and an empty
    table comes back, which leaves the scheduler disabled.
    """
    try:
        records = reader.read()
    except ContentLoadError as e:
        log.error("content_load_failed error=%s", e, exc_info=e.cause is not None)
        if report is not None:
            report(f"An error occurred loading idle dialogue: {e}")
        return ResponseTable()

    table = build_table(records)
    idle = table.idle_entry()
    log.info(
        "content_loaded records=%s entries=%s idle_candidates=%s",
        len(records),
        len(table),
        len(idle.candidates) if idle is not None else 0,
    )
    return table
