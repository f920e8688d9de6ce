# Infra/csv_content_reader.py
from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from Domain.errors import ContentLoadError
from Domain.schemas import ContentRecord, DialogueUnitDraft


@dataclass
class CSVContentReader:
    """
    Read dialogue records from a CSV content file.

    Row layout:
      triggers, expression, text[, expression, text ...]

    - triggers: "|"-separated trigger strings; empty = idle line.
    - rows whose first cell starts with "#" are comments; blank rows are skipped.
    - trailing empty cells are ignored (spreadsheets pad rows).

    Any unreadable file or malformed row raises ContentLoadError; no partial
    tables are produced.
    """

    path: str
    encoding: str = "utf-8-sig"
    trigger_separator: str = "|"

    # ----------------------------
    # Public APIs
    # ----------------------------

    def read(self) -> List[ContentRecord]:
        p = Path(self.path)
        try:
            with p.open("r", encoding=self.encoding, newline="") as f:
                rows = list(csv.reader(f))
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise ContentLoadError(f"Can't read content file {str(p)!r}", cause=e) from e

        records: List[ContentRecord] = []
        for lineno, row in enumerate(rows, start=1):
            rec = self._parse_row(row, lineno)
            if rec is not None:
                records.append(rec)
        return records

    # ----------------------------
    # Internals
    # ----------------------------

    def _parse_row(self, row: Sequence[str], lineno: int) -> Optional[ContentRecord]:
        cells = list(row)
        while cells and not cells[-1].strip():
            cells.pop()
        if not cells:
            return None
        if cells[0].lstrip().startswith("#"):
            return None

        body = cells[1:]
        if not body:
            raise ContentLoadError(f"{self.path}:{lineno}: row has triggers but no dialogue")
        if len(body) % 2 != 0:
            raise ContentLoadError(
                f"{self.path}:{lineno}: expected expression/text pairs, got {len(body)} cells"
            )

        # a non-empty cell keeps its raw pieces; ContentRecord rejects all-blank ones
        triggers = cells[0].split(self.trigger_separator) if cells[0].strip() else []
        try:
            units = [
                DialogueUnitDraft(expression=body[i], text=body[i + 1])
                for i in range(0, len(body), 2)
            ]
            return ContentRecord(triggers=triggers, units=units)
        except ValidationError as e:
            raise ContentLoadError(f"{self.path}:{lineno}: invalid dialogue row", cause=e) from e
