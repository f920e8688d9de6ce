# Domain/utils.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Tuple


def utc_now() -> datetime:
    """Domain-safe helper; services take an IClock so tests can pin time."""
    return datetime.now(timezone.utc)


def isoformat(dt: datetime) -> str:
    """Stable ISO string (timezone-aware recommended)."""
    return dt.isoformat()


def normalize_trigger(s: str) -> str:
    return (s or "").strip().lower()


def trigger_key(raw: Iterable[str]) -> Tuple[str, ...]:
    """
    Normalized, order-insensitive trigger-set key.

    Each trigger is trimmed and lower-cased; blanks are dropped,
    duplicates kept. Sorting makes ("a", "b") and ("b", "a") the same key.
    """
    normalized = [normalize_trigger(t) for t in raw]
    return tuple(sorted(t for t in normalized if t))
