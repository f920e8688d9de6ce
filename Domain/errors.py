# Domain/errors.py
from __future__ import annotations

from typing import Optional


class IdleSchedulerError(Exception):
    """Base class for idle scheduler failures."""


class ContentLoadError(IdleSchedulerError):
    """
    Content source unreadable or malformed.

    Raised by content readers; the loader catches it at the boundary,
    reports it to the operator and leaves the response table empty.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is None:
            return base
        return f"{base}: {self.cause}"


class ConfigurationError(IdleSchedulerError):
    """Tier name present but not one of the known tiers (and not "off")."""

    def __init__(self, message: str, value: object = None):
        super().__init__(message)
        self.value = value
