"""Exception taxonomy shared by the scheduler, collaborators and CLI."""

from __future__ import annotations


class NewsRequesterError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(NewsRequesterError):
    """Settings are missing or malformed; nothing may be scheduled."""


class GuardrailViolation(NewsRequesterError):
    """Current UTC time falls outside the configured run window."""

    def __init__(self, message: str, *, current: str, window_start: str, window_end: str) -> None:
        super().__init__(message)
        self.current = current
        self.window_start = window_start
        self.window_end = window_end


class ProviderTransportError(NewsRequesterError):
    """The provider could not be reached or did not answer with JSON."""


class MalformedQuerySpecError(NewsRequesterError):
    """A query reached the run loop without a covered-through date."""
