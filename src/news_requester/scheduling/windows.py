"""Next request window arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Final, Literal

DEFAULT_WINDOW_DAYS: Final = 10

NoOp = Literal["no-op"]
NO_OP: Final[NoOp] = "no-op"


@dataclass(frozen=True)
class Window:
    """Half-open `[start, end)` date range sent in one request."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days


def next_window(
    covered_through: date,
    today: date,
    window_days: int = DEFAULT_WINDOW_DAYS,
    *,
    earliest: date | None = None,
) -> Window | NoOp:
    """Return the window after `covered_through`, clamped to `today`.

    `earliest` lifts the start to the provider's oldest servable date.
    """
    start = covered_through
    if earliest is not None and earliest > start:
        start = earliest
    end = min(start + timedelta(days=window_days), today)
    if end <= start:
        return NO_OP
    return Window(start=start, end=end)
