"""Wall-clock run window gate.

A run may only start within `target ± window` minutes UTC. Windows that cross
midnight (for example 23:57-00:07 around a 00:02 target) are handled by
comparing on a 24-hour circle.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime

from news_requester.errors import ConfigurationError, GuardrailViolation

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class GuardrailWindow:
    start_minutes: int
    end_minutes: int

    @property
    def crosses_midnight(self) -> bool:
        return self.start_minutes > self.end_minutes

    def contains(self, minute_of_day: int) -> bool:
        if self.crosses_midnight:
            return minute_of_day >= self.start_minutes or minute_of_day <= self.end_minutes
        return self.start_minutes <= minute_of_day <= self.end_minutes

    def describe(self) -> str:
        return f"{format_minutes(self.start_minutes)} - {format_minutes(self.end_minutes)}"


def parse_target_time(target_time: str) -> int:
    """Parse `HH:MM` (24-hour) into minutes after midnight."""
    match = _TIME_PATTERN.match(target_time.strip())
    if match is None:
        raise ConfigurationError(
            f'Invalid guardrail target time format: "{target_time}". '
            "Expected HH:MM (24-hour format)."
        )
    hour, minute = int(match.group(1)), int(match.group(2))
    if not 0 <= hour <= 23:
        raise ConfigurationError(f"Invalid hour in guardrail target time: {hour}. Must be 0-23.")
    if not 0 <= minute <= 59:
        raise ConfigurationError(
            f"Invalid minute in guardrail target time: {minute}. Must be 0-59."
        )
    return hour * 60 + minute


def guardrail_window(target_time: str, window_minutes: int) -> GuardrailWindow:
    if window_minutes < 0:
        raise ConfigurationError(f"Guardrail window must be >= 0 minutes, got {window_minutes}.")
    target = parse_target_time(target_time)
    if 2 * window_minutes >= MINUTES_PER_DAY:
        return GuardrailWindow(start_minutes=0, end_minutes=MINUTES_PER_DAY - 1)
    return GuardrailWindow(
        start_minutes=(target - window_minutes) % MINUTES_PER_DAY,
        end_minutes=(target + window_minutes) % MINUTES_PER_DAY,
    )


def is_within_guardrail_window(target_time: str, window_minutes: int, now_utc: datetime) -> bool:
    window = guardrail_window(target_time, window_minutes)
    return window.contains(_minute_of_day(now_utc))


def check_guardrail(
    target_time: str,
    window_minutes: int,
    *,
    now_utc: datetime | None = None,
    run_anyway: bool = False,
) -> None:
    """Raise GuardrailViolation unless now is inside the window or bypassed."""
    if run_anyway:
        logger.warning(
            "guardrail event=bypassed reason=run_anyway target=%s window_minutes=%s",
            target_time,
            window_minutes,
        )
        return

    now = now_utc or datetime.now(UTC)
    window = guardrail_window(target_time, window_minutes)
    current = _minute_of_day(now)
    if not window.contains(current):
        raise GuardrailViolation(
            f"Current UTC time {format_minutes(current)} is outside the configured window "
            f"{window.describe()} (target {target_time} UTC +/- {window_minutes} minutes).",
            current=format_minutes(current),
            window_start=format_minutes(window.start_minutes),
            window_end=format_minutes(window.end_minutes),
        )
    logger.info("guardrail event=passed now=%s window=%s", format_minutes(current), window.describe())


def format_minutes(minutes: int) -> str:
    normalized = minutes % MINUTES_PER_DAY
    return f"{normalized // 60:02d}:{normalized % 60:02d}"


def _minute_of_day(now: datetime) -> int:
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    return now.hour * 60 + now.minute
