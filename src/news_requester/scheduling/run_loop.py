"""Cyclic run loop over prioritized query specs.

The loop is an explicit state machine over an immutable ordered tuple and a
cursor. `step()` performs exactly one transition so wrap, exhaustion and
budget handling can be exercised one step at a time.

    IDLE -> STEPPING -> {STEPPING, EXHAUSTED, BUDGET_REACHED, RATE_LIMITED}
                     -> MALFORMED_SPEC (hard error, no hand-off)

EMPTY is used when there is nothing to schedule; the loop never starts.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from news_requester.errors import MalformedQuerySpecError
from news_requester.scheduling.executor import (
    DryRun,
    EmptyOrMalformed,
    Outcome,
    RateLimited,
    RequestExecutor,
    Success,
    TransportError,
)
from news_requester.scheduling.windows import DEFAULT_WINDOW_DAYS, NO_OP, next_window
from news_requester.storage.models import QuerySpec

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    EMPTY = "empty"
    IDLE = "idle"
    STEPPING = "stepping"
    EXHAUSTED = "exhausted"
    BUDGET_REACHED = "budget_reached"
    RATE_LIMITED = "rate_limited"
    MALFORMED_SPEC = "malformed_spec"


TERMINAL_PHASES = frozenset(
    {
        RunPhase.EMPTY,
        RunPhase.EXHAUSTED,
        RunPhase.BUDGET_REACHED,
        RunPhase.RATE_LIMITED,
        RunPhase.MALFORMED_SPEC,
    }
)
HANDOFF_PHASES = frozenset({RunPhase.EXHAUSTED, RunPhase.BUDGET_REACHED, RunPhase.RATE_LIMITED})
SUCCESS_PHASES = frozenset({RunPhase.EMPTY, RunPhase.EXHAUSTED, RunPhase.BUDGET_REACHED})


@dataclass
class RunState:
    request_budget: int
    index: int = 0
    steps: int = 0


@dataclass
class RunReport:
    phase: RunPhase
    steps: int = 0
    outcomes: Counter[str] = field(default_factory=Counter)
    handoff_invoked: bool = False

    @property
    def exit_code(self) -> int:
        return 0 if self.phase in SUCCESS_PHASES else 1


class RunLoop:
    def __init__(
        self,
        ordered: Sequence[QuerySpec],
        *,
        executor: RequestExecutor,
        today: date,
        window_days: int = DEFAULT_WINDOW_DAYS,
        pacing_delay_s: float = 0.0,
        request_budget: int = 5,
        earliest: date | None = None,
        advance_on_malformed: bool = True,
        handoff: Callable[[], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if request_budget < 1:
            raise ValueError("request_budget must be >= 1")
        self.ordered: tuple[QuerySpec, ...] = tuple(ordered)
        self.executor = executor
        self.today = today
        self.window_days = window_days
        self.pacing_delay_s = pacing_delay_s
        self.earliest = earliest
        self.advance_on_malformed = advance_on_malformed
        self.handoff = handoff
        self.sleep = sleep
        self.state = RunState(request_budget=request_budget)
        self.phase = RunPhase.IDLE if self.ordered else RunPhase.EMPTY
        self.report = RunReport(phase=self.phase)

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def run(self) -> RunReport:
        """Step until a terminal phase, then hand off once where required."""
        if self.phase is RunPhase.EMPTY:
            logger.info("run_loop event=empty reason=no_pending_queries")
        while not self.finished:
            self.step()

        self.report.phase = self.phase
        self.report.steps = self.state.steps
        logger.info(
            "run_loop event=finished phase=%s steps=%s outcomes=%s",
            self.phase.value,
            self.state.steps,
            dict(self.report.outcomes),
        )
        if self.phase in HANDOFF_PHASES:
            self._hand_off()
        return self.report

    def step(self) -> RunPhase:
        if self.finished:
            raise RuntimeError(f"Run loop already finished in phase {self.phase.value}")
        self.phase = RunPhase.STEPPING
        state = self.state
        spec = self.ordered[state.index]

        if spec.covered_through is None:
            self.phase = RunPhase.MALFORMED_SPEC
            self.report.phase = self.phase
            logger.error(
                "run_loop event=malformed_spec index=%s step=%s query=%s",
                state.index,
                state.steps,
                spec.describe(),
            )
            raise MalformedQuerySpecError(
                f"Query at index {state.index} (step {state.steps}) has no covered-through date: "
                f"{spec.describe()}"
            )

        logger.info(
            "run_loop event=step_start step=%s index=%s covered_through=%s query=%s",
            state.steps,
            state.index,
            spec.covered_through,
            spec.describe(),
        )
        if spec.covered_through <= self.today:
            window = next_window(
                spec.covered_through,
                self.today,
                self.window_days,
                earliest=self.earliest,
            )
            if window == NO_OP:
                self.report.outcomes["no_op"] += 1
                logger.info("run_loop event=no_op index=%s reason=current_through_today", state.index)
            else:
                outcome = self.executor.execute(spec, window)
                self.report.outcomes[_outcome_name(outcome)] += 1
                if isinstance(outcome, RateLimited):
                    state.steps += 1
                    self.phase = RunPhase.RATE_LIMITED
                    logger.error(
                        "run_loop event=rate_limited step=%s request_id=%s message=%s",
                        state.steps,
                        outcome.record.request_id,
                        outcome.message,
                    )
                    return self.phase
                if self._consumes_window(outcome):
                    spec.covered_through = window.end

        self.sleep(self.pacing_delay_s)

        state.index += 1
        state.steps += 1

        if state.steps == state.request_budget:
            self.phase = RunPhase.BUDGET_REACHED
            logger.info("run_loop event=budget_reached steps=%s", state.steps)
        elif state.index == len(self.ordered) and spec.covered_through == self.today:
            self.phase = RunPhase.EXHAUSTED
            logger.info("run_loop event=exhausted queries=%s", len(self.ordered))
        elif state.index == len(self.ordered):
            state.index = 0
            logger.info("run_loop event=wrap queries=%s steps=%s", len(self.ordered), state.steps)
        return self.phase

    def _consumes_window(self, outcome: Outcome) -> bool:
        if isinstance(outcome, (Success, DryRun)):
            return True
        if isinstance(outcome, EmptyOrMalformed):
            return self.advance_on_malformed
        return False

    def _hand_off(self) -> None:
        if self.handoff is None:
            return
        self.report.handoff_invoked = True
        try:
            self.handoff()
        except Exception:  # noqa: BLE001
            logger.exception("run_loop event=handoff_failed phase=%s", self.phase.value)


def _outcome_name(outcome: Outcome) -> str:
    if isinstance(outcome, Success):
        return "success"
    if isinstance(outcome, EmptyOrMalformed):
        return "malformed"
    if isinstance(outcome, RateLimited):
        return "rate_limited"
    if isinstance(outcome, TransportError):
        return "transport_error"
    return "dry_run"
