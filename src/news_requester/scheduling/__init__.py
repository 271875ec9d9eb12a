"""Coverage-tracking scheduler: guardrail, coverage, windows, executor and run loop."""

from news_requester.scheduling.coverage import CoverageResolution, CoverageResolver, prioritize
from news_requester.scheduling.executor import (
    DryRun,
    EmptyOrMalformed,
    Outcome,
    RateLimited,
    RequestExecutor,
    Success,
    TransportError,
)
from news_requester.scheduling.guardrail import check_guardrail, is_within_guardrail_window
from news_requester.scheduling.run_loop import RunLoop, RunPhase, RunReport
from news_requester.scheduling.scheduler import run_once
from news_requester.scheduling.windows import NO_OP, Window, next_window

__all__ = [
    "NO_OP",
    "CoverageResolution",
    "CoverageResolver",
    "DryRun",
    "EmptyOrMalformed",
    "Outcome",
    "RateLimited",
    "RequestExecutor",
    "RunLoop",
    "RunPhase",
    "RunReport",
    "Success",
    "TransportError",
    "Window",
    "check_guardrail",
    "is_within_guardrail_window",
    "next_window",
    "prioritize",
    "run_once",
]
