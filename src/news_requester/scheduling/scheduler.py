"""Wire coverage resolution, prioritization and the run loop for one run."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import date, timedelta

from news_requester.config.settings import Settings
from news_requester.scheduling.coverage import CoverageResolver, prioritize
from news_requester.scheduling.executor import RequestExecutor
from news_requester.scheduling.run_loop import RunLoop, RunReport
from news_requester.storage.base import RequestStorage
from news_requester.storage.models import QuerySpec

logger = logging.getLogger(__name__)


def run_once(
    specs: Sequence[QuerySpec],
    *,
    storage: RequestStorage,
    executor: RequestExecutor,
    settings: Settings,
    today: date,
    handoff: Callable[[], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunReport:
    resolver = CoverageResolver(
        storage,
        source_id=executor.source.source_id,
        today=today,
        horizon_days=settings.horizon_days,
        advance_on_malformed=settings.advance_on_malformed,
    )
    logger.info("scheduler event=resolving_coverage specs=%s today=%s", len(specs), today)
    ordered = prioritize(specs, resolver)

    earliest = None
    if settings.provider_lookback_days:
        earliest = today - timedelta(days=settings.provider_lookback_days)

    loop = RunLoop(
        ordered,
        executor=executor,
        today=today,
        window_days=settings.window_days,
        pacing_delay_s=settings.pacing_delay_s,
        request_budget=settings.request_budget,
        earliest=earliest,
        advance_on_malformed=settings.advance_on_malformed,
        handoff=handoff,
        sleep=sleep,
    )
    return loop.run()
