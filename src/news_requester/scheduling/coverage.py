"""Coverage resolution and prioritization of query specs."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from news_requester.storage.base import RequestStorage
from news_requester.storage.models import FailureReason, QuerySpec

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 180


@dataclass(frozen=True)
class CoverageResolution:
    covered_through: date
    has_history: bool


class CoverageResolver:
    """Look up how far each query has already been requested.

    Rate-limited records covered nothing and are never counted. Malformed
    responses count unless `advance_on_malformed` is off.
    """

    def __init__(
        self,
        storage: RequestStorage,
        *,
        source_id: int,
        today: date,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        advance_on_malformed: bool = True,
    ) -> None:
        self.storage = storage
        self.source_id = source_id
        self.today = today
        self.horizon = today - timedelta(days=horizon_days)
        self.excluded_reasons = excluded_failure_reasons(advance_on_malformed)

    def resolve(self, spec: QuerySpec) -> CoverageResolution:
        record = self.storage.find_latest_record(
            spec.key,
            self.source_id,
            exclude_reasons=self.excluded_reasons,
        )
        if record is None:
            return CoverageResolution(covered_through=self.horizon, has_history=False)
        return CoverageResolution(covered_through=record.date_end, has_history=True)

    def resolve_coverage(self, spec: QuerySpec) -> date:
        return self.resolve(spec).covered_through


def prioritize(
    specs: Iterable[QuerySpec],
    resolver: CoverageResolver,
    *,
    progress_every: int = 1000,
) -> list[QuerySpec]:
    """Seed `covered_through` on every spec and order the work.

    Never-covered specs come first in input order, followed by covered specs
    sorted oldest coverage first (stable). Specs already covered through
    today are dropped.
    """
    never_covered: list[QuerySpec] = []
    covered: list[QuerySpec] = []
    spec_list: Sequence[QuerySpec] = list(specs)
    total = len(spec_list)

    for index, spec in enumerate(spec_list):
        resolution = resolver.resolve(spec)
        if resolution.has_history:
            spec.covered_through = resolution.covered_through
            covered.append(spec)
        else:
            spec.covered_through = origin_start(resolution.covered_through, spec.start_date)
            never_covered.append(spec)
        if progress_every and index % progress_every == 0:
            logger.info("coverage event=progress processed=%s total=%s", index, total)

    current = [spec for spec in covered if spec.covered_through == resolver.today]
    covered = [spec for spec in covered if spec.covered_through != resolver.today]
    covered.sort(key=lambda spec: spec.covered_through)

    logger.info(
        "coverage event=prioritized total=%s never_covered=%s covered=%s already_current=%s",
        total,
        len(never_covered),
        len(covered),
        len(current),
    )
    return never_covered + covered


def origin_start(horizon: date, start_date: date | None) -> date:
    if start_date is not None and start_date > horizon:
        return start_date
    return horizon


def excluded_failure_reasons(advance_on_malformed: bool = True) -> tuple[FailureReason, ...]:
    """Failure reasons whose records do not count as coverage."""
    if advance_on_malformed:
        return ("rate_limited",)
    return ("rate_limited", "malformed")
