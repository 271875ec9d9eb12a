"""Command line entrypoint: one guarded, budgeted requester run."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from news_requester.config.logging_config import setup_logging
from news_requester.config.settings import Settings, get_settings
from news_requester.errors import ConfigurationError, GuardrailViolation, MalformedQuerySpecError
from news_requester.handoff import DownstreamHandoff
from news_requester.provider.archive import ResponseArchive
from news_requester.provider.newsapi import NewsApiClient, SearchClient
from news_requester.queries.loader import load_query_specs
from news_requester.scheduling.executor import RequestExecutor
from news_requester.scheduling.guardrail import check_guardrail
from news_requester.scheduling.scheduler import run_once
from news_requester.storage.base import RequestStorage
from news_requester.storage.postgres import PostgresRequestStorage

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Request the next uncovered date window for each configured news query, "
            "within the configured UTC time window and request budget."
        )
    )
    parser.add_argument(
        "--run-anyway",
        action="store_true",
        help="Bypass the time guardrail and run outside the configured window.",
    )
    return parser.parse_args(argv)


def build_storage(settings: Settings) -> RequestStorage:
    database_url = settings.resolved_database_url()
    if not database_url:
        raise ConfigurationError(
            "Missing database URL. Set NEWS_REQUESTER_DATABASE_URL or DATABASE_URL."
        )
    return PostgresRequestStorage(database_url)


def run(
    *,
    settings: Settings,
    run_anyway: bool = False,
    storage: RequestStorage | None = None,
    client: SearchClient | None = None,
    handoff: Callable[[], None] | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Execute one run and return the process exit code."""
    current = now or datetime.now(UTC)
    try:
        check_guardrail(
            settings.guardrail_target_time,
            settings.guardrail_window_minutes,
            now_utc=current,
            run_anyway=run_anyway,
        )
    except GuardrailViolation as exc:
        logger.error("guardrail event=violation %s", exc)
        logger.error(
            "guardrail event=violation current=%s window_start=%s window_end=%s",
            exc.current,
            exc.window_start,
            exc.window_end,
        )
        logger.error("guardrail hint=rerun_with_flag flag=--run-anyway")
        return 1
    except ConfigurationError as exc:
        logger.error("config event=invalid check=guardrail error=%s", exc)
        return 1

    try:
        storage = storage or build_storage(settings)
        storage.migrate()
        source = storage.find_source(settings.source_name)
        if source is None:
            raise ConfigurationError(f"Unknown news source: {settings.source_name!r}")
        if not settings.query_spreadsheet_path:
            raise ConfigurationError(
                "Missing query spreadsheet. Set NEWS_REQUESTER_QUERY_SPREADSHEET_PATH."
            )
    except ConfigurationError as exc:
        logger.error("config event=invalid error=%s", exc)
        return 1

    logger.info(
        "run event=start source=%s window_days=%s pacing_delay_ms=%s request_budget=%s "
        "activate_requests=%s",
        source.name,
        settings.window_days,
        settings.pacing_delay_ms,
        settings.request_budget,
        settings.activate_requests,
    )
    specs = load_query_specs(settings.query_spreadsheet_path)
    executor = RequestExecutor(
        storage=storage,
        client=client or NewsApiClient(source=source, timeout_s=settings.request_timeout_s),
        source=source,
        archive=ResponseArchive(Path(settings.response_dir)) if settings.response_dir else None,
        activate_requests=settings.activate_requests,
    )
    if handoff is None:
        handoff = DownstreamHandoff(
            settings.downstream_command,
            timeout_s=settings.downstream_timeout_s,
        )

    try:
        report = run_once(
            specs,
            storage=storage,
            executor=executor,
            settings=settings,
            today=current.astimezone(UTC).date(),
            handoff=handoff,
            sleep=sleep,
        )
    except MalformedQuerySpecError as exc:
        logger.error("run event=aborted reason=malformed_spec error=%s", exc)
        return 1

    logger.info(
        "run event=end phase=%s steps=%s exit_code=%s",
        report.phase.value,
        report.steps,
        report.exit_code,
    )
    return report.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO, stream=sys.stderr)
        logger.error("config event=invalid check=settings error=%s", exc)
        return 1
    setup_logging(settings)
    logger.info("run event=boot app=%s env=%s", settings.app_name, settings.app_env)
    return run(settings=settings, run_anyway=args.run_anyway)


if __name__ == "__main__":
    sys.exit(main())
