"""FastAPI status app: read-only views of query coverage and request history."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta
from typing import Callable

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from news_requester.config.settings import Settings, get_settings
from news_requester.queries.loader import load_query_specs
from news_requester.scheduling.coverage import (
    CoverageResolver,
    excluded_failure_reasons,
    origin_start,
)
from news_requester.scheduling.windows import NO_OP, next_window
from news_requester.storage.base import RequestStorage
from news_requester.storage.models import QueryKey, RequestRecord, SourceConfig
from news_requester.storage.postgres import PostgresRequestStorage


class WindowView(BaseModel):
    start: date
    end: date


class QueryCoverage(BaseModel):
    row_id: str | None
    and_string: str
    or_string: str
    not_string: str
    covered_through: date
    has_history: bool
    next_window: WindowView | None


class CoverageReport(BaseModel):
    source: str
    today: date
    queries: list[QueryCoverage]


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: RequestStorage | None,
) -> None:
    if not hasattr(app.state, "storage"):
        database_url = settings.resolved_database_url()
        if storage_override is None and not database_url:
            raise RuntimeError(
                "Missing database URL. Set NEWS_REQUESTER_DATABASE_URL "
                "or DATABASE_URL before starting the app."
            )
        app.state.storage = storage_override or PostgresRequestStorage(database_url)
        app.state.storage.migrate()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings


def create_app(
    *,
    storage: RequestStorage | None = None,
    settings_override: Settings | None = None,
    today: Callable[[], date] | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    current_day = today or (lambda: datetime.now(UTC).date())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, storage_override=storage)
        yield

    app_lifespan = lifespan if storage is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    if storage is not None:
        _ensure_runtime_state(app, settings=settings, storage_override=storage)

    def _get_storage(request: Request) -> RequestStorage:
        if not hasattr(request.app.state, "storage"):
            _ensure_runtime_state(request.app, settings=settings, storage_override=storage)
        return request.app.state.storage

    def _get_source(request_storage: RequestStorage) -> SourceConfig:
        source = request_storage.find_source(settings.source_name)
        if source is None:
            raise HTTPException(status_code=404, detail="News source not configured")
        return source

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/coverage", response_model=CoverageReport)
    def coverage(request: Request) -> CoverageReport:
        request_storage = _get_storage(request)
        source = _get_source(request_storage)
        day = current_day()
        resolver = CoverageResolver(
            request_storage,
            source_id=source.source_id,
            today=day,
            horizon_days=settings.horizon_days,
            advance_on_malformed=settings.advance_on_malformed,
        )
        earliest = (
            day - timedelta(days=settings.provider_lookback_days)
            if settings.provider_lookback_days
            else None
        )
        queries: list[QueryCoverage] = []
        specs = (
            load_query_specs(settings.query_spreadsheet_path)
            if settings.query_spreadsheet_path
            else []
        )
        for spec in specs:
            resolution = resolver.resolve(spec)
            covered_through = resolution.covered_through
            if not resolution.has_history:
                covered_through = origin_start(covered_through, spec.start_date)
            window = next_window(
                covered_through,
                day,
                settings.window_days,
                earliest=earliest,
            )
            queries.append(
                QueryCoverage(
                    row_id=spec.row_id,
                    and_string=spec.and_string,
                    or_string=spec.or_string,
                    not_string=spec.not_string,
                    covered_through=covered_through,
                    has_history=resolution.has_history,
                    next_window=(
                        None if window == NO_OP else WindowView(start=window.start, end=window.end)
                    ),
                )
            )
        return CoverageReport(source=source.name, today=day, queries=queries)

    @app.get("/requests/latest", response_model=RequestRecord)
    def latest_request(
        request: Request,
        and_string: str = Query("", description="Rendered AND terms"),
        or_string: str = Query("", description="Rendered OR terms"),
        not_string: str = Query("", description="Rendered NOT terms"),
    ) -> RequestRecord:
        """Latest request that counts as coverage for the query."""
        request_storage = _get_storage(request)
        source = _get_source(request_storage)
        record = request_storage.find_latest_record(
            QueryKey(and_string, or_string, not_string),
            source.source_id,
            exclude_reasons=excluded_failure_reasons(settings.advance_on_malformed),
        )
        if record is None:
            raise HTTPException(status_code=404, detail="No request recorded for this query")
        return record

    @app.get("/requests/history", response_model=list[RequestRecord])
    def request_history(
        request: Request,
        and_string: str = Query("", description="Rendered AND terms"),
        or_string: str = Query("", description="Rendered OR terms"),
        not_string: str = Query("", description="Rendered NOT terms"),
    ) -> list[RequestRecord]:
        """Every recorded request for the query, failures included, oldest first."""
        request_storage = _get_storage(request)
        source = _get_source(request_storage)
        return request_storage.list_records(
            QueryKey(and_string, or_string, not_string),
            source.source_id,
        )

    return app


app = create_app()
