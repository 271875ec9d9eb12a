"""Send one windowed request, classify the response and persist the result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

from news_requester.errors import ProviderTransportError
from news_requester.provider.archive import ResponseArchive
from news_requester.provider.newsapi import ProviderResponse, SearchClient, redact_api_key
from news_requester.scheduling.windows import Window
from news_requester.storage.base import RequestStorage
from news_requester.storage.models import (
    FailureReason,
    QuerySpec,
    RequestRecord,
    RequestRecordCreate,
    RequestStatus,
    SourceConfig,
)

logger = logging.getLogger(__name__)

# NewsAPI error codes that mean the account cannot make more requests right now.
RATE_LIMIT_CODES = frozenset({"rateLimited", "apiKeyExhausted"})


@dataclass(frozen=True)
class Success:
    result_count: int
    record: RequestRecord
    saved_count: int
    results: list[dict[str, Any]] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class EmptyOrMalformed:
    record: RequestRecord


@dataclass(frozen=True)
class RateLimited:
    record: RequestRecord
    message: str


@dataclass(frozen=True)
class TransportError:
    message: str


@dataclass(frozen=True)
class DryRun:
    url: str


Outcome = Union[Success, EmptyOrMalformed, RateLimited, TransportError, DryRun]


class RequestExecutor:
    """Issue exactly one provider request per call.

    Success and malformed responses are recorded. Rate-limited responses are
    recorded as failed. Transport failures leave no trace in storage.
    """

    def __init__(
        self,
        *,
        storage: RequestStorage,
        client: SearchClient,
        source: SourceConfig,
        archive: ResponseArchive | None = None,
        activate_requests: bool = True,
    ) -> None:
        self.storage = storage
        self.client = client
        self.source = source
        self.archive = archive
        self.activate_requests = activate_requests

    def execute(self, spec: QuerySpec, window: Window) -> Outcome:
        if not self.activate_requests:
            url = redact_api_key(self.client.build_url(spec, window.start, window.end))
            logger.info("executor event=dry_run url=%s", url)
            return DryRun(url=url)

        try:
            response = self.client.search(spec, window.start, window.end)
        except ProviderTransportError as exc:
            logger.error(
                "executor event=transport_error query=%s start=%s end=%s error=%s",
                spec.describe(),
                window.start,
                window.end,
                exc,
            )
            return TransportError(message=str(exc))

        payload = response.payload
        if _is_rate_limited(response):
            record = self._record(spec, window, response, status="error", reason="rate_limited")
            self._archive(record, response, failed=True)
            message = str(payload.get("message") or payload.get("code") or "rate limited")
            logger.error(
                "executor event=rate_limited request_id=%s source=%s message=%s",
                record.request_id,
                self.source.name,
                message,
            )
            return RateLimited(record=record, message=message)

        articles = payload.get("articles")
        if not isinstance(articles, list):
            record = self._record(spec, window, response, status="error", reason="malformed")
            self._archive(record, response, failed=True)
            logger.warning(
                "executor event=no_articles request_id=%s status_code=%s code=%s",
                record.request_id,
                response.status_code,
                payload.get("code"),
            )
            return EmptyOrMalformed(record=record)

        record = self._record(
            spec,
            window,
            response,
            status="success",
            count_received=len(articles),
        )
        saved_count = self.storage.store_articles(articles, record)
        record = self.storage.update_record(record.request_id, count_saved=saved_count)
        self._archive(record, response, failed=False)
        logger.info(
            "executor event=stored request_id=%s received=%s available=%s saved=%s",
            record.request_id,
            len(articles),
            record.count_available,
            saved_count,
        )
        return Success(
            result_count=len(articles),
            record=record,
            saved_count=saved_count,
            results=articles,
        )

    def _record(
        self,
        spec: QuerySpec,
        window: Window,
        response: ProviderResponse,
        *,
        status: RequestStatus,
        reason: FailureReason | None = None,
        count_received: int | None = None,
    ) -> RequestRecord:
        total_results = response.payload.get("totalResults")
        return self.storage.create_record(
            RequestRecordCreate(
                source_id=self.source.source_id,
                and_string=spec.and_string,
                or_string=spec.or_string,
                not_string=spec.not_string,
                date_start=window.start,
                date_end=window.end,
                status=status,
                failure_reason=reason,
                url=response.url,
                include_domains=list(spec.include_domains),
                exclude_domains=list(spec.exclude_domains),
                count_received=count_received,
                count_available=total_results if isinstance(total_results, int) else None,
            )
        )

    def _archive(self, record: RequestRecord, response: ProviderResponse, *, failed: bool) -> None:
        if self.archive is None:
            return
        self.archive.write(
            source_id=self.source.source_id,
            request_label=str(record.request_id),
            payload=response.payload,
            request_url=response.url,
            failed=failed,
        )


def _is_rate_limited(response: ProviderResponse) -> bool:
    if response.status_code == 429:
        return True
    return response.payload.get("code") in RATE_LIMIT_CODES
