from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import pytest

from news_requester.errors import ProviderTransportError
from news_requester.provider.newsapi import ProviderResponse
from news_requester.scheduling.executor import RequestExecutor
from news_requester.storage.memory import InMemoryRequestStorage
from news_requester.storage.models import QuerySpec, SourceConfig

TODAY = date(2024, 3, 20)


class FakeSearchClient:
    """Test-only client that replays scripted responses in call order.

    Each script entry is a ProviderResponse, an exception to raise, or a
    payload dict returned with status 200. Once the script is used up every
    call gets an empty article list.
    """

    def __init__(self, script: list[Any] | None = None) -> None:
        self.script = list(script or [])
        self.calls: list[tuple[QuerySpec, date, date]] = []

    def build_url(self, spec: QuerySpec, start: date, end: date) -> str:
        return (
            f"https://newsapi.test/v2/everything?q={spec.and_string}"
            f"&from={start.isoformat()}&to={end.isoformat()}&apiKey=REDACTED"
        )

    def search(self, spec: QuerySpec, start: date, end: date) -> ProviderResponse:
        self.calls.append((spec, start, end))
        url = self.build_url(spec, start, end)
        item: Any = self.script.pop(0) if self.script else ok_payload([])
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ProviderResponse):
            return item
        return ProviderResponse(status_code=200, payload=item, url=url)


def ok_payload(articles: list[dict[str, Any]], total: int | None = None) -> dict[str, Any]:
    return {
        "status": "ok",
        "totalResults": len(articles) if total is None else total,
        "articles": articles,
    }


def article(url: str, title: str = "Headline") -> dict[str, Any]:
    return {
        "source": {"id": None, "name": "Example Wire"},
        "author": "Reporter",
        "title": title,
        "description": "Summary",
        "url": url,
        "urlToImage": None,
        "publishedAt": "2024-03-01T10:00:00Z",
        "content": "Body",
    }


def rate_limited_payload() -> dict[str, Any]:
    return {
        "status": "error",
        "code": "rateLimited",
        "message": "You have made too many requests recently.",
    }


def transport_failure() -> ProviderTransportError:
    return ProviderTransportError("Request to https://newsapi.test failed: timed out")


@pytest.fixture
def storage() -> InMemoryRequestStorage:
    return InMemoryRequestStorage()


@pytest.fixture
def source(storage: InMemoryRequestStorage) -> SourceConfig:
    return storage.add_source("NewsAPI", api_key="secret-key", base_url="https://newsapi.test/v2")


@pytest.fixture
def make_spec() -> Callable[..., QuerySpec]:
    def _make(
        and_terms: str = "election",
        *,
        or_terms: str = "",
        not_terms: str = "",
        start_date: date | None = None,
        covered_through: date | None = None,
    ) -> QuerySpec:
        return QuerySpec(
            and_terms=and_terms.split(),
            or_terms=or_terms.split(),
            not_terms=not_terms.split(),
            start_date=start_date,
            covered_through=covered_through,
        )

    return _make


@pytest.fixture
def make_executor(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
) -> Callable[..., tuple[RequestExecutor, FakeSearchClient]]:
    def _make(script: list[Any] | None = None, **kwargs: Any) -> tuple[RequestExecutor, FakeSearchClient]:
        client = FakeSearchClient(script)
        executor = RequestExecutor(storage=storage, client=client, source=source, **kwargs)
        return executor, client

    return _make
