"""In-memory storage backend for tests and dry runs."""

from __future__ import annotations

from collections.abc import Collection
from datetime import UTC, datetime
from typing import Any

from news_requester.storage.models import (
    ArticleRecord,
    FailureReason,
    QueryKey,
    RequestRecord,
    RequestRecordCreate,
    SourceConfig,
    article_fields,
)


class InMemoryRequestStorage:
    """Simple in-memory implementation of RequestStorage."""

    def __init__(self) -> None:
        self._sources: dict[str, SourceConfig] = {}
        self._records: list[RequestRecord] = []
        self._articles: dict[str, ArticleRecord] = {}
        self._next_request_id = 1
        self._next_article_id = 1

    def migrate(self) -> None:
        return None

    def add_source(self, name: str, *, api_key: str, base_url: str) -> SourceConfig:
        source = SourceConfig(
            source_id=len(self._sources) + 1,
            name=name,
            api_key=api_key,
            base_url=base_url,
        )
        self._sources[name] = source
        return source

    def find_source(self, name: str) -> SourceConfig | None:
        return self._sources.get(name)

    def find_latest_record(
        self,
        key: QueryKey,
        source_id: int,
        *,
        exclude_reasons: Collection[FailureReason] = (),
    ) -> RequestRecord | None:
        candidates = [
            record
            for record in self._records
            if record.key == key
            and record.source_id == source_id
            and record.failure_reason not in exclude_reasons
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda record: (record.date_end, record.request_id))
        return latest.model_copy(deep=True)

    def list_records(self, key: QueryKey, source_id: int) -> list[RequestRecord]:
        return [
            record.model_copy(deep=True)
            for record in self._records
            if record.key == key and record.source_id == source_id
        ]

    def create_record(self, fields: RequestRecordCreate) -> RequestRecord:
        record = RequestRecord(
            **fields.model_dump(),
            request_id=self._next_request_id,
            created_at=datetime.now(UTC),
        )
        self._next_request_id += 1
        self._records.append(record)
        return record.model_copy(deep=True)

    def update_record(self, request_id: int, *, count_saved: int) -> RequestRecord:
        for index, record in enumerate(self._records):
            if record.request_id != request_id:
                continue
            updated = record.model_copy(update={"count_saved": count_saved})
            self._records[index] = updated
            return updated.model_copy(deep=True)
        raise KeyError(f"Request record {request_id} does not exist")

    def store_articles(self, articles: list[dict[str, Any]], record: RequestRecord) -> int:
        saved = 0
        for raw in articles:
            fields = article_fields(raw)
            url = fields.get("url")
            if not url or url in self._articles:
                continue
            self._articles[url] = ArticleRecord(
                article_id=self._next_article_id,
                request_id=record.request_id,
                source_id=record.source_id,
                created_at=datetime.now(UTC),
                **fields,
            )
            self._next_article_id += 1
            saved += 1
        return saved

    @property
    def records(self) -> list[RequestRecord]:
        return [record.model_copy(deep=True) for record in self._records]

    @property
    def articles(self) -> list[ArticleRecord]:
        return list(self._articles.values())
