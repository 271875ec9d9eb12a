"""Storage interface for request history, provider sources and articles."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any, Protocol

from news_requester.storage.models import (
    FailureReason,
    QueryKey,
    RequestRecord,
    RequestRecordCreate,
    SourceConfig,
)


class RequestStorage(Protocol):
    def migrate(self) -> None: ...

    def find_source(self, name: str) -> SourceConfig | None: ...

    def find_latest_record(
        self,
        key: QueryKey,
        source_id: int,
        *,
        exclude_reasons: Collection[FailureReason] = (),
    ) -> RequestRecord | None: ...

    def list_records(self, key: QueryKey, source_id: int) -> list[RequestRecord]: ...

    def create_record(self, fields: RequestRecordCreate) -> RequestRecord: ...

    def update_record(self, request_id: int, *, count_saved: int) -> RequestRecord: ...

    def store_articles(self, articles: list[dict[str, Any]], record: RequestRecord) -> int: ...
