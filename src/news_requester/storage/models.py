"""Storage models shared by the scheduler, the status API and persistence backends."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, Field

# Request lifecycle states persisted on each record.
RequestStatus = Literal["success", "error"]
# Why an `error` record failed; rate-limited records never count as coverage.
FailureReason = Literal["malformed", "rate_limited"]


class QueryKey(NamedTuple):
    """History identity of a query: its rendered AND/OR/NOT strings."""

    and_string: str
    or_string: str
    not_string: str


class QuerySpec(BaseModel):
    """One row of search configuration."""

    row_id: str | None = None
    and_terms: list[str] = Field(default_factory=list)
    or_terms: list[str] = Field(default_factory=list)
    not_terms: list[str] = Field(default_factory=list)
    include_domains: list[str] = Field(default_factory=list)
    exclude_domains: list[str] = Field(default_factory=list)
    start_date: date | None = None
    # The only mutable field; seeded by the coverage pass, advanced by the run loop.
    covered_through: date | None = None

    @property
    def and_string(self) -> str:
        return " ".join(self.and_terms)

    @property
    def or_string(self) -> str:
        return " ".join(self.or_terms)

    @property
    def not_string(self) -> str:
        return " ".join(self.not_terms)

    @property
    def key(self) -> QueryKey:
        return QueryKey(self.and_string, self.or_string, self.not_string)

    def describe(self) -> str:
        return f"AND {self.and_string!r} OR {self.or_string!r} NOT {self.not_string!r}"


class SourceConfig(BaseModel):
    """Provider row: where to send requests and with which key."""

    source_id: int
    name: str
    api_key: str
    base_url: str


class RequestRecordCreate(BaseModel):
    """Fields supplied when a request record is first persisted."""

    source_id: int
    and_string: str
    or_string: str
    not_string: str
    date_start: date
    date_end: date
    status: RequestStatus
    failure_reason: FailureReason | None = None
    url: str
    include_domains: list[str] = Field(default_factory=list)
    exclude_domains: list[str] = Field(default_factory=list)
    count_received: int | None = None
    count_available: int | None = None
    is_from_automation: bool = True


class RequestRecord(RequestRecordCreate):
    """Persisted request record."""

    request_id: int
    count_saved: int | None = None
    created_at: datetime

    @property
    def key(self) -> QueryKey:
        return QueryKey(self.and_string, self.or_string, self.not_string)


class ArticleRecord(BaseModel):
    """Stored search result; `url` is its unique identity."""

    article_id: int
    url: str
    request_id: int
    source_id: int
    publication_name: str | None = None
    title: str | None = None
    author: str | None = None
    description: str | None = None
    url_to_image: str | None = None
    published_date: str | None = None
    content: str | None = None
    created_at: datetime


def article_fields(raw: dict[str, Any]) -> dict[str, Any]:
    """Map one provider article payload onto ArticleRecord column names."""
    source = raw.get("source")
    return {
        "url": raw.get("url"),
        "publication_name": source.get("name") if isinstance(source, dict) else None,
        "title": raw.get("title"),
        "author": raw.get("author"),
        "description": raw.get("description"),
        "url_to_image": raw.get("urlToImage"),
        "published_date": raw.get("publishedAt"),
        "content": raw.get("content"),
    }
