"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import json
import threading
from collections.abc import Collection
from datetime import UTC, date, datetime
from typing import Any

from news_requester.storage.models import (
    FailureReason,
    QueryKey,
    RequestRecord,
    RequestRecordCreate,
    SourceConfig,
    article_fields,
)


class PostgresRequestStorage:
    """Persist request history and articles in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("NEWS_REQUESTER_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS news_aggregator_sources (
                    source_id BIGSERIAL PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    api_key TEXT NOT NULL,
                    base_url TEXT NOT NULL
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS news_api_requests (
                    request_id BIGSERIAL PRIMARY KEY,
                    source_id BIGINT NOT NULL
                        REFERENCES news_aggregator_sources(source_id),
                    and_string TEXT NOT NULL DEFAULT '',
                    or_string TEXT NOT NULL DEFAULT '',
                    not_string TEXT NOT NULL DEFAULT '',
                    date_start DATE NOT NULL,
                    date_end DATE NOT NULL,
                    status TEXT NOT NULL,
                    failure_reason TEXT,
                    url TEXT NOT NULL,
                    include_domains_json JSONB NOT NULL DEFAULT '[]'::jsonb,
                    exclude_domains_json JSONB NOT NULL DEFAULT '[]'::jsonb,
                    count_received INTEGER,
                    count_available INTEGER,
                    count_saved INTEGER,
                    is_from_automation BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_news_api_requests_query
                ON news_api_requests(source_id, and_string, or_string, not_string, date_end DESC)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS articles (
                    article_id BIGSERIAL PRIMARY KEY,
                    url TEXT NOT NULL UNIQUE,
                    request_id BIGINT NOT NULL REFERENCES news_api_requests(request_id),
                    source_id BIGINT NOT NULL REFERENCES news_aggregator_sources(source_id),
                    publication_name TEXT,
                    title TEXT,
                    author TEXT,
                    description TEXT,
                    url_to_image TEXT,
                    published_date TEXT,
                    content TEXT,
                    created_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.commit()

    def find_source(self, name: str) -> SourceConfig | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM news_aggregator_sources WHERE name = %s",
                (name,),
            ).fetchone()
        if row is None:
            return None
        return SourceConfig(
            source_id=int(row["source_id"]),
            name=row["name"],
            api_key=row["api_key"],
            base_url=row["base_url"],
        )

    def find_latest_record(
        self,
        key: QueryKey,
        source_id: int,
        *,
        exclude_reasons: Collection[FailureReason] = (),
    ) -> RequestRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                SELECT *
                FROM news_api_requests
                WHERE and_string = %s
                  AND or_string = %s
                  AND not_string = %s
                  AND source_id = %s
                  AND (failure_reason IS NULL OR NOT (failure_reason = ANY(%s)))
                ORDER BY date_end DESC, request_id DESC
                LIMIT 1
                """,
                (*key, source_id, list(exclude_reasons)),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def list_records(self, key: QueryKey, source_id: int) -> list[RequestRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM news_api_requests
                WHERE and_string = %s
                  AND or_string = %s
                  AND not_string = %s
                  AND source_id = %s
                ORDER BY request_id
                """,
                (*key, source_id),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def create_record(self, fields: RequestRecordCreate) -> RequestRecord:
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO news_api_requests (
                    source_id,
                    and_string,
                    or_string,
                    not_string,
                    date_start,
                    date_end,
                    status,
                    failure_reason,
                    url,
                    include_domains_json,
                    exclude_domains_json,
                    count_received,
                    count_available,
                    is_from_automation,
                    created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    fields.source_id,
                    fields.and_string,
                    fields.or_string,
                    fields.not_string,
                    fields.date_start,
                    fields.date_end,
                    fields.status,
                    fields.failure_reason,
                    fields.url,
                    self._json_wrapper(fields.include_domains),
                    self._json_wrapper(fields.exclude_domains),
                    fields.count_received,
                    fields.count_available,
                    fields.is_from_automation,
                    now,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to persist request record")
        return self._row_to_record(row)

    def update_record(self, request_id: int, *, count_saved: int) -> RequestRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                UPDATE news_api_requests
                SET count_saved = %s
                WHERE request_id = %s
                RETURNING *
                """,
                (count_saved, request_id),
            ).fetchone()
            conn.commit()
        if row is None:
            raise KeyError(f"Request record {request_id} does not exist")
        return self._row_to_record(row)

    def store_articles(self, articles: list[dict[str, Any]], record: RequestRecord) -> int:
        saved = 0
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            for raw in articles:
                fields = article_fields(raw)
                if not fields.get("url"):
                    continue
                row = conn.execute(
                    """
                    INSERT INTO articles (
                        url,
                        request_id,
                        source_id,
                        publication_name,
                        title,
                        author,
                        description,
                        url_to_image,
                        published_date,
                        content,
                        created_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (url) DO NOTHING
                    RETURNING article_id
                    """,
                    (
                        fields["url"],
                        record.request_id,
                        record.source_id,
                        fields["publication_name"],
                        fields["title"],
                        fields["author"],
                        fields["description"],
                        fields["url_to_image"],
                        fields["published_date"],
                        fields["content"],
                        now,
                    ),
                ).fetchone()
                if row is not None:
                    saved += 1
            conn.commit()
        return saved

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json_list(raw: Any) -> list[str]:
        if raw is None:
            return []
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(parsed, list):
            return []
        return [str(item) for item in parsed]

    @staticmethod
    def _parse_date(raw: Any) -> date:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if isinstance(raw, str):
            return date.fromisoformat(raw[:10])
        raise TypeError(f"Unsupported date value: {type(raw)!r}")

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_record(cls, row: Any) -> RequestRecord:
        return RequestRecord(
            request_id=int(row["request_id"]),
            source_id=int(row["source_id"]),
            and_string=row["and_string"],
            or_string=row["or_string"],
            not_string=row["not_string"],
            date_start=cls._parse_date(row["date_start"]),
            date_end=cls._parse_date(row["date_end"]),
            status=row["status"],
            failure_reason=row.get("failure_reason"),
            url=row["url"],
            include_domains=cls._parse_json_list(row.get("include_domains_json")),
            exclude_domains=cls._parse_json_list(row.get("exclude_domains_json")),
            count_received=row.get("count_received"),
            count_available=row.get("count_available"),
            count_saved=row.get("count_saved"),
            is_from_automation=bool(row.get("is_from_automation", True)),
            created_at=cls._parse_datetime(row["created_at"]),
        )
