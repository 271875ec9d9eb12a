"""Storage backends and models."""

from news_requester.storage.base import RequestStorage
from news_requester.storage.memory import InMemoryRequestStorage
from news_requester.storage.models import (
    ArticleRecord,
    QueryKey,
    QuerySpec,
    RequestRecord,
    RequestRecordCreate,
    SourceConfig,
)
from news_requester.storage.postgres import PostgresRequestStorage

__all__ = [
    "ArticleRecord",
    "InMemoryRequestStorage",
    "PostgresRequestStorage",
    "QueryKey",
    "QuerySpec",
    "RequestRecord",
    "RequestRecordCreate",
    "RequestStorage",
    "SourceConfig",
]
