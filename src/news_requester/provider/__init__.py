"""Provider client and response archive."""

from news_requester.provider.archive import ResponseArchive
from news_requester.provider.newsapi import (
    NewsApiClient,
    ProviderResponse,
    SearchClient,
    redact_api_key,
)

__all__ = [
    "NewsApiClient",
    "ProviderResponse",
    "ResponseArchive",
    "SearchClient",
    "redact_api_key",
]
