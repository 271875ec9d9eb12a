"""NewsAPI `everything` endpoint client.

One call sends exactly one request for one date window. The client does not
interpret the payload beyond decoding JSON; classification is the request
executor's job.
"""

from __future__ import annotations

import http.client
import json
import logging
import socket
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol
from urllib import error, parse, request

from news_requester.errors import ProviderTransportError
from news_requester.queries.query_string import build_query
from news_requester.storage.models import QuerySpec, SourceConfig

logger = logging.getLogger(__name__)

REDACTED = "REDACTED"


@dataclass(frozen=True)
class ProviderResponse:
    status_code: int
    payload: dict[str, Any]
    url: str


class SearchClient(Protocol):
    def build_url(self, spec: QuerySpec, start: date, end: date) -> str: ...

    def search(self, spec: QuerySpec, start: date, end: date) -> ProviderResponse: ...


@dataclass
class NewsApiClient:
    """Send windowed `everything` searches with a bounded timeout."""

    source: SourceConfig
    timeout_s: float = 30.0
    language: str = "en"
    user_agent: str = "news-requester/0.1"

    def build_url(self, spec: QuerySpec, start: date, end: date) -> str:
        params: list[tuple[str, str]] = []
        if spec.include_domains:
            params.append(("domains", ",".join(spec.include_domains)))
        if spec.exclude_domains:
            params.append(("excludeDomains", ",".join(spec.exclude_domains)))
        query = build_query(spec.and_terms, spec.or_terms, spec.not_terms)
        if query:
            params.append(("q", query))
        params.append(("from", start.isoformat()))
        params.append(("to", end.isoformat()))
        params.append(("language", self.language))
        params.append(("apiKey", self.source.api_key))
        base_url = self.source.base_url.rstrip("/")
        return f"{base_url}/everything?{parse.urlencode(params)}"

    def search(self, spec: QuerySpec, start: date, end: date) -> ProviderResponse:
        url = self.build_url(spec, start, end)
        safe_url = redact_api_key(url)
        req = request.Request(
            url=url,
            method="GET",
            headers={"Accept": "application/json", "User-Agent": self.user_agent},
        )
        try:
            status_code, body = self._fetch(req)
        except (
            error.URLError,
            http.client.HTTPException,
            socket.timeout,
            TimeoutError,
            ConnectionError,
        ) as exc:
            reason = getattr(exc, "reason", None) or repr(exc)
            raise ProviderTransportError(f"Request to {safe_url} failed: {reason}") from exc

        logger.debug("newsapi event=response status_code=%s url=%s", status_code, safe_url)
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            if status_code == 429:
                # Quota rejections from a proxy may carry an HTML or empty body.
                return ProviderResponse(status_code=status_code, payload={}, url=safe_url)
            raise ProviderTransportError(
                f"Provider returned non-JSON response (status {status_code}) for {safe_url}"
            ) from exc
        if not isinstance(payload, dict):
            raise ProviderTransportError(
                f"Provider returned a JSON {type(payload).__name__} instead of an object"
            )
        return ProviderResponse(status_code=status_code, payload=payload, url=safe_url)

    def _fetch(self, req: request.Request) -> tuple[int, bytes]:
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                return response.status, response.read()
        except error.HTTPError as exc:
            # Quota and validation errors arrive as 4xx with a JSON body.
            return exc.code, exc.read()


def redact_api_key(url: str) -> str:
    """Replace the `apiKey` query value so URLs can be stored and logged."""
    parts = parse.urlsplit(url)
    if not parts.query:
        return url
    params = [
        (name, REDACTED if name == "apiKey" else value)
        for name, value in parse.parse_qsl(parts.query, keep_blank_values=True)
    ]
    return parse.urlunsplit(parts._replace(query=parse.urlencode(params)))
