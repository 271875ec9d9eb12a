"""Query definition loading and rendering."""

from news_requester.queries.loader import load_query_specs
from news_requester.queries.query_string import build_query, split_terms

__all__ = [
    "build_query",
    "load_query_specs",
    "split_terms",
]
