"""Boolean keyword query rendering for the provider `q` parameter."""

from __future__ import annotations

import re

_TERM_PATTERN = re.compile(r'"[^"]+"|\S+')


def split_terms(raw: str | None) -> list[str]:
    """Split on whitespace while keeping double-quoted phrases as one term."""
    if not raw:
        return []
    return [match.strip() for match in _TERM_PATTERN.findall(str(raw))]


def build_query(and_terms: list[str], or_terms: list[str], not_terms: list[str]) -> str:
    """Render `a AND b AND (c OR d) AND NOT e`; empty groups are left out."""
    and_part = " AND ".join(and_terms)
    or_part = f"({' OR '.join(or_terms)})" if or_terms else ""
    not_part = " AND ".join(f"NOT {term}" for term in not_terms)
    return " AND ".join(part for part in (and_part, or_part, not_part) if part)
