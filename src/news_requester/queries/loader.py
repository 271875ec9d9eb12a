"""Load query definitions from the automation spreadsheet.

The first row holds headers; recognized columns are `id`, `andString`,
`orString`, `notString`, `startDate`, `includeDomains` and `excludeDomains`.
Both `.xlsx` workbooks (first worksheet) and `.csv` exports are accepted.
"""

from __future__ import annotations

import csv
import logging
import zipfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from news_requester.queries.query_string import split_terms
from news_requester.storage.models import QuerySpec

logger = logging.getLogger(__name__)

# Excel serial day 0; serial 25569 is 1970-01-01.
_EXCEL_EPOCH = date(1899, 12, 30)


def load_query_specs(path: str | Path) -> list[QuerySpec]:
    """Read all query rows; any read failure yields an empty list."""
    source = Path(path).expanduser()
    try:
        rows = _read_rows(source)
    except (
        OSError,
        ValueError,
        KeyError,
        csv.Error,
        zipfile.BadZipFile,
        InvalidFileException,
    ) as exc:
        logger.error("query_loader event=read_failed path=%s error=%s", source, exc)
        return []

    specs = [_row_to_spec(row, line=index + 2) for index, row in enumerate(rows)]
    specs = [spec for spec in specs if spec is not None]
    logger.info("query_loader event=loaded path=%s specs=%s", source, len(specs))
    return specs


def _read_rows(source: Path) -> list[dict[str, Any]]:
    suffix = source.suffix.lower()
    if suffix == ".csv":
        with source.open("r", encoding="utf-8-sig", newline="") as f:
            return [dict(row) for row in csv.DictReader(f)]
    if suffix in (".xlsx", ".xlsm"):
        return _read_workbook_rows(source)
    raise ValueError(f"Unsupported query spreadsheet type: {source.suffix or '<none>'}")


def _read_workbook_rows(source: Path) -> list[dict[str, Any]]:
    workbook = load_workbook(source, read_only=True, data_only=True)
    try:
        worksheet = workbook.worksheets[0]
        row_iter = worksheet.iter_rows(values_only=True)
        header_row = next(row_iter, None)
        if header_row is None:
            return []
        headers = [str(value).strip() if value is not None else "" for value in header_row]
        rows: list[dict[str, Any]] = []
        for values in row_iter:
            if values is None or all(value is None for value in values):
                continue
            rows.append(
                {header: value for header, value in zip(headers, values, strict=False) if header}
            )
        return rows
    finally:
        workbook.close()


def _row_to_spec(row: dict[str, Any], *, line: int) -> QuerySpec | None:
    and_terms = split_terms(_text(row.get("andString")))
    or_terms = split_terms(_text(row.get("orString")))
    not_terms = split_terms(_text(row.get("notString")))
    if not (and_terms or or_terms or not_terms):
        logger.debug("query_loader event=skip_empty_row line=%s", line)
        return None

    row_id = row.get("id")
    return QuerySpec(
        row_id=str(row_id).strip() if row_id not in (None, "") else None,
        and_terms=and_terms,
        or_terms=or_terms,
        not_terms=not_terms,
        include_domains=_domains(row.get("includeDomains")),
        exclude_domains=_domains(row.get("excludeDomains")),
        start_date=_parse_start_date(row.get("startDate"), line=line),
    )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _domains(value: Any) -> list[str]:
    return [domain.strip() for domain in _text(value).split(",") if domain.strip()]


def _parse_start_date(value: Any, *, line: int) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _EXCEL_EPOCH + timedelta(days=int(value))
    text = str(value).strip()
    if text.isdigit():
        return _EXCEL_EPOCH + timedelta(days=int(text))
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.warning("query_loader event=bad_start_date line=%s value=%r", line, text)
        return None
