"""Write raw provider responses to dated directories for auditing."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class ResponseArchive:
    """Store each response under `<root>/<YYYYMMDD>/`.

    Successful responses are named `requestId<id>_apiId<source>.json`; failed
    ones carry a `failed_` prefix.
    """

    root: Path
    clock: Callable[[], datetime] = lambda: datetime.now(UTC)

    def write(
        self,
        *,
        source_id: int,
        request_label: str,
        payload: dict[str, Any],
        request_url: str | None,
        failed: bool,
    ) -> Path | None:
        dated_dir = self.root.expanduser() / self.clock().strftime("%Y%m%d")
        prefix = "failed_" if failed else ""
        path = dated_dir / f"{prefix}requestId{request_label}_apiId{source_id}.json"
        document = dict(payload)
        if request_url:
            document["requestUrl"] = request_url
        try:
            dated_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(document, indent=2, default=str), encoding="utf-8")
        except OSError as exc:
            logger.warning("response_archive event=write_failed path=%s error=%s", path, exc)
            return None
        return path
