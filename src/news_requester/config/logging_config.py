"""Root logger setup per deployment environment.

- development: console only, DEBUG and above.
- testing: console plus rotating log file, INFO and above.
- production: rotating log file only, INFO and above.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from news_requester.config.settings import Settings

FILE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(process_label)s] [%(name)s] %(message)s"
CONSOLE_FORMAT = "%(asctime)s %(levelname)s [%(process_label)s] %(message)s"


class _ProcessLabelFilter(logging.Filter):
    """Stamp every record with the application name."""

    def __init__(self, label: str) -> None:
        super().__init__()
        self.label = label

    def filter(self, record: logging.LogRecord) -> bool:
        record.process_label = self.label
        return True


def setup_logging(settings: Settings) -> None:
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    level = logging.DEBUG if settings.app_env == "development" else logging.INFO
    root_logger.setLevel(level)
    label_filter = _ProcessLabelFilter(settings.app_name)

    handlers: list[logging.Handler] = []
    if settings.app_env in ("development", "testing"):
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        handlers.append(console)
    if settings.app_env in ("testing", "production"):
        handlers.append(_file_handler(settings))

    for handler in handlers:
        handler.addFilter(label_filter)
        root_logger.addHandler(handler)

    # Keep third-party request chatter out of the run log.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "logging event=configured app=%s env=%s level=%s",
        settings.app_name,
        settings.app_env,
        logging.getLevelName(level),
    )


def _file_handler(settings: Settings) -> RotatingFileHandler:
    log_dir = Path(settings.log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / f"{settings.app_name}.log",
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler
