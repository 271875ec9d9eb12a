"""Downstream hand-off: run the scoring process to completion."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class DownstreamHandoff:
    """Run a configured command synchronously and log how it ended.

    Failures are logged only; they never change the requester's exit code.
    """

    def __init__(self, command: Sequence[str] | str | None, *, timeout_s: float = 3600.0) -> None:
        if isinstance(command, str):
            command = shlex.split(command)
        self.command: list[str] = list(command or [])
        self.timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self.command)

    def __call__(self) -> None:
        self.run()

    def run(self) -> bool:
        if not self.configured:
            logger.warning("handoff event=skipped reason=no_command_configured")
            return False

        logger.info("handoff event=start command=%s", " ".join(self.command))
        try:
            completed = subprocess.run(  # noqa: S603
                self.command,
                env=dict(os.environ),
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("handoff event=failed command=%s error=%s", self.command[0], exc)
            return False

        if completed.stderr:
            logger.warning("handoff event=stderr output=%s", completed.stderr.strip()[:2000])
        if completed.returncode != 0:
            logger.error("handoff event=failed returncode=%s", completed.returncode)
            return False
        logger.info("handoff event=finished returncode=0")
        return True
