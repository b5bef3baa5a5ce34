"""structlog setup shared by the API and any scripts.

Development renders colored console lines; every other environment emits
JSON lines. LOG_FILE mirrors output to a file, which doubles as the durable
record of booking leads (``booking_lead_received`` events).
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

from spaceplan.config import settings


class _FileMirror:
    """stdout writer that also appends to a log file.

    File problems never stop logging: the mirror is dropped with a stderr
    warning and stdout output continues.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._file: IO[str] | None = None
        try:
            self._file = open(path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            self._drop(f"could not open {path!r}: {exc}")

    def _drop(self, reason: str) -> None:
        # structlog is not usable from inside its own writer
        print(f"WARNING: log file disabled ({reason})", file=sys.stderr)
        self._file = None

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError) as exc:
            self._drop(f"write to {self._path!r} failed: {exc}")

    def flush(self) -> None:
        sys.stdout.flush()


def _level() -> int:
    level = logging.getLevelName(settings.log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    development = settings.environment == "development"
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if development:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    if settings.log_file:
        # PrintLoggerFactory only needs write() and flush()
        factory = structlog.PrintLoggerFactory(file=_FileMirror(settings.log_file))  # type: ignore[arg-type]
    else:
        factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level()),
        context_class=dict,
        logger_factory=factory,
        cache_logger_on_first_use=True,
    )
