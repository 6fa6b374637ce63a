"""structlog setup for the search API.

Development gets the console renderer, every other environment JSON lines.
Setting LOG_FILE additionally tees each line into that file.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import IO, Any

import structlog

from dealwear.config import settings

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Google Custom Search takes its API key as a query parameter, and httpx
# errors quote the failing URL.
_API_KEY_RE = re.compile(r"([?&]key=)[^&\s'\"]+")


def _level_from_name(name: str) -> int:
    name = name.upper()
    return getattr(logging, name) if name in _LEVELS else logging.INFO


def _redact_api_keys(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for field, value in event_dict.items():
        if isinstance(value, str) and "key=" in value:
            event_dict[field] = _API_KEY_RE.sub(r"\1***", value)
    return event_dict


class _TeeWriter:
    """File-like sink that copies every log line to stdout and to ``file_path``.

    File trouble never stops logging: the file side is dropped with a note on
    stderr and stdout carries on alone.
    """

    def __init__(self, file_path: str) -> None:
        self._file: IO[str] | None = None
        try:
            self._file = open(file_path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            # structlog is not configured yet
            print(f"WARNING: log file {file_path!r} unavailable ({exc}); using stdout only.", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        self._on_file("write", data)

    def flush(self) -> None:
        sys.stdout.flush()
        self._on_file("flush")

    def _on_file(self, operation: str, data: str | None = None) -> None:
        if self._file is None:
            return
        try:
            if data is not None:
                self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._file = None
            print(f"WARNING: log file {operation} failed; file logging disabled.", file=sys.stderr)


def _renderer() -> structlog.types.Processor:
    if settings.environment == "development":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def configure_logging() -> None:
    if settings.log_file:
        # PrintLogger only calls write() and flush()
        sink = _TeeWriter(settings.log_file)
        logger_factory = structlog.PrintLoggerFactory(file=sink)  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _redact_api_keys,
            _renderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_from_name(settings.log_level)),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
