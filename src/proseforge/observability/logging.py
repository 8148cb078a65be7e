"""Structured logging configuration for proseforge.

Events go to up to two sinks:
- Console: rich-rendered, level chosen by the -v count
- File: every event as one JSON object per line in {project}/logs/debug.jsonl

Generation code wraps each chapter or page run in ``generation_scope`` so
that every event emitted inside it (orchestrator, provider wrapper, canon
check) carries the same volume/chapter/page keys.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator

    from structlog.typing import Processor

DEBUG_LOG_NAME = "debug.jsonl"

# -v count -> console level; anything above the table is DEBUG
CONSOLE_LEVELS = {0: logging.WARNING, 1: logging.INFO}

# Dependencies whose DEBUG output buries generation events
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "langchain",
    "langchain_core",
    "asyncio",
)

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


def _record_to_entry(record: logging.LogRecord) -> dict[str, Any]:
    """Flatten a stdlib record into a JSONL entry.

    structlog hands its event dict over as ``record.msg``; plain stdlib
    records from dependencies only have a formatted message.
    """
    entry: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record.levelname,
        "logger": record.name,
    }
    if not isinstance(record.msg, dict):
        entry["message"] = record.getMessage()
        return entry

    fields = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
    entry["message"] = fields.pop("event", "")
    entry.update(fields)
    return entry


class JSONLFileHandler(logging.FileHandler):
    """File handler that writes one JSON object per record."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(_record_to_entry(record), default=str)
            if self.stream:
                self.stream.write(line + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


def _console_handler(verbosity: int) -> RichHandler:
    return RichHandler(
        console=Console(stderr=True),
        level=CONSOLE_LEVELS.get(verbosity, logging.DEBUG),
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
    )


def _open_file_handler(project_path: Path) -> JSONLFileHandler:
    global _file_handler, _logs_dir

    _logs_dir = project_path / "logs"
    _logs_dir.mkdir(parents=True, exist_ok=True)
    _file_handler = JSONLFileHandler(str(_logs_dir / DEBUG_LOG_NAME), mode="a")
    _file_handler.setLevel(logging.DEBUG)
    return _file_handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    project_path: Path | None = None,
) -> None:
    """Configure the console sink and, optionally, the JSONL file sink.

    Calling it again replaces the previous configuration and closes any
    open log file.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_to_file: Also write every event to {project_path}/logs/debug.jsonl.
        project_path: Project directory. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but project_path is not provided.
    """
    global _configured

    if log_to_file and project_path is None:
        raise ValueError("project_path is required when log_to_file=True")

    close_file_logging()

    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and project_path is not None:
        handlers.append(_open_file_handler(project_path))

    # The file sink wants everything even when the console is quiet
    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring defaults on first use.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def generation_scope(unit: str, **keys: int) -> Iterator[None]:
    """Bind ``unit`` plus position keys to every event logged inside the block.

    Example::

        with generation_scope("page", volume=1, chapter=3, page=2):
            ...
    """
    with structlog.contextvars.bound_contextvars(unit=unit, **keys):
        yield


def get_logs_dir() -> Path | None:
    """Return the logs directory when file logging is enabled, else None."""
    return _logs_dir


def close_file_logging() -> None:
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
