"""Observability module for proseforge.

Provides structured logging and completion-call tracking.
"""

from proseforge.observability.llm_logger import CompletionLogEntry, CompletionLogger
from proseforge.observability.logging import (
    close_file_logging,
    configure_logging,
    generation_scope,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "CompletionLogEntry",
    "CompletionLogger",
    "close_file_logging",
    "configure_logging",
    "generation_scope",
    "get_logger",
    "get_logs_dir",
]
