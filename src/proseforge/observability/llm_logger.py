"""JSONL log of text-completion calls.

Each call becomes one line in logs/llm_calls.jsonl. Prompts and responses are
stored in full so a rejected draft can be inspected after the fact.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


@dataclass
class CompletionLogEntry:
    """One recorded completion call."""

    timestamp: str
    label: str
    model: str

    # Request
    system_prompt: str
    user_prompt: str
    temperature: float
    max_tokens: int

    # Response
    content: str
    duration_seconds: float

    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CompletionLogger:
    """Append-only JSONL writer for completion calls.

    Attributes:
        log_path: Path to the JSONL log file.
        enabled: Whether entries are written at all.
    """

    def __init__(self, project_path: Path, enabled: bool = True) -> None:
        self.enabled = enabled
        self.log_path = project_path / "logs" / "llm_calls.jsonl"
        if enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: CompletionLogEntry) -> None:
        """Append an entry to the log.

        Args:
            entry: Entry to write.
        """
        if not self.enabled:
            return

        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(entry)) + "\n")

    @staticmethod
    def create_entry(
        label: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        content: str,
        duration_seconds: float,
        temperature: float = 0.8,
        max_tokens: int = 4000,
        error: str | None = None,
        **metadata: Any,
    ) -> CompletionLogEntry:
        """Build an entry stamped with the current UTC time.

        Args:
            label: What the call was for (e.g. "chapter", "page", "bible").
            model: Model identifier used.
            system_prompt: System prompt sent.
            user_prompt: User prompt sent.
            content: Returned text (empty on failure).
            duration_seconds: Wall time of the call.
            temperature: Sampling temperature.
            max_tokens: Output token cap.
            error: Error message if the call failed.
            **metadata: Extra fields stored verbatim.

        Returns:
            CompletionLogEntry ready for logging.
        """
        return CompletionLogEntry(
            timestamp=datetime.now(UTC).isoformat(),
            label=label,
            model=model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            content=content,
            duration_seconds=duration_seconds,
            error=error,
            metadata=dict(metadata),
        )

    def read_entries(self) -> list[CompletionLogEntry]:
        """Read back every entry in the log file."""
        if not self.log_path.exists():
            return []

        entries = []
        with self.log_path.open(encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    entries.append(CompletionLogEntry(**json.loads(line)))
        return entries
