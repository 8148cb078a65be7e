"""Logging wrapper for completion services."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from proseforge.observability.logging import get_logger

if TYPE_CHECKING:
    from proseforge.observability import CompletionLogger
    from proseforge.providers.base import TextCompletionService

log = get_logger(__name__)


class LoggingCompletionService:
    """Wrap a completion service and record every call.

    Each call emits a structlog event and, when a CompletionLogger is given,
    a full JSONL entry with both prompts and the response.
    """

    def __init__(
        self,
        service: TextCompletionService,
        logger: CompletionLogger | None = None,
        label: str = "generation",
        model_name: str = "unknown",
    ) -> None:
        """Initialize the wrapper.

        Args:
            service: Underlying completion service.
            logger: Optional JSONL call logger.
            label: Label stored on each entry (e.g. "chapter", "page").
            model_name: Model name reported in entries.
        """
        self._service = service
        self._logger = logger
        self._label = label
        self._model_name = getattr(service, "model_name", model_name)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Delegate to the wrapped service and log the outcome."""
        start_time = time.perf_counter()
        try:
            content = await self._service.complete(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            duration = time.perf_counter() - start_time
            log.warning("completion_failed", label=self._label, error=str(e), duration=duration)
            self._record(system_prompt, user_prompt, "", duration, temperature, max_tokens, str(e))
            raise

        duration = time.perf_counter() - start_time
        log.info(
            "completion_done",
            label=self._label,
            duration=round(duration, 2),
            prompt_chars=len(system_prompt) + len(user_prompt),
            response_chars=len(content),
        )
        self._record(system_prompt, user_prompt, content, duration, temperature, max_tokens, None)
        return content

    def _record(
        self,
        system_prompt: str,
        user_prompt: str,
        content: str,
        duration: float,
        temperature: float,
        max_tokens: int,
        error: str | None,
    ) -> None:
        if self._logger is None:
            return
        entry = self._logger.create_entry(
            label=self._label,
            model=self._model_name,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            content=content,
            duration_seconds=duration,
            temperature=temperature,
            max_tokens=max_tokens,
            error=error,
        )
        self._logger.log(entry)
