"""Time-bounded completion calls with a shared provider retry budget.

Every model call in the pipeline goes through :func:`complete_within`, so a
hung provider, an empty reply and a provider error all count against the
same budget. A budget is created per request and may span several calls.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from proseforge.generation.errors import GenerationFailedError
from proseforge.observability.logging import get_logger
from proseforge.providers.base import (
    ProviderEmptyResponseError,
    ProviderError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from proseforge.providers.base import TextCompletionService

log = get_logger(__name__)

SERVICE_LABEL = "completion"


@dataclass
class ProviderBudget:
    """Provider failures allowed for one request.

    Attributes:
        retries: Failures tolerated before the request gives up.
        failures: Failures seen so far.
        errors: Messages of those failures, oldest first.
    """

    retries: int
    failures: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def exceeded(self) -> bool:
        return self.failures > self.retries

    def record(self, error: ProviderError) -> None:
        self.failures += 1
        self.errors.append(str(error))


async def complete_within(
    service: TextCompletionService,
    system_prompt: str,
    user_prompt: str,
    *,
    max_tokens: int,
    temperature: float,
    timeout: float,
    budget: ProviderBudget,
) -> str:
    """Run one completion, retrying provider failures while the budget allows.

    Args:
        service: Completion backend.
        system_prompt: System instructions.
        user_prompt: User request.
        max_tokens: Output token limit.
        temperature: Sampling temperature.
        timeout: Seconds to wait for each call.
        budget: Retry budget, updated in place.

    Returns:
        Non-empty response text.

    Raises:
        GenerationFailedError: When provider failures exceed the budget.
    """
    while True:
        start = time.perf_counter()
        try:
            text = await asyncio.wait_for(
                service.complete(system_prompt, user_prompt, max_tokens, temperature),
                timeout=timeout,
            )
        except TimeoutError:
            error: ProviderError = ProviderTimeoutError(
                SERVICE_LABEL, f"No response within {timeout:g}s"
            )
        except ProviderError as e:
            error = e
        else:
            if text and text.strip():
                log.debug(
                    "completion_received",
                    chars=len(text),
                    duration=round(time.perf_counter() - start, 2),
                )
                return text
            error = ProviderEmptyResponseError(SERVICE_LABEL, "Empty response")

        budget.record(error)
        if budget.exceeded:
            log.error("provider_failed", failures=budget.failures, error=str(error))
            raise GenerationFailedError(
                f"Completion service failed {budget.failures} times: {error}",
                attempts=budget.failures,
                last_errors=list(budget.errors),
            ) from error
        log.warning("provider_retry", failures=budget.failures, error=str(error))
