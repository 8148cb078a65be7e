"""TextCompletionService backed by a LangChain chat model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from langchain_core.messages import HumanMessage, SystemMessage

from proseforge.observability.logging import get_logger
from proseforge.providers.base import (
    ProviderConnectionError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from proseforge.providers.content import extract_text
from proseforge.providers.settings import get_provider_capabilities, sampling_kwargs

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "too many requests")


class ChatModelCompletionService:
    """Adapt a ``BaseChatModel`` to the two-prompt completion contract.

    Attributes:
        provider: Provider name used in error messages and logs.
        model_name: Model identifier reported to loggers.
    """

    def __init__(self, chat_model: BaseChatModel, provider: str, model_name: str) -> None:
        self._chat_model = chat_model
        self.provider = provider
        self.model_name = model_name

    def _runnable(self, temperature: float, max_tokens: int) -> Any:
        if not get_provider_capabilities(self.provider).supports_runtime_binding:
            # Ollama ignores bind() kwargs; options were fixed at construction.
            return self._chat_model
        return self._chat_model.bind(**sampling_kwargs(self.provider, temperature, max_tokens))

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Send one system + user exchange and return the reply text.

        Args:
            system_prompt: System message content.
            user_prompt: Human message content.
            max_tokens: Output token cap.
            temperature: Sampling temperature.

        Returns:
            Stripped response text.

        Raises:
            ProviderTimeoutError: If the HTTP layer timed out.
            ProviderRateLimitError: If the provider throttled the request.
            ProviderConnectionError: For any other transport or API failure.
            ProviderEmptyResponseError: If the model produced no text.
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        try:
            response = await self._runnable(temperature, max_tokens).ainvoke(messages)
        except ProviderError:
            raise
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.provider, f"Request timed out: {e}") from e
        except Exception as e:
            message = str(e)
            if any(marker in message.lower() for marker in _RATE_LIMIT_MARKERS):
                raise ProviderRateLimitError(self.provider, message) from e
            raise ProviderConnectionError(self.provider, message) from e

        text = extract_text(response.content).strip()
        if not text:
            log.warning("completion_empty", provider=self.provider, model=self.model_name)
            raise ProviderEmptyResponseError(self.provider, "Model returned empty content")

        log.debug(
            "completion_received",
            provider=self.provider,
            model=self.model_name,
            chars=len(text),
        )
        return text
