"""Text-completion service protocol and provider errors."""

from __future__ import annotations

from typing import Protocol


class TextCompletionService(Protocol):
    """Opaque text-completion backend.

    Generation code depends only on this protocol. Concrete services are
    constructed by the caller and passed in explicitly.
    """

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the model's text for one system + user prompt pair.

        Args:
            system_prompt: Instructions and canon context.
            user_prompt: The concrete generation request.
            max_tokens: Output token cap.
            temperature: Sampling temperature.

        Returns:
            Raw response text.

        Raises:
            ProviderError: If the backend is unreachable, times out, or
                returns no content.
        """
        ...


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class ProviderConnectionError(ProviderError):
    """Raised when connection to the provider fails."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a completion call exceeds its time budget."""

    pass


class ProviderEmptyResponseError(ProviderError):
    """Raised when the provider answers with no text."""

    pass


class ProviderRateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    pass
