"""Text-completion services and LangChain provider integrations."""

from proseforge.providers.base import (
    ProviderConnectionError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    TextCompletionService,
)
from proseforge.providers.chat_service import ChatModelCompletionService
from proseforge.providers.factory import (
    create_chat_model,
    create_completion_service,
    get_default_model,
    parse_provider_string,
)
from proseforge.providers.logging_wrapper import LoggingCompletionService

__all__ = [
    "ChatModelCompletionService",
    "LoggingCompletionService",
    "ProviderConnectionError",
    "ProviderEmptyResponseError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "TextCompletionService",
    "create_chat_model",
    "create_completion_service",
    "get_default_model",
    "parse_provider_string",
]
