"""Factory for chat models and completion services.

Uses LangChain's init_chat_model for unified provider instantiation.
Credential and host resolution happen before the unified call.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import httpx

from proseforge.observability.logging import get_logger
from proseforge.providers.base import ProviderError
from proseforge.providers.chat_service import ChatModelCompletionService

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

# None means the model must be named explicitly
PROVIDER_DEFAULTS: dict[str, str | None] = {
    "ollama": None,
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.5-flash",
}

_KNOWN_PROVIDERS = frozenset(PROVIDER_DEFAULTS)

_API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

_PACKAGES: dict[str, str] = {
    "ollama": "langchain-ollama",
    "openai": "langchain-openai",
    "anthropic": "langchain-anthropic",
    "google": "langchain-google-genai",
}


def get_default_model(provider_name: str) -> str | None:
    """Return the default model for a provider, or None if it must be explicit."""
    return PROVIDER_DEFAULTS.get(_normalize_provider(provider_name))


def parse_provider_string(provider_string: str) -> tuple[str, str]:
    """Split ``"provider/model"`` into its parts.

    A bare provider name resolves to that provider's default model.

    Args:
        provider_string: e.g. "openai/gpt-4o" or "anthropic".

    Returns:
        Tuple of (normalized provider, model).

    Raises:
        ProviderError: If no model is given and the provider has no default.
    """
    if "/" in provider_string:
        provider, model = provider_string.split("/", 1)
        return _normalize_provider(provider), model

    provider = _normalize_provider(provider_string)
    model = get_default_model(provider)
    if model is None:
        raise ProviderError(provider, f"No default model for provider: {provider}")
    return provider, model


def create_chat_model(
    provider_name: str,
    model: str,
    **kwargs: Any,
) -> BaseChatModel:
    """Create a LangChain chat model.

    Args:
        provider_name: Provider identifier (ollama, openai, anthropic, google).
        model: Model name/identifier.
        **kwargs: Additional provider-specific options.

    Returns:
        Configured BaseChatModel.

    Raises:
        ProviderError: If the provider is unknown, misconfigured, or its
            integration package is not installed.
    """
    provider = _normalize_provider(provider_name)

    if provider not in _KNOWN_PROVIDERS:
        log.error("provider_unknown", provider=provider)
        raise ProviderError(provider, f"Unknown provider: {provider}")

    kwargs = _resolve_credentials(provider, model, kwargs)

    try:
        chat_model = _init_chat_model(_map_provider_for_init(provider), model, **kwargs)
    except ImportError as e:
        package = _PACKAGES[provider]
        log.error("provider_import_error", provider=provider, package=package)
        raise ProviderError(provider, f"{package} not installed. Run: pip install {package}") from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def create_completion_service(provider_string: str, **kwargs: Any) -> ChatModelCompletionService:
    """Build a completion service from a ``"provider/model"`` string.

    Args:
        provider_string: Provider and model, e.g. "openai/gpt-4o".
        **kwargs: Passed to :func:`create_chat_model`.

    Returns:
        Service ready to hand to the generation orchestrator.
    """
    provider, model = parse_provider_string(provider_string)
    chat_model = create_chat_model(provider, model, **kwargs)
    return ChatModelCompletionService(chat_model, provider=provider, model_name=model)


def _init_chat_model(provider: str, model: str, **kwargs: Any) -> BaseChatModel:
    from langchain.chat_models import init_chat_model

    result: BaseChatModel = init_chat_model(model=model, model_provider=provider, **kwargs)
    return result


def _resolve_credentials(provider: str, model: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Fill in host / API key from kwargs or environment.

    Raises:
        ProviderError: If a required setting is missing.
    """
    kwargs = dict(kwargs)

    if provider == "ollama":
        host = kwargs.pop("host", None) or os.getenv("OLLAMA_HOST")
        if not host:
            log.error("provider_config_error", provider="ollama", missing="OLLAMA_HOST")
            raise ProviderError(
                "ollama",
                "OLLAMA_HOST not configured. Set OLLAMA_HOST environment variable.",
            )
        kwargs["base_url"] = host
        if "num_ctx" not in kwargs:
            kwargs["num_ctx"] = _query_ollama_num_ctx(host, model) or 32_768
        return kwargs

    env_var = _API_KEY_ENV[provider]
    api_key = kwargs.pop(f"{provider}_api_key", None) or kwargs.get("api_key") or os.getenv(env_var)
    if not api_key:
        log.error("provider_config_error", provider=provider, missing=env_var)
        raise ProviderError(provider, f"API key required. Set {env_var} environment variable.")
    kwargs["api_key"] = api_key
    return kwargs


def _map_provider_for_init(provider: str) -> str:
    # init_chat_model expects 'google_genai' not 'google'
    if provider == "google":
        return "google_genai"
    return provider


def _normalize_provider(provider_name: str) -> str:
    name = provider_name.lower()
    if name == "gemini":
        return "google"
    return name


def _query_ollama_num_ctx(host: str, model: str) -> int | None:
    """Ask Ollama's /api/show for the model's configured context size.

    Args:
        host: Ollama server base URL.
        model: Model name.

    Returns:
        The configured num_ctx, or None if it cannot be determined.
    """
    try:
        with httpx.Client(timeout=10.0) as client:
            resp = client.post(f"{host}/api/show", json={"model": model})
            resp.raise_for_status()
            data = resp.json()
    except httpx.HTTPError as exc:
        log.warning("ollama_show_failed", model=model, error=str(exc))
        return None

    # "parameters" holds newline-separated "key  value" pairs
    for line in data.get("parameters", "").splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "num_ctx" and parts[-1].isdigit():
            num_ctx = int(parts[-1])
            log.info("ollama_num_ctx_from_model", model=model, num_ctx=num_ctx)
            return num_ctx

    for key, value in data.get("model_info", {}).items():
        if key.endswith(".context_length") and isinstance(value, int):
            log.info("ollama_num_ctx_from_arch", model=model, num_ctx=value)
            return value

    return None
