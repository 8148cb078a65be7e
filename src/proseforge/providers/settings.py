"""Provider-aware sampling parameters.

Temperature ceilings and the name of the output-length parameter differ per
provider. Callers ask for a temperature and a token cap; these helpers turn
that into kwargs the provider accepts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from proseforge.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ProviderCapabilities:
    """Sampling parameters a provider understands."""

    max_temperature: float = 2.0
    max_tokens_param: str = "max_tokens"
    supports_runtime_binding: bool = True


PROVIDER_CAPABILITIES: dict[str, ProviderCapabilities] = {
    "ollama": ProviderCapabilities(
        max_tokens_param="num_predict",
        supports_runtime_binding=False,
    ),
    "openai": ProviderCapabilities(),
    "anthropic": ProviderCapabilities(max_temperature=1.0),
    "google": ProviderCapabilities(max_tokens_param="max_output_tokens"),
}


def get_provider_capabilities(provider: str) -> ProviderCapabilities:
    """Look up capabilities, defaulting to OpenAI-style parameters."""
    return PROVIDER_CAPABILITIES.get(provider.lower(), ProviderCapabilities())


def sampling_kwargs(provider: str, temperature: float, max_tokens: int) -> dict[str, Any]:
    """Build per-call sampling kwargs for a provider.

    The temperature is clamped to the provider's ceiling.

    Args:
        provider: Provider name (ollama, openai, anthropic, google).
        temperature: Requested sampling temperature.
        max_tokens: Requested output token cap.

    Returns:
        Kwargs suitable for ``BaseChatModel.bind``.
    """
    caps = get_provider_capabilities(provider)
    clamped = min(max(temperature, 0.0), caps.max_temperature)
    if clamped != temperature:
        log.warning(
            "temperature_clamped",
            provider=provider,
            requested=temperature,
            applied=clamped,
        )
    return {"temperature": clamped, caps.max_tokens_param: max_tokens}
