"""Post-generation canon compliance review.

A non-blocking diagnostic: the verdict is logged and returned, and an
unreadable verdict never fails the chapter it was checking.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from proseforge.config import GenerationConfig
from proseforge.context.layers import format_global_layer
from proseforge.generation.completion import ProviderBudget, complete_within
from proseforge.generation.json_repair import Fatal, parse_with_repair
from proseforge.models.generation import CanonComplianceVerdict
from proseforge.observability.logging import get_logger
from proseforge.prompts import get_default_compiler

if TYPE_CHECKING:
    from proseforge.models.canon import StoryCanon
    from proseforge.providers.base import TextCompletionService

log = get_logger(__name__)

CANON_CHECK_MAX_TOKENS = 1000
CANON_CHECK_TEMPERATURE = 0.3


async def check_canon_compliance(
    service: TextCompletionService,
    content: str,
    canon: StoryCanon,
    config: GenerationConfig | None = None,
) -> CanonComplianceVerdict:
    """Ask the completion service whether ``content`` contradicts the canon.

    Args:
        service: Completion backend.
        content: Accepted chapter or page text.
        canon: Canon the text must respect.
        config: Supplies the call timeout and the provider retry budget.

    Returns:
        The parsed verdict. An unparseable verdict counts as passed with a
        warning explaining why.

    Raises:
        GenerationFailedError: If the provider failed beyond its retry budget.
    """
    prompt = get_default_compiler().compile(
        "canon_check",
        {"global_layer": format_global_layer(canon), "content": content},
        strict=True,
    )
    config = config or GenerationConfig()
    raw = await complete_within(
        service,
        prompt.system,
        prompt.user,
        max_tokens=CANON_CHECK_MAX_TOKENS,
        temperature=CANON_CHECK_TEMPERATURE,
        timeout=config.timeout_seconds,
        budget=ProviderBudget(retries=config.provider_retries),
    )

    parsed = parse_with_repair(raw)
    if isinstance(parsed, Fatal):
        log.warning("canon_check_unparseable", reason=parsed.reason)
        return CanonComplianceVerdict(
            passed=True, warnings=[f"Canon check response unreadable: {parsed.reason}"]
        )

    try:
        verdict = CanonComplianceVerdict.model_validate(parsed.value)
    except ValidationError as e:
        log.warning("canon_check_invalid", error=str(e))
        return CanonComplianceVerdict(
            passed=True, warnings=["Canon check response did not match the expected shape"]
        )

    if verdict.violations:
        log.warning("canon_violations", violations=verdict.violations)
    return verdict
