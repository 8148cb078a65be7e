"""Prompt compiler: ``{{ variable }}`` substitution over YAML templates."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from proseforge.prompts.loader import (
    PLACEHOLDER_PATTERN,
    PromptLoader,
    TemplateNotFoundError,
    TemplateParseError,
)

BUNDLED_PROMPTS_PATH = Path(__file__).parent

# Empty optional blocks leave blank runs behind
_BLANK_RUNS = re.compile(r"\n{3,}")

_MISSING = object()


@dataclass
class CompiledPrompt:
    """A compiled system + user prompt pair, ready for a completion call."""

    system: str
    user: str
    template_name: str


class PromptCompileError(Exception):
    """Raised when prompt compilation fails."""

    def __init__(self, template_name: str, message: str) -> None:
        self.template_name = template_name
        super().__init__(f"Failed to compile template '{template_name}': {message}")


def _lookup(path: str, context: dict[str, Any]) -> Any:
    value: Any = context
    for part in path.split("."):
        if isinstance(value, dict):
            value = value.get(part, _MISSING)
        else:
            value = getattr(value, part, _MISSING)
        if value is _MISSING:
            return _MISSING
    return value


def _render(value: Any) -> str:
    if isinstance(value, (list, dict)):
        return json.dumps(value, indent=2)
    return str(value)


def render_text(text: str, context: dict[str, Any]) -> str:
    """Substitute placeholders in ``text``; unresolved ones are left as written."""

    def replace(match: re.Match[str]) -> str:
        value = _lookup(match.group(1), context)
        return match.group(0) if value is _MISSING else _render(value)

    return _BLANK_RUNS.sub("\n\n", PLACEHOLDER_PATTERN.sub(replace, text)).strip()


class PromptCompiler:
    """Compile prompts from templates with variable substitution.

    Attributes:
        prompts_path: Directory holding the ``templates/`` folder.
    """

    def __init__(self, prompts_path: Path = BUNDLED_PROMPTS_PATH) -> None:
        self.prompts_path = prompts_path
        self._loader = PromptLoader(prompts_path)

    def compile(
        self,
        template_name: str,
        context: dict[str, Any] | None = None,
        *,
        strict: bool = False,
    ) -> CompiledPrompt:
        """Compile a prompt from a template.

        Args:
            template_name: Name of the template (e.g. 'chapter').
            context: Values for placeholder substitution.
            strict: Fail when the context lacks a key the template uses.
                Generation code compiles strictly so a renamed layer can
                never leak a raw ``{{ placeholder }}`` into a prompt.

        Returns:
            CompiledPrompt ready for a completion call.

        Raises:
            PromptCompileError: If the template cannot be loaded, or a key
                is missing in strict mode.
        """
        context = context or {}

        try:
            template = self._loader.load(template_name)
        except (TemplateNotFoundError, TemplateParseError) as e:
            raise PromptCompileError(template_name, str(e)) from e

        if strict:
            missing = sorted(template.placeholders - context.keys())
            if missing:
                raise PromptCompileError(template_name, f"Missing variables: {', '.join(missing)}")

        return CompiledPrompt(
            system=render_text(template.system, context),
            user=render_text(template.user, context),
            template_name=template_name,
        )

    def list_templates(self) -> list[str]:
        return self._loader.list_templates()


@lru_cache(maxsize=1)
def get_default_compiler() -> PromptCompiler:
    """Return a shared compiler over the bundled templates."""
    return PromptCompiler()
