"""Template loading for the prompt compiler.

A template is a YAML mapping with ``system`` and ``user`` text plus optional
``name`` and ``description``. Placeholders are written ``{{ name }}`` or
``{{ obj.field }}``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+(?:\.\w+)*)\s*\}\}")


@dataclass(frozen=True)
class PromptTemplate:
    """A loaded prompt template."""

    name: str
    description: str
    system: str
    user: str

    @property
    def placeholders(self) -> frozenset[str]:
        """Top-level context keys the template refers to."""
        text = f"{self.system}\n{self.user}"
        return frozenset(m.group(1).split(".")[0] for m in PLACEHOLDER_PATTERN.finditer(text))


class TemplateNotFoundError(Exception):
    """Raised when a template file cannot be found."""

    def __init__(self, template_name: str, path: Path) -> None:
        self.template_name = template_name
        self.path = path
        super().__init__(f"Template not found: {template_name} at {path}")


class TemplateParseError(Exception):
    """Raised when a template file is not a usable template."""

    def __init__(self, template_name: str, reason: str) -> None:
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Failed to parse template '{template_name}': {reason}")


def _to_template(data: Any, template_name: str) -> PromptTemplate:
    if data is None:
        raise TemplateParseError(template_name, "Empty file")
    if not isinstance(data, dict):
        raise TemplateParseError(template_name, "Top level must be a mapping")
    if not str(data.get("system") or "").strip():
        raise TemplateParseError(template_name, "Missing 'system' text")

    return PromptTemplate(
        name=str(data.get("name") or template_name),
        description=str(data.get("description") or ""),
        system=str(data["system"]),
        user=str(data.get("user") or ""),
    )


class PromptLoader:
    """Load and cache YAML templates from ``<prompts_path>/templates/``."""

    def __init__(self, prompts_path: Path) -> None:
        self.templates_path = prompts_path / "templates"
        self._yaml = YAML(typ="safe")
        self._cache: dict[str, PromptTemplate] = {}

    def path_for(self, template_name: str) -> Path:
        return self.templates_path / f"{template_name}.yaml"

    def load(self, template_name: str) -> PromptTemplate:
        """Load a template by name.

        Raises:
            TemplateNotFoundError: If the template file doesn't exist.
            TemplateParseError: If the file is not valid YAML or not a template.
        """
        cached = self._cache.get(template_name)
        if cached is not None:
            return cached

        path = self.path_for(template_name)
        if not path.is_file():
            raise TemplateNotFoundError(template_name, path)

        try:
            data = self._yaml.load(path.read_text(encoding="utf-8"))
        except YAMLError as e:
            raise TemplateParseError(template_name, str(e)) from e

        template = _to_template(data, template_name)
        self._cache[template_name] = template
        return template

    def exists(self, template_name: str) -> bool:
        return self.path_for(template_name).is_file()

    def list_templates(self) -> list[str]:
        """Names of the available templates, sorted."""
        if not self.templates_path.is_dir():
            return []
        return sorted(p.stem for p in self.templates_path.glob("*.yaml") if p.is_file())
