"""Project configuration loading."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from proseforge.prose.patterns import DEFAULT_RUBRIC, ProseRubric

CONFIG_FILENAME = "proseforge.yaml"

# Default configuration values
DEFAULT_PROVIDER = "ollama"
DEFAULT_MODEL = "qwen3:8b"

# Hard ceilings; larger values are rejected rather than honored
MAX_GENERATION_ATTEMPTS = 3
MAX_CONTINUITY_WINDOW = 17


@dataclass
class ProviderConfig:
    """Configuration for the text-completion provider."""

    name: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL

    @property
    def provider_string(self) -> str:
        """Effective ``provider/model`` string.

        The PROSEFORGE_PROVIDER environment variable overrides the file.
        """
        return os.getenv("PROSEFORGE_PROVIDER") or f"{self.name}/{self.model}"

    @classmethod
    def from_string(cls, provider_string: str) -> ProviderConfig:
        """Parse ``"provider/model"``; a bare provider gets its default model."""
        if "/" in provider_string:
            name, model = provider_string.split("/", 1)
            return cls(name=name, model=model)

        # Use provider-specific default model, not hardcoded DEFAULT_MODEL
        from proseforge.providers.factory import get_default_model

        return cls(name=provider_string, model=get_default_model(provider_string) or DEFAULT_MODEL)


@dataclass
class GenerationConfig:
    """Completion-call and retry settings for the orchestrator.

    Attributes:
        max_attempts: Chapter generation attempts before returning the best
            one, from 1 to MAX_GENERATION_ATTEMPTS.
        provider_retries: Provider failures tolerated per request before failing.
        timeout_seconds: Time budget for a single completion call.
        min_page_words: Lower bound of the page word band.
        max_page_words: Upper bound of the page word band.
        continuity_window: Prior pages included verbatim in page prompts,
            from 0 to MAX_CONTINUITY_WINDOW.
    """

    max_attempts: int = MAX_GENERATION_ATTEMPTS
    provider_retries: int = 1
    timeout_seconds: float = 60.0
    chapter_temperature: float = 0.8
    page_temperature: float = 0.8
    bible_temperature: float = 0.7
    chapter_max_tokens: int = 8000
    page_max_tokens: int = 4000
    bible_max_tokens: int = 8000
    outline_temperature: float = 0.7
    outline_max_tokens: int = 8000
    min_page_words: int = 600
    max_page_words: int = 1200
    continuity_window: int = MAX_CONTINUITY_WINDOW

    def __post_init__(self) -> None:
        if not 1 <= self.max_attempts <= MAX_GENERATION_ATTEMPTS:
            raise ValueError(f"max_attempts must be between 1 and {MAX_GENERATION_ATTEMPTS}")
        if not 0 <= self.continuity_window <= MAX_CONTINUITY_WINDOW:
            raise ValueError(f"continuity_window must be between 0 and {MAX_CONTINUITY_WINDOW}")
        if self.min_page_words > self.max_page_words:
            raise ValueError("min_page_words must not exceed max_page_words")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerationConfig:
        """Create config from dictionary, ignoring unknown keys.

        PROSEFORGE_TIMEOUT overrides ``timeout_seconds``.
        """
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        timeout = os.getenv("PROSEFORGE_TIMEOUT")
        if timeout:
            known["timeout_seconds"] = float(timeout)
        return cls(**known)


@dataclass
class ValidationConfig:
    """Prose-validator verdict thresholds."""

    pass_score: int = DEFAULT_RUBRIC.pass_score
    max_issues: int = DEFAULT_RUBRIC.max_issues

    def to_rubric(self) -> ProseRubric:
        return replace(DEFAULT_RUBRIC, pass_score=self.pass_score, max_issues=self.max_issues)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationConfig:
        return cls(
            pass_score=int(data.get("pass_score", DEFAULT_RUBRIC.pass_score)),
            max_issues=int(data.get("max_issues", DEFAULT_RUBRIC.max_issues)),
        )


@dataclass
class ProjectConfig:
    """Configuration for a proseforge project."""

    name: str
    version: int = 1
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields.

        Returns:
            ProjectConfig instance.
        """
        provider_string = data.get("provider", f"{DEFAULT_PROVIDER}/{DEFAULT_MODEL}")
        return cls(
            name=data.get("name", "unnamed"),
            version=data.get("version", 1),
            provider=ProviderConfig.from_string(str(provider_string)),
            generation=GenerationConfig.from_dict(dict(data.get("generation") or {})),
            validation=ValidationConfig.from_dict(dict(data.get("validation") or {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serializable form, as written to ``proseforge.yaml``."""
        return {
            "name": self.name,
            "version": self.version,
            "provider": f"{self.provider.name}/{self.provider.model}",
            "generation": asdict(self.generation),
            "validation": asdict(self.validation),
        }


class ProjectConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project config at {path}: {reason}")


def load_project_config(project_path: Path) -> ProjectConfig:
    """Load project configuration from proseforge.yaml.

    Args:
        project_path: Path to the project root directory.

    Returns:
        ProjectConfig instance.

    Raises:
        ProjectConfigError: If config cannot be loaded.
    """
    config_path = project_path / CONFIG_FILENAME

    if not config_path.exists():
        raise ProjectConfigError(config_path, "File not found")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ProjectConfigError(config_path, "Empty file")

        return ProjectConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ProjectConfigError):
            raise
        raise ProjectConfigError(config_path, str(e)) from e


def create_default_config(
    name: str,
    provider: str | None = None,
) -> ProjectConfig:
    """Create a default project configuration.

    Args:
        name: Project name.
        provider: Optional provider string (e.g., "ollama/qwen3:8b").
            If not provided, uses the system default.

    Returns:
        ProjectConfig with default values.
    """
    provider_string = provider or f"{DEFAULT_PROVIDER}/{DEFAULT_MODEL}"
    return ProjectConfig(name=name, provider=ProviderConfig.from_string(provider_string))


def write_project_config(project_path: Path, config: ProjectConfig) -> Path:
    """Write ``config`` to ``<project_path>/proseforge.yaml``.

    Returns:
        Path of the written file.
    """
    config_file = project_path / CONFIG_FILENAME
    yaml_writer = YAML()
    yaml_writer.default_flow_style = False
    with config_file.open("w", encoding="utf-8") as f:
        yaml_writer.dump(config.to_dict(), f)
    return config_file
