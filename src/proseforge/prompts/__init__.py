"""Prompt templates and compilation."""

from proseforge.prompts.compiler import (
    BUNDLED_PROMPTS_PATH,
    CompiledPrompt,
    PromptCompileError,
    PromptCompiler,
    get_default_compiler,
)
from proseforge.prompts.loader import (
    PromptLoader,
    PromptTemplate,
    TemplateNotFoundError,
    TemplateParseError,
)

__all__ = [
    "BUNDLED_PROMPTS_PATH",
    "CompiledPrompt",
    "PromptCompileError",
    "PromptCompiler",
    "PromptLoader",
    "PromptTemplate",
    "TemplateNotFoundError",
    "TemplateParseError",
    "get_default_compiler",
]
