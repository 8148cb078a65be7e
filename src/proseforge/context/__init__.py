"""Layered prompt assembly (global, volume, act, local)."""

from proseforge.context.assembler import (
    DEFAULT_CONTINUITY_WINDOW,
    DEFAULT_MAX_PAGE_WORDS,
    DEFAULT_MIN_PAGE_WORDS,
    ContextAssembler,
)
from proseforge.context.requests import ChapterRequest, PageRequest

__all__ = [
    "DEFAULT_CONTINUITY_WINDOW",
    "DEFAULT_MAX_PAGE_WORDS",
    "DEFAULT_MIN_PAGE_WORDS",
    "ChapterRequest",
    "ContextAssembler",
    "PageRequest",
]
