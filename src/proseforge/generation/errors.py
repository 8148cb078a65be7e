"""Exceptions raised by the generation pipeline.

Prose-quality failures are not exceptions: they are a
:class:`~proseforge.prose.validator.ProseValidation` with
``should_regenerate`` set, and they drive a corrective retry.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for generation failures surfaced to the caller."""

    pass


class MalformedOutputError(GenerationError):
    """Response could not be parsed as the expected JSON even after repair."""

    def __init__(self, reason: str, raw: str = "") -> None:
        self.reason = reason
        self.raw = raw
        super().__init__(f"Malformed generation output: {reason}")


class WordCountViolation(GenerationError):
    """Generated page falls outside the allowed word band.

    Raised immediately and never retried.
    """

    def __init__(self, word_count: int, minimum: int, maximum: int) -> None:
        self.word_count = word_count
        self.minimum = minimum
        self.maximum = maximum
        if word_count < minimum:
            detail = f"Page too short: {word_count} words (minimum {minimum})"
        else:
            detail = f"Page too long: {word_count} words (maximum {maximum})"
        super().__init__(detail)


class GenerationFailedError(GenerationError):
    """A request ended without any usable result.

    Attributes:
        attempts: Completion calls made before giving up.
        last_errors: Most recent error messages, oldest first.
    """

    def __init__(self, message: str, attempts: int, last_errors: list[str]) -> None:
        self.attempts = attempts
        self.last_errors = last_errors
        super().__init__(message)


class PageLockedError(GenerationError):
    """Attempt to regenerate a page that a later page has locked."""

    def __init__(self, page_number: int) -> None:
        self.page_number = page_number
        super().__init__(f"Page {page_number} is locked and cannot be regenerated")
