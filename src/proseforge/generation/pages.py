"""Page lifecycle helpers around page generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from proseforge.generation.errors import PageLockedError

if TYPE_CHECKING:
    from proseforge.models.structure import Page


def count_words(text: str) -> int:
    """Whitespace-separated word count, the only count the page band uses."""
    return len(text.split())


def ensure_regenerable(page: Page | None) -> None:
    """Raise PageLockedError when an existing page is locked."""
    if page is not None and page.locked:
        raise PageLockedError(page.page_number)


def lock_previous_pages(pages: list[Page], page_number: int) -> list[Page]:
    """Lock every page before ``page_number``; later pages are left as they are."""
    return [
        page.model_copy(update={"locked": True}) if page.page_number < page_number else page
        for page in pages
    ]


def recompute_chapter_stats(pages: list[Page]) -> tuple[int, int]:
    """Return ``(word_count, page_count)`` for a chapter's pages."""
    return sum(count_words(page.content) for page in pages), len(pages)


def delete_page(pages: list[Page], page_number: int) -> tuple[list[Page], int, int]:
    """Delete a page together with every page after it.

    Later pages were written as continuations of the deleted one, so they
    go too. The new last page is unlocked so it can be regenerated.

    Args:
        pages: The chapter's pages, in any order.
        page_number: First page to remove.

    Returns:
        ``(remaining_pages, word_count, page_count)``.

    Raises:
        KeyError: If the chapter has no page ``page_number``.
    """
    if not any(page.page_number == page_number for page in pages):
        raise KeyError(page_number)

    remaining = sorted(
        (page for page in pages if page.page_number < page_number),
        key=lambda page: page.page_number,
    )
    if remaining:
        remaining[-1] = remaining[-1].model_copy(update={"locked": False})
    return remaining, *recompute_chapter_stats(remaining)
