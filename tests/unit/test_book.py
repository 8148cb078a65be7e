"""Tests for the YAML book file."""

from __future__ import annotations

from pathlib import Path

import pytest

from proseforge.book import Book, BookError, ChapterEntry, VolumeEntry, load_book, save_book
from proseforge.generation import ChapterResult, PageResult, ensure_regenerable
from proseforge.models import StateDelta, StoryCanon
from proseforge.models.structure import ActContext, Page
from proseforge.prose import validate_prose

BOOK_YAML = """\
canon:
  core_premise: Two people keep missing the same train.
  locked: true
volumes:
  - volume_number: 1
    title: Departures
    chapters:
      - chapter_number: 1
        summary: Mara misses the train.
      - chapter_number: 2
        act:
          act_number: 2
          emotional_pressure: 8
        pages:
          - page_number: 2
            content: second page words
          - page_number: 1
            content: first page
  - volume_number: 2
    title: Arrivals
"""


@pytest.fixture
def book_path(tmp_path: Path) -> Path:
    path = tmp_path / "book.yaml"
    path.write_text(BOOK_YAML)
    return path


@pytest.fixture
def book(book_path: Path) -> Book:
    return load_book(book_path)


def _chapter_result(good_prose: str, **delta: object) -> ChapterResult:
    return ChapterResult(
        content=good_prose,
        summary="Mara comes home late.",
        state_delta=StateDelta.model_validate(delta),
        prose_validation=validate_prose(good_prose),
        attempts=1,
    )


class TestLoadSave:
    """Tests for load_book and save_book."""

    def test_load(self, book: Book) -> None:
        assert book.canon.locked
        assert [v.title for v in book.volumes] == ["Departures", "Arrivals"]
        assert book.chapter(1, 2).act.emotional_pressure == 8

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(BookError, match="not found"):
            load_book(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "book.yaml"
        path.write_text("")

        with pytest.raises(BookError, match="empty"):
            load_book(path)

    def test_round_trip(self, book: Book, tmp_path: Path, good_prose: str) -> None:
        book.record_chapter(1, 1, _chapter_result(good_prose, characterStates={"Mara": "home"}))
        path = tmp_path / "saved.yaml"

        save_book(path, book)

        assert load_book(path) == book


class TestLookup:
    """Tests for volume and chapter lookup."""

    def test_missing_volume(self, book: Book) -> None:
        with pytest.raises(BookError, match="Volume 9 not found"):
            book.volume(9)

    def test_missing_chapter(self, book: Book) -> None:
        with pytest.raises(BookError, match="Chapter 7 not found in volume 1"):
            book.chapter(1, 7)


class TestRequests:
    """Tests for building generation requests."""

    def test_chapter_request(self, book: Book) -> None:
        request = book.chapter_request(1, 2)

        assert [c.chapter_number for c in request.previous_chapters] == [1]
        assert request.act.act_number == 2
        assert request.structure.is_last_chapter
        assert not request.structure.is_last_volume
        assert request.structure.total_volumes == 2
        assert request.structure.current_act_number == 2

    def test_chapter_request_default_act(self, book: Book) -> None:
        request = book.chapter_request(1, 1)

        assert request.previous_chapters == []
        assert request.act == ActContext()
        assert not request.structure.is_last_chapter
        assert request.structure.current_act_number is None

    def test_page_request(self, book: Book) -> None:
        request, existing = book.page_request(1, 2, 2)

        assert [p.page_number for p in request.previous_pages] == [1]
        assert existing is not None
        assert existing.content == "second page words"

    def test_page_request_new_page(self, book: Book) -> None:
        request, existing = book.page_request(1, 2, 3)

        assert [p.page_number for p in request.previous_pages] == [1, 2]
        assert existing is None
        assert request.total_pages == 3


class TestRecording:
    """Tests for recording accepted results."""

    def test_record_chapter(self, book: Book, good_prose: str) -> None:
        result = _chapter_result(
            good_prose,
            characterStates={"Mara": "home"},
            emotionalState="guilty",
            unresolvedThreads=["Why was the train late?"],
        )

        book.record_chapter(1, 2, result)

        chapter = book.chapter(1, 2)
        volume = book.volume(1)
        assert chapter.summary == "Mara comes home late."
        assert chapter.word_count == result.word_count
        assert volume.memory.character_progression == {"Mara": "home"}
        assert volume.memory.promises_made == ["Why was the train late?"]
        assert volume.act_memory.current_tension_level == 8
        assert volume.act_memory.emotional_direction == "guilty"

    def test_record_chapter_without_act_keeps_tension(self, book: Book, good_prose: str) -> None:
        book.record_chapter(1, 1, _chapter_result(good_prose))

        assert book.volume(1).act_memory.current_tension_level == 5

    def test_record_page_locks_earlier_pages(self, book: Book) -> None:
        result = PageResult(
            page_number=3,
            content="one two three four",
            beat_coverage="Page 3 beats",
            narrative_momentum="Continues to next page",
            word_count=4,
        )

        book.record_page(1, 2, result)

        chapter = book.chapter(1, 2)
        assert [(p.page_number, p.locked) for p in chapter.pages] == [
            (1, True),
            (2, True),
            (3, False),
        ]
        assert chapter.pages[2].beat_coverage == "Page 3 beats"
        assert chapter.page_count == 3
        assert chapter.word_count == 2 + 3 + 4

    def test_record_page_replaces_existing(self, book: Book) -> None:
        result = PageResult(
            page_number=2,
            content="fresh",
            beat_coverage="",
            narrative_momentum="",
            word_count=1,
        )

        book.record_page(1, 2, result)

        pages = book.chapter(1, 2).pages
        assert [p.content for p in pages] == ["first page", "fresh"]
        assert pages[0].locked


class TestDeletePage:
    """Tests for Book.delete_page."""

    def _fill(self, book: Book) -> None:
        for number in (3, 4):
            book.record_page(
                1,
                2,
                PageResult(
                    page_number=number,
                    content="more words here",
                    beat_coverage="",
                    narrative_momentum="",
                    word_count=3,
                ),
            )

    def test_delete_last_page(self, book: Book) -> None:
        self._fill(book)

        removed = book.delete_page(1, 2, 4)

        chapter = book.chapter(1, 2)
        assert removed == 1
        assert [(p.page_number, p.locked) for p in chapter.pages] == [
            (1, True),
            (2, True),
            (3, False),
        ]
        assert (chapter.word_count, chapter.page_count) == (2 + 3 + 3, 3)

    def test_delete_cascades(self, book: Book) -> None:
        self._fill(book)

        removed = book.delete_page(1, 2, 2)

        chapter = book.chapter(1, 2)
        assert removed == 3
        assert [(p.page_number, p.locked) for p in chapter.pages] == [(1, False)]
        assert (chapter.word_count, chapter.page_count) == (2, 1)

    def test_new_last_page_regenerable(self, book: Book) -> None:
        self._fill(book)
        book.delete_page(1, 2, 3)

        _, existing = book.page_request(1, 2, 2)
        assert existing is not None
        ensure_regenerable(existing)

        book.record_page(
            1,
            2,
            PageResult(
                page_number=2,
                content="rewritten",
                beat_coverage="",
                narrative_momentum="",
                word_count=1,
            ),
        )
        chapter = book.chapter(1, 2)
        assert [p.content for p in chapter.pages] == ["first page", "rewritten"]
        assert (chapter.word_count, chapter.page_count) == (3, 2)

    def test_missing_page(self, book: Book) -> None:
        with pytest.raises(BookError, match="Page 9 not found in chapter 2"):
            book.delete_page(1, 2, 9)

    def test_persisted(self, book: Book, book_path: Path) -> None:
        book.delete_page(1, 2, 2)
        save_book(book_path, book)

        chapter = load_book(book_path).chapter(1, 2)
        assert [p.page_number for p in chapter.pages] == [1]
        assert chapter.page_count == 1


class TestBookModel:
    """Tests for building a book in code."""

    def test_defaults(self) -> None:
        book = Book(
            volumes=[
                VolumeEntry(
                    volume_number=1,
                    chapters=[ChapterEntry(chapter_number=1, pages=[Page(page_number=1)])],
                )
            ]
        )

        assert book.canon == StoryCanon()
        assert book.chapter(1, 1).page_count == 0
