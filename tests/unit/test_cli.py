"""Tests for the proseforge CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from proseforge import __version__
from proseforge.book import load_book
from proseforge.cli import app
from proseforge.config import CONFIG_FILENAME
from proseforge.prose import format_prose
from proseforge.providers.base import ProviderConnectionError

runner = CliRunner()

ROSTER = "Characters:\nMara Elise Vance – protagonist\nJonah Reyes – love interest\n"

BOOK_YAML = """\
canon:
  core_premise: Two people keep missing the same train.
  characters:
    - full_name: Mara Elise Vance
      short_name: Mara
  locked: true
volumes:
  - volume_number: 1
    title: Departures
    chapters:
      - chapter_number: 1
        title: Late
"""


class TestOfflineCommands:
    """Commands that never call a model."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "book", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert (tmp_path / "book" / CONFIG_FILENAME).exists()

    def test_init_existing_dir(self, tmp_path: Path) -> None:
        (tmp_path / "book").mkdir()

        result = runner.invoke(app, ["init", "book", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "already" in result.output

    def test_format_prints(self, tmp_path: Path) -> None:
        path = tmp_path / "draft.txt"
        path.write_text('She ran. "Stop," he said. She stopped.')

        result = runner.invoke(app, ["format", str(path)])

        assert result.exit_code == 0
        assert format_prose('She ran. "Stop," he said. She stopped.') in result.output

    def test_format_write(self, tmp_path: Path) -> None:
        original = 'She ran. "Stop," he said. She stopped.'
        path = tmp_path / "draft.txt"
        path.write_text(original)

        result = runner.invoke(app, ["format", str(path), "--write"])

        assert result.exit_code == 0
        assert path.read_text() == format_prose(original) + "\n"

    def test_validate_good_prose(self, tmp_path: Path, good_prose: str) -> None:
        path = tmp_path / "chapter.txt"
        path.write_text(good_prose)

        result = runner.invoke(app, ["validate", str(path), "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["score"] == 100
        assert payload["shouldRegenerate"] is False

    def test_validate_leaky_prose(self, tmp_path: Path, leaky_prose: str) -> None:
        path = tmp_path / "chapter.txt"
        path.write_text(leaky_prose)

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Regenerate" in result.output

    def test_characters(self, tmp_path: Path) -> None:
        path = tmp_path / "roster.txt"
        path.write_text(ROSTER)

        result = runner.invoke(app, ["characters", str(path)])

        assert result.exit_code == 0
        assert "Mara Elise Vance" in result.output
        assert "Jonah" in result.output

    def test_characters_none_found(self, tmp_path: Path) -> None:
        path = tmp_path / "roster.txt"
        path.write_text("Characters:\n")

        result = runner.invoke(app, ["characters", str(path)])

        assert result.exit_code == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.txt")])

        assert result.exit_code == 1
        assert "File not found" in result.output


class TestGenerateChapter:
    """Tests for generate-chapter with a scripted model."""

    def test_generate_and_save(
        self, tmp_path: Path, scripted_service, make_chapter_json, good_prose: str
    ) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)
        service = scripted_service([make_chapter_json(good_prose)])

        with patch("proseforge.cli._build_service", return_value=service):
            result = runner.invoke(
                app,
                ["generate-chapter", str(book_file), "--project", str(tmp_path), "--save"],
            )

        assert result.exit_code == 0, result.output
        assert "Score:" in result.output
        assert "Attempts: 1" in result.output
        chapter = load_book(book_file).chapter(1, 1)
        assert chapter.summary == "Mara comes home late."
        assert chapter.state_delta.character_states == {"Mara": "home"}

    def test_unknown_chapter(self, tmp_path: Path) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)

        result = runner.invoke(
            app, ["generate-chapter", str(book_file), "--chapter", "4", "--project", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "Chapter 4 not found" in result.output

    def test_canon_check_in_same_run(
        self, tmp_path: Path, scripted_service, make_chapter_json, good_prose: str
    ) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)
        verdict = json.dumps({"passed": False, "violations": ["Train on Sunday"], "warnings": []})
        service = scripted_service([make_chapter_json(good_prose), verdict])

        with patch("proseforge.cli._build_service", return_value=service):
            result = runner.invoke(
                app,
                ["generate-chapter", str(book_file), "--project", str(tmp_path), "--check-canon"],
            )

        assert result.exit_code == 0, result.output
        assert "Canon: Train on Sunday" in result.output
        assert len(service.calls) == 2

    def test_failed_canon_check_keeps_chapter(
        self, tmp_path: Path, scripted_service, make_chapter_json, good_prose: str
    ) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)
        service = scripted_service(
            [
                make_chapter_json(good_prose),
                ProviderConnectionError("ollama", "refused"),
                ProviderConnectionError("ollama", "refused"),
            ]
        )

        with patch("proseforge.cli._build_service", return_value=service):
            result = runner.invoke(
                app,
                [
                    "generate-chapter",
                    str(book_file),
                    "--project",
                    str(tmp_path),
                    "--check-canon",
                    "--save",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "Canon check failed" in result.output
        assert load_book(book_file).chapter(1, 1).summary == "Mara comes home late."


PAGED_BOOK_YAML = BOOK_YAML + """\
        pages:
          - page_number: 1
            content: one two
            locked: true
          - page_number: 2
            content: three four five
            locked: true
          - page_number: 3
            content: six
"""


class TestDeletePage:
    """Tests for delete-page."""

    def test_cascading_delete(self, tmp_path: Path) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(PAGED_BOOK_YAML)

        result = runner.invoke(app, ["delete-page", str(book_file), "--page", "2"])

        assert result.exit_code == 0, result.output
        assert "Removed 2 page(s)" in result.output
        chapter = load_book(book_file).chapter(1, 1)
        assert [(p.page_number, p.locked) for p in chapter.pages] == [(1, False)]
        assert (chapter.word_count, chapter.page_count) == (2, 1)

    def test_unknown_page(self, tmp_path: Path) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(PAGED_BOOK_YAML)

        result = runner.invoke(app, ["delete-page", str(book_file), "--page", "7"])

        assert result.exit_code == 1
        assert "Page 7 not found" in result.output
        assert len(load_book(book_file).chapter(1, 1).pages) == 3


class TestOutline:
    """Tests for the outline command."""

    def test_outline_from_canon(self, tmp_path: Path, scripted_service) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)
        response = json.dumps(
            {"chapters": [{"title": "Missed", "beats": ["run", "miss"]}, {"title": "Waiting"}]}
        )
        service = scripted_service([response])

        with patch("proseforge.cli._build_service", return_value=service):
            result = runner.invoke(
                app,
                ["outline", str(book_file), "--volume", "2", "--chapters", "2"],
            )

        assert result.exit_code == 0, result.output
        assert "2 chapters written" in result.output
        book = load_book(book_file)
        assert [c.title for c in book.volume(2).chapters] == ["Missed", "Waiting"]
        assert book.chapter(2, 1).chapter_outline.plot_beats == ["run", "miss"]

    def test_outline_from_writer_file(self, tmp_path: Path, scripted_service) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)
        outline_file = tmp_path / "outline.txt"
        outline_file.write_text("Ch 1: Mara misses the train")
        service = scripted_service(["no structure today"])

        with patch("proseforge.cli._build_service", return_value=service):
            result = runner.invoke(
                app,
                [
                    "outline",
                    str(book_file),
                    "--from",
                    str(outline_file),
                    "--chapters",
                    "3",
                    "--replace",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "placeholders written" in result.output
        assert "Ch 1: Mara misses the train" in service.calls[0]["user_prompt"]
        chapters = load_book(book_file).volume(1).chapters
        assert [c.title for c in chapters] == ["Chapter 1", "Chapter 2", "Chapter 3"]

    def test_existing_volume_refused(self, tmp_path: Path, scripted_service) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)
        service = scripted_service([json.dumps({"chapters": [{"title": "New"}]})])

        with patch("proseforge.cli._build_service", return_value=service):
            result = runner.invoke(app, ["outline", str(book_file)])

        assert result.exit_code == 1
        assert "already has 1 chapters" in result.output
        assert load_book(book_file).chapter(1, 1).title == "Late"

    def test_unknown_structure(self, tmp_path: Path) -> None:
        book_file = tmp_path / "book.yaml"
        book_file.write_text(BOOK_YAML)

        result = runner.invoke(app, ["outline", str(book_file), "--structure", "two-act"])

        assert result.exit_code == 1
        assert "Unknown structure" in result.output
