"""proseforge CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, cast

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from proseforge.observability import close_file_logging, configure_logging

# Load environment variables from .env file
load_dotenv()

if TYPE_CHECKING:
    from proseforge.config import ProjectConfig
    from proseforge.generation import ChapterResult
    from proseforge.generation.outline import ActStructure
    from proseforge.models import CanonComplianceVerdict
    from proseforge.prose.validator import ProseValidation
    from proseforge.providers.base import TextCompletionService

app = typer.Typer(
    name="proseforge",
    help="proseforge: layered-context prose generation with a deterministic quality gate.",
    no_args_is_help=True,
)
console = Console()

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False

ProjectOption = Annotated[
    Path,
    typer.Option(
        "--project",
        "-p",
        help="Project directory containing proseforge.yaml (default: current directory).",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {project}/logs/ (debug.jsonl, llm_calls.jsonl).",
        ),
    ] = False,
) -> None:
    """proseforge: layered-context prose generation with a deterministic quality gate."""
    global _verbose, _log_enabled
    _verbose = verbose
    _log_enabled = log_to_file

    # Console logging only; file logging is configured once the project is known
    configure_logging(verbosity=verbose)


def _configure_project_logging(project_path: Path) -> None:
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=project_path)
        atexit.register(close_file_logging)


def _read_text(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


def _load_config(project_path: Path) -> ProjectConfig:
    """Load proseforge.yaml if present, otherwise defaults."""
    from proseforge.config import (
        CONFIG_FILENAME,
        ProjectConfig,
        ProjectConfigError,
        load_project_config,
    )

    if not (project_path / CONFIG_FILENAME).exists():
        return ProjectConfig(name=project_path.absolute().name)
    try:
        return load_project_config(project_path)
    except ProjectConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _build_service(
    config: ProjectConfig, project_path: Path, label: str
) -> TextCompletionService:
    from proseforge.observability import CompletionLogger
    from proseforge.providers import (
        LoggingCompletionService,
        ProviderError,
        create_completion_service,
    )

    try:
        service = create_completion_service(config.provider.provider_string)
    except ProviderError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    call_logger = CompletionLogger(project_path, enabled=_log_enabled)
    return LoggingCompletionService(service, logger=call_logger, label=label)


def _print_validation(validation: ProseValidation) -> None:
    style = "green" if validation.is_valid else "red"
    console.print(f"Score: [{style}]{validation.score}/100[/{style}]")
    for issue in validation.issues:
        console.print(f"  [red]✗[/red] {issue}")
    for warning in validation.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")


# =============================================================================
# Offline commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from proseforge import __version__

    console.print(f"proseforge v{__version__}")


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Project name")],
    path: Annotated[
        Path,
        typer.Option("--path", help="Parent directory for the project."),
    ] = Path(),
    provider: Annotated[
        str | None,
        typer.Option(
            "--provider",
            help="Default provider (e.g., ollama/qwen3:8b, openai/gpt-4o).",
        ),
    ] = None,
) -> None:
    """Initialize a new project with a default proseforge.yaml."""
    from proseforge.config import create_default_config, write_project_config

    project_path = path / name
    if project_path.exists():
        console.print(f"[red]Error:[/red] Directory '{project_path}' already exists")
        raise typer.Exit(1)

    project_path.mkdir(parents=True)
    config_file = write_project_config(project_path, create_default_config(name, provider))

    console.print(f"[green]✓[/green] Created project: [bold]{name}[/bold]")
    console.print(f"  Config: {config_file.absolute()}")


@app.command("format")
def format_command(
    file: Annotated[Path, typer.Argument(help="Prose file to reformat.")],
    write: Annotated[
        bool,
        typer.Option("--write", "-w", help="Rewrite the file in place."),
    ] = False,
) -> None:
    """Reflow prose into short, dialogue-separated paragraphs."""
    from proseforge.prose import format_prose, validate_formatting

    formatted = format_prose(_read_text(file))
    if write:
        file.write_text(formatted + "\n", encoding="utf-8")
        report = validate_formatting(formatted)
        status = "[green]✓[/green]" if report.valid else "[yellow]![/yellow]"
        console.print(f"{status} Formatted {file}")
        for issue in report.issues:
            console.print(f"  [yellow]![/yellow] {issue}")
    else:
        typer.echo(formatted)


@app.command()
def validate(
    file: Annotated[Path, typer.Argument(help="Prose file to score.")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the full verdict as JSON."),
    ] = False,
) -> None:
    """Score prose with the quality validator. Exits 1 when regeneration is advised."""
    from proseforge.prose import validate_prose

    validation = validate_prose(_read_text(file))

    if as_json:
        payload = {
            **validation.to_dict(),
            "isValid": validation.is_valid,
            "shouldRegenerate": validation.should_regenerate,
            "regenerationReason": validation.regeneration_reason,
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        _print_validation(validation)
        if validation.should_regenerate:
            console.print(f"[yellow]Regenerate:[/yellow] {validation.regeneration_reason}")

    if validation.should_regenerate:
        raise typer.Exit(1)


@app.command()
def characters(
    file: Annotated[Path, typer.Argument(help="Free-text character roster.")],
) -> None:
    """Show the canonical names parsed from a character roster."""
    from proseforge.canon import parse_characters

    records = parse_characters(_read_text(file))
    if not records:
        console.print("[yellow]No characters recognized.[/yellow]")
        raise typer.Exit(1)

    table = Table(title="Character Canon")
    table.add_column("Full name", style="cyan")
    table.add_column("Short name", style="bold")
    table.add_column("Description", style="dim")
    for record in records:
        table.add_row(record.full_name, record.short_name, record.description or "-")
    console.print(table)


# =============================================================================
# Generation commands
# =============================================================================


@app.command("generate-bible")
def generate_bible(
    input_file: Annotated[Path, typer.Argument(help="Canon input YAML (StoryCanonInput).")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Book file to create.")],
    project: ProjectOption = Path(),
) -> None:
    """Generate a story bible and write it as the canon of a new book file."""
    from pydantic import ValidationError
    from ruamel.yaml import YAML

    from proseforge.book import Book, save_book
    from proseforge.canon import validate_story_canon_input
    from proseforge.generation import GenerationError, GenerationOrchestrator
    from proseforge.models import StoryCanonInput

    _configure_project_logging(project)
    try:
        raw_input = YAML(typ="safe").load(_read_text(input_file))
        canon_input = StoryCanonInput.model_validate(raw_input or {})
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid canon input: {e}")
        raise typer.Exit(1) from e

    checked = validate_story_canon_input(canon_input)
    for warning in checked.warnings:
        console.print(f"[yellow]![/yellow] {warning}")
    if not checked.valid:
        for error in checked.errors:
            console.print(f"[red]✗[/red] {error}")
        raise typer.Exit(1)

    config = _load_config(project)
    orchestrator = GenerationOrchestrator(
        _build_service(config, project, "bible"), config=config.generation
    )
    try:
        result = asyncio.run(orchestrator.generate_story_bible(canon_input))
    except GenerationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    save_book(output, Book(canon=result.canon))
    for error in result.validation.errors:
        console.print(f"  [red]✗[/red] {error}")
    for warning in result.validation.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")
    console.print(f"[green]✓[/green] Story bible written to {output}")


@app.command()
def outline(
    book_file: Annotated[Path, typer.Argument(help="Book file with a locked canon.")],
    outline_file: Annotated[
        Path | None,
        typer.Option("--from", help="Writer outline to expand into acts and chapters."),
    ] = None,
    volume: Annotated[int, typer.Option("--volume", help="Volume to fill.")] = 1,
    chapters: Annotated[
        int, typer.Option("--chapters", min=1, help="Chapter count to aim for.")
    ] = 40,
    structure: Annotated[
        str,
        typer.Option("--structure", help="three-act or five-act (without --from)."),
    ] = "three-act",
    replace: Annotated[
        bool, typer.Option("--replace", help="Overwrite chapters already in the volume.")
    ] = False,
    project: ProjectOption = Path(),
) -> None:
    """Outline a volume's chapters from the canon, or from a writer outline."""
    from proseforge.book import BookError, load_book, save_book
    from proseforge.generation import GenerationError, generate_outline, parse_story_outline

    if structure not in ("three-act", "five-act"):
        console.print(f"[red]Error:[/red] Unknown structure: {structure}")
        raise typer.Exit(1)

    _configure_project_logging(project)
    config = _load_config(project)
    try:
        book = load_book(book_file)
    except BookError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    raw_outline = _read_text(outline_file) if outline_file else ""
    service = _build_service(config, project, "outline")
    if outline_file:
        coroutine = parse_story_outline(
            service, raw_outline, book.canon, target_chapters=chapters, config=config.generation
        )
    else:
        coroutine = generate_outline(
            service,
            book.canon,
            act_structure=cast("ActStructure", structure),
            target_chapters=chapters,
            config=config.generation,
        )

    try:
        result = asyncio.run(coroutine)
    except GenerationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    try:
        book.apply_outline(volume, result, replace=replace)
    except BookError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Volume {volume} outline")
    table.add_column("#", justify="right")
    table.add_column("Act")
    table.add_column("Title")
    table.add_column("Beats", justify="right")
    for chapter in result.chapters:
        act = result.act(chapter.act_number)
        table.add_row(
            str(chapter.chapter_number),
            act.title if act else "",
            chapter.outline.title,
            str(len(chapter.outline.plot_beats)),
        )
    console.print(table)

    if not result.parsed:
        console.print("[yellow]![/yellow] Outline response was unreadable; placeholders written")
    save_book(book_file, book)
    console.print(f"[green]✓[/green] {len(result.chapters)} chapters written to {book_file}")


@app.command("generate-chapter")
def generate_chapter(
    book_file: Annotated[Path, typer.Argument(help="Book file (canon + structure YAML).")],
    volume: Annotated[int, typer.Option("--volume", help="Volume number.")] = 1,
    chapter: Annotated[int, typer.Option("--chapter", help="Chapter number.")] = 1,
    project: ProjectOption = Path(),
    save: Annotated[
        bool,
        typer.Option("--save", help="Record summary, state delta and memory in the book file."),
    ] = False,
    check_canon: Annotated[
        bool,
        typer.Option("--check-canon", help="Run a canon compliance review afterwards."),
    ] = False,
) -> None:
    """Generate a chapter, regenerating on prose-quality failures."""
    from proseforge.book import BookError, load_book, save_book
    from proseforge.context import ContextAssembler
    from proseforge.generation import (
        GenerationError,
        GenerationOrchestrator,
        check_canon_compliance,
    )

    _configure_project_logging(project)
    config = _load_config(project)
    try:
        book = load_book(book_file)
        request = book.chapter_request(volume, chapter)
    except BookError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    service = _build_service(config, project, "chapter")
    assembler = ContextAssembler(
        book.canon,
        continuity_window=config.generation.continuity_window,
        min_page_words=config.generation.min_page_words,
        max_page_words=config.generation.max_page_words,
    )
    orchestrator = GenerationOrchestrator(
        service, assembler, config.generation, config.validation.to_rubric()
    )

    async def run() -> tuple[ChapterResult, CanonComplianceVerdict | None]:
        result = await orchestrator.generate_chapter(request)
        if not check_canon:
            return result, None
        try:
            verdict = await check_canon_compliance(
                service, result.content, book.canon, config.generation
            )
        except GenerationError as e:
            # The chapter is kept; only the review is lost
            console.print(f"[yellow]![/yellow] Canon check failed: {e}")
            return result, None
        return result, verdict

    try:
        result, verdict = asyncio.run(run())
    except GenerationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(Panel(result.content, title=f"Chapter {chapter}", subtitle=result.summary))
    _print_validation(result.prose_validation)
    console.print(f"Attempts: {result.attempts}" + (" (best effort)" if result.exhausted else ""))

    if verdict is not None:
        for violation in verdict.violations:
            console.print(f"  [red]✗[/red] Canon: {violation}")
        for warning in verdict.warnings:
            console.print(f"  [yellow]![/yellow] Canon: {warning}")

    if save:
        book.record_chapter(volume, chapter, result)
        save_book(book_file, book)
        console.print(f"[green]✓[/green] Saved to {book_file}")


@app.command("generate-page")
def generate_page(
    book_file: Annotated[Path, typer.Argument(help="Book file (canon + structure YAML).")],
    volume: Annotated[int, typer.Option("--volume", help="Volume number.")] = 1,
    chapter: Annotated[int, typer.Option("--chapter", help="Chapter number.")] = 1,
    page: Annotated[int, typer.Option("--page", help="Page number.")] = 1,
    project: ProjectOption = Path(),
    save: Annotated[
        bool,
        typer.Option("--save", help="Store the page and lock the pages before it."),
    ] = False,
) -> None:
    """Generate a single page of a chapter."""
    from proseforge.book import BookError, load_book, save_book
    from proseforge.context import ContextAssembler
    from proseforge.generation import GenerationError, GenerationOrchestrator

    _configure_project_logging(project)
    config = _load_config(project)
    try:
        book = load_book(book_file)
        request, existing = book.page_request(volume, chapter, page)
    except BookError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    assembler = ContextAssembler(
        book.canon,
        continuity_window=config.generation.continuity_window,
        min_page_words=config.generation.min_page_words,
        max_page_words=config.generation.max_page_words,
    )
    orchestrator = GenerationOrchestrator(
        _build_service(config, project, "page"), assembler, config.generation
    )

    try:
        result = asyncio.run(orchestrator.generate_page(request, existing))
    except GenerationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(Panel(result.content, title=f"Page {page}", subtitle=result.beat_coverage))
    console.print(f"Words: {result.word_count}")

    if save:
        book.record_page(volume, chapter, result)
        save_book(book_file, book)
        console.print(f"[green]✓[/green] Saved to {book_file}")


@app.command("delete-page")
def delete_page(
    book_file: Annotated[Path, typer.Argument(help="Book file (canon + structure YAML).")],
    page: Annotated[int, typer.Option("--page", help="First page to delete.")],
    volume: Annotated[int, typer.Option("--volume", help="Volume number.")] = 1,
    chapter: Annotated[int, typer.Option("--chapter", help="Chapter number.")] = 1,
) -> None:
    """Delete a page and every page after it, unlocking the new last page."""
    from proseforge.book import BookError, load_book, save_book

    try:
        book = load_book(book_file)
        removed = book.delete_page(volume, chapter, page)
    except BookError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    save_book(book_file, book)
    entry = book.chapter(volume, chapter)
    console.print(
        f"[green]✓[/green] Removed {removed} page(s); "
        f"chapter {chapter} now has {entry.page_count} page(s), {entry.word_count} words"
    )


if __name__ == "__main__":
    app()
