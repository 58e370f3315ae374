"""Command-line interface for validating and navigating a tutorial corpus."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from tcorpus import get_version
from tcorpus.core.config import CorpusConfig, load_corpus_config
from tcorpus.core.errors import ConfigError, LessonNotFoundError, PartialOrderError
from tcorpus.core.report_log import ReportRecord, ReportWriter
from tcorpus.core.validation import ValidationFailure, strict_validation
from tcorpus.corpus.loader import Corpus, LoadResult

CONFIG_ENV_VAR = "TCORPUS_CONFIG"

app = typer.Typer(help="Validate, order, and render a markdown tutorial corpus.")
console = Console()


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"tcorpus {get_version()}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log loading progress to stderr."),
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show the version and exit."
    ),
) -> None:
    """Tutorial corpus tools."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_config(root: Optional[Path], config_path: Optional[Path]) -> CorpusConfig:
    if config_path is not None:
        try:
            strict_validation.validate_file_exists(config_path)
            config = load_corpus_config(config_path)
        except (ValidationFailure, ConfigError) as exc:
            raise typer.BadParameter(str(exc), param_hint="--config") from exc
    else:
        config = CorpusConfig(root=Path.cwd())
    if root is not None:
        config = config.with_root(root.expanduser().resolve())
    return config


def _load(root: Optional[Path], config_path: Optional[Path]) -> LoadResult:
    config = _build_config(root, config_path)
    result = Corpus(config).load()
    if result.snapshot is None:
        console.print(f"[bold red]Corpus load failed:[/bold red] {result.error}")
        for failure in result.failures:
            console.print(f"  [red]{failure.message}[/red]")
        raise typer.Exit(code=1)
    return result


def _print_records(records: List[ReportRecord]) -> None:
    table = Table(title="Corpus Validation", show_header=True)
    table.add_column("Severity", justify="center")
    table.add_column("Kind")
    table.add_column("Lesson")
    table.add_column("Message")
    for record in records:
        style = "bold red" if record.severity == "error" else "yellow"
        table.add_row(record.severity, record.kind, record.lesson_id or "", record.message, style=style)
    console.print(table)


@app.command()
def validate(
    root: Optional[Path] = typer.Argument(
        None, file_okay=False, help="Corpus root (defaults to the config's root or the cwd)."
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        show_default=False,
        help=f"Corpus config YAML (defaults to ${CONFIG_ENV_VAR}).",
    ),
    output_format: str = typer.Option("table", "--format", help="Output format: table or jsonl."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write JSONL records to this file, replacing it."),
    fail_on_warning: bool = typer.Option(
        False, "--fail-on-warning", help="Exit non-zero when warnings are present."
    ),
) -> None:
    """Check links, prerequisite cycles, orphans, and code blocks."""
    if output_format not in ("table", "jsonl"):
        raise typer.BadParameter("expected 'table' or 'jsonl'", param_hint="--format")
    result = _load(root, config)
    records = result.snapshot.records()

    if output is not None:
        ReportWriter(output, overwrite=True).extend(records)
    if output_format == "jsonl":
        ReportWriter(stream=sys.stdout).extend(records)
    elif records:
        _print_records(records)

    errors = [record for record in records if record.severity == "error"]
    warnings = [record for record in records if record.severity == "warning"]
    if errors or (fail_on_warning and warnings):
        raise typer.Exit(code=1)
    if output_format == "table":
        if warnings:
            console.print(f"[yellow]{len(warnings)} warning(s), no errors.[/yellow]")
        else:
            console.print("[green]Corpus looks good![/green]")


@app.command()
def lessons(
    root: Optional[Path] = typer.Argument(
        None, file_okay=False, help="Corpus root (defaults to the config's root or the cwd)."
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        show_default=False,
        help=f"Corpus config YAML (defaults to ${CONFIG_ENV_VAR}).",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """List the lessons in the loaded corpus."""
    snapshot = _load(root, config).snapshot
    rows = [
        {
            "id": lesson.id,
            "title": lesson.title,
            "code_blocks": len(lesson.code_blocks),
            "prerequisites": list(snapshot.graph.prerequisites(lesson.id)),
            "next": list(snapshot.graph.next_lessons(lesson.id)),
        }
        for lesson in snapshot.lessons.values()
    ]
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    table = Table("ID", "Title", "Blocks", "Prerequisites", "Next")
    for row in rows:
        table.add_row(
            row["id"],
            row["title"],
            str(row["code_blocks"]),
            ", ".join(row["prerequisites"]),
            ", ".join(row["next"]),
        )
    console.print(table)


@app.command()
def path(
    start: str = typer.Argument(..., help="Lesson id to start from, e.g. basics/variables."),
    root: Optional[Path] = typer.Argument(
        None, file_okay=False, help="Corpus root (defaults to the config's root or the cwd)."
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        show_default=False,
        help=f"Corpus config YAML (defaults to ${CONFIG_ENV_VAR}).",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a numbered list."),
) -> None:
    """Print the ordered learning path from START."""
    snapshot = _load(root, config).snapshot
    remainder: List[str] = []
    try:
        ordered = snapshot.learning_path(start)
    except LessonNotFoundError as exc:
        raise typer.BadParameter(str(exc), param_hint="START") from exc
    except PartialOrderError as exc:
        ordered, remainder = exc.partial, exc.remainder

    if as_json:
        payload = {"start": start, "path": ordered, "complete": not remainder, "remainder": remainder}
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        titles = snapshot.titles()
        for position, lesson_id in enumerate(ordered, start=1):
            console.print(f"{position:>3}. {lesson_id}  [dim]{titles.get(lesson_id, '')}[/dim]")
        if remainder:
            console.print(f"[bold red]Unorderable (prerequisite cycle):[/bold red] {', '.join(remainder)}")
    if remainder:
        raise typer.Exit(code=1)


@app.command()
def render(
    lesson_id: str = typer.Argument(..., help="Lesson id to render."),
    root: Optional[Path] = typer.Argument(
        None, file_okay=False, help="Corpus root (defaults to the config's root or the cwd)."
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        show_default=False,
        help=f"Corpus config YAML (defaults to ${CONFIG_ENV_VAR}).",
    ),
) -> None:
    """Emit the lesson view model as JSON."""
    snapshot = _load(root, config).snapshot
    try:
        view = snapshot.render(lesson_id)
    except LessonNotFoundError as exc:
        raise typer.BadParameter(str(exc), param_hint="LESSON_ID") from exc
    typer.echo(view.model_dump_json(indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
