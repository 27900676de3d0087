"""Typer CLI application for the study quiz pipeline."""

import base64
import json
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from study_construct import __version__
from study_construct.agents.approval import ApprovalGate, auto_approve
from study_construct.config.settings import get_settings
from study_construct.export.docx_generator import export_quiz_with_separate_answers
from study_construct.memory.store import WeaknessMemoryStore
from study_construct.models.events import EventKind, ProgressEvent
from study_construct.models.memory import QuizResult
from study_construct.models.pipeline import (
    BlobDocument,
    DocumentFormat,
    PipelineRequest,
    PipelineStage,
    TextDocument,
)
from study_construct.models.quiz import FactSet, Quiz
from study_construct.pipeline import QuizPipeline
from study_construct.progress import ProgressReporter

app = typer.Typer(
    name="study-construct",
    help="Turn a study document into a quiz with a research -> review -> generate agent pipeline",
    add_completion=False,
)

console = Console()

EVENT_STYLES = {
    EventKind.INFO: "dim",
    EventKind.ACTION: "cyan",
    EventKind.OBSERVATION: "blue",
    EventKind.RESPONSE: "green",
    EventKind.ERROR: "red",
    EventKind.MEMORY: "magenta",
    EventKind.START: "bold cyan",
    EventKind.DONE: "bold green",
}

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".rst", ".csv", ".json", ".html"}


def configure_logging(level: str) -> None:
    """Send loguru output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def print_event(event: ProgressEvent) -> None:
    """Render one progress event on the console."""
    style = EVENT_STYLES.get(event.kind, "white")
    console.print(
        f"[{style}]{escape(f'[{event.source}]')} {event.kind.value}:[/{style}] {escape(event.message)}",
        highlight=False,
    )


def document_format_for(mime_type: str) -> DocumentFormat:
    """Map a MIME type to the extractor's format family."""
    family = mime_type.split("/", 1)[0]
    try:
        return DocumentFormat(family)
    except ValueError:
        return DocumentFormat.DOCUMENT


def load_document(path: Path) -> TextDocument | BlobDocument:
    """
    Read a document from disk.

    Args:
        path: File to read

    Returns:
        TextDocument for text files, BlobDocument for everything else
    """
    mime_type, _ = mimetypes.guess_type(path.name)
    if path.suffix.lower() in TEXT_SUFFIXES or (mime_type or "").startswith("text/"):
        return TextDocument(text=path.read_text(encoding="utf-8"))

    mime_type = mime_type or "application/octet-stream"
    return BlobDocument(
        base64=base64.b64encode(path.read_bytes()).decode("ascii"),
        mime_type=mime_type,
        format=document_format_for(mime_type),
    )


def confirm_facts(facts: FactSet) -> bool:
    """Interactive reviewer: show the facts and ask whether to continue."""
    console.print()
    console.print(
        Panel(facts.as_numbered_text(), title="Extracted Facts", border_style="yellow")
    )
    return typer.confirm("Proceed to generate the quiz from these facts?", default=True)


@app.command()
def generate(
    document: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Study document (text, image, audio, video or PDF)",
    ),
    weaknesses: Optional[List[str]] = typer.Option(
        None,
        "--weakness",
        "-w",
        help="Concept to focus on (can specify multiple times: -w recursion -w pointers)",
    ),
    user_id: Optional[str] = typer.Option(
        None,
        "--user",
        "-u",
        help="User whose weakness profile is read and updated",
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Model identifier (defaults to MODEL_NAME)",
    ),
    topic: Optional[str] = typer.Option(
        None,
        "--topic",
        help="Topic to record as studied (defaults to the document's first line)",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Approve the extracted facts without asking",
    ),
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Export to DOCX with this base name (questions and answers in separate files)",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the quiz questions as JSON",
    ),
    credential: Optional[str] = typer.Option(
        None,
        "--credential",
        envvar="ANTHROPIC_API_KEY",
        help="API key for the model backend",
        show_default=False,
    ),
) -> None:
    """
    Generate a quiz from a study document.

    Example:
        study-construct generate notes.md -w "Bauhaus" -u alice -o bauhaus_quiz
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    credential = credential or settings.anthropic_api_key
    if not credential:
        console.print(
            "[red]Error:[/red] ANTHROPIC_API_KEY environment variable not set.",
            style="bold",
        )
        console.print(
            "\nPlease set your API key:\n  export ANTHROPIC_API_KEY='your-key-here'"
        )
        raise typer.Exit(code=1)

    request = PipelineRequest(
        credential=credential,
        model_id=model,
        document=load_document(document),
        weaknesses=weaknesses or [],
        user_id=user_id,
        topic=topic,
    )

    reporter = ProgressReporter(print_event)
    pipeline = QuizPipeline(
        approval_gate=ApprovalGate(auto_approve if yes else confirm_facts),
        settings=settings,
        reporter=reporter,
    )

    console.print("\n[cyan]Initializing multi-agent workflow...[/cyan]")
    session = pipeline.run(request)

    if session.stage == PipelineStage.ABORTED:
        console.print("\n[yellow]Quiz generation aborted at review.[/yellow]")
        raise typer.Exit(code=0)

    if session.stage == PipelineStage.FAILED or session.quiz is None:
        console.print(
            f"\n[red]Error during quiz generation:[/red] {session.error}", style="bold"
        )
        raise typer.Exit(code=1)

    quiz = session.quiz
    if as_json:
        console.print_json(json.dumps(quiz.to_wire()))
    else:
        display_quiz_summary(quiz)

    if output:
        console.print("\n[cyan]Exporting to DOCX...[/cyan]")
        try:
            questions_file, answers_file = export_quiz_with_separate_answers(quiz, output)
        except OSError as e:
            console.print(f"\n[red]Error during export:[/red] {e}", style="bold")
            raise typer.Exit(code=1)
        console.print("\n[green]✓[/green] Quiz exported successfully!")
        console.print(f"  Questions: {questions_file}")
        console.print(f"  Answers:   {answers_file}")


@app.command()
def profile(
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User to show"),
) -> None:
    """Show a user's weaknesses, studied topics and quiz history."""
    settings = get_settings()
    configure_logging(settings.log_level)

    user_id = user_id or settings.default_user_id
    user_profile = WeaknessMemoryStore(settings.memory_dir).get_profile(user_id)

    table = Table(title=f"Profile: {user_id}", show_header=False, border_style="cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Weaknesses", ", ".join(user_profile.weaknesses) or "none")
    table.add_row("Topics studied", ", ".join(user_profile.topics_studied) or "none")
    last = user_profile.last_session_at
    table.add_row("Last session", last.strftime("%Y-%m-%d %H:%M") if last else "never")
    console.print()
    console.print(table)

    if not user_profile.quiz_history:
        return

    history = Table(title="Quiz History", border_style="green")
    history.add_column("Completed", style="cyan")
    history.add_column("Topic", style="white")
    history.add_column("Score", style="white")
    for result in user_profile.quiz_history:
        history.add_row(
            result.completed_at.strftime("%Y-%m-%d %H:%M"),
            result.topic,
            f"{result.score}/{result.total} ({result.percentage:.0%})",
        )
    console.print()
    console.print(history)


@app.command("record-result")
def record_result(
    score: int = typer.Option(..., "--score", min=0, help="Questions answered correctly"),
    total: int = typer.Option(..., "--total", min=1, help="Questions in the quiz"),
    topic: str = typer.Option(..., "--topic", help="Quiz topic"),
    missed: Optional[List[str]] = typer.Option(
        None,
        "--missed",
        help="Concept the user got wrong (can specify multiple times)",
    ),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User to update"),
) -> None:
    """Record a completed quiz and remember what the user missed."""
    settings = get_settings()
    configure_logging(settings.log_level)
    user_id = user_id or settings.default_user_id

    if score > total:
        console.print(f"[red]Error:[/red] score {score} exceeds total {total}")
        raise typer.Exit(code=1)

    store = WeaknessMemoryStore(settings.memory_dir)
    history = store.record_quiz_result(
        user_id, QuizResult(score=score, total=total, topic=topic)
    )
    console.print(
        f"[green]✓[/green] Recorded {score}/{total} on {topic!r} "
        f"({len(history)} quiz(zes) on record)"
    )

    if missed:
        updated = store.update_weaknesses(user_id, missed)
        console.print(f"  Weaknesses: {', '.join(updated.weaknesses)}")


@app.command()
def info() -> None:
    """Display information about the quiz pipeline."""
    settings = get_settings()
    counts = ", ".join(f"{count} {kind}" for kind, count in settings.question_counts.items())
    info_text = f"""
[bold cyan]Study Construct[/bold cyan]
Version: {__version__}

[bold]Agent Pipeline:[/bold]
  • Researcher - extracts {settings.fact_count} key facts, searching the document as needed
  • Approval Gate - a human reviews the facts before any questions are written
  • Examiners - one per question kind, run in parallel
  • Coordinator - tracks each session and assembles the quiz

[bold]Features:[/bold]
  • Focus on remembered weaknesses
  • Multiple-choice, true/false, fill-blank, matching and ordering questions
  • Recovery of questions from messy model output
  • Text, image, audio and video documents
  • DOCX export with answer key

[bold]Default questions:[/bold] {counts}
[bold]Model:[/bold] {settings.model_name} (Anthropic)
    """
    console.print(Panel(info_text, title="Study Construct Info", border_style="cyan"))


def display_quiz_summary(quiz: Quiz) -> None:
    """Display a summary of the generated quiz."""
    if quiz.metadata.degraded:
        console.print("\n[bold red]Every generation task failed; showing fallback quiz.[/bold red]")
    else:
        console.print("\n[bold green]Quiz Generated Successfully![/bold green]")

    table = Table(title="Quiz Summary", border_style="green")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Title", quiz.title)
    table.add_row("Total Questions", str(quiz.total_questions))
    for kind, count in quiz.kind_counts().items():
        table.add_row(f"  {kind.value}", str(count))
    if quiz.metadata.failed_tasks:
        table.add_row("Failed tasks", f"[red]{', '.join(quiz.metadata.failed_tasks)}[/red]")
    if quiz.metadata.generation_time_seconds is not None:
        table.add_row("Generation time", f"{quiz.metadata.generation_time_seconds:.1f}s")

    console.print()
    console.print(table)

    questions = Table(title="Questions", border_style="cyan")
    questions.add_column("#", style="cyan")
    questions.add_column("Type", style="white")
    questions.add_column("Question", style="white")
    for i, question in enumerate(quiz.questions, 1):
        questions.add_row(str(i), question.kind, question.question)

    console.print()
    console.print(questions)


@app.callback()
def callback() -> None:
    """
    Study Construct - Generate study quizzes with a multi-agent pipeline.
    """
    pass


if __name__ == "__main__":
    app()
