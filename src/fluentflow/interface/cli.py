"""FluentFlow CLI: library management, interactive study, server and migration."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal, TypeVar

import typer

from fluentflow.application.answer_template import answer_slots, assemble_answer, mask_sentence
from fluentflow.application.config import AppConfig, resolve_config
from fluentflow.application.session import SessionStatus, StudySession
from fluentflow.application.study_service import StudyService
from fluentflow.domain.constants import DEFAULT_SERVER_HOST, DEFAULT_SERVER_PORT, MASTERED_LEVEL
from fluentflow.domain.exceptions import ConflictError, FluentFlowError, PersistenceError
from fluentflow.domain.models import AnswerMode, CardKind, ImportMode, StudyMode

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="fluentflow: Spaced-repetition sentence and vocabulary drills.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Register subgroups
# ---------------------------------------------------------------------------

words_app = typer.Typer(help="Browse and drill the word book.", no_args_is_help=True)
app.add_typer(words_app, name="words")

config_app = typer.Typer(help="Manage fluentflow configuration.")
app.add_typer(config_app, name="config")

SKIP_COMMAND = ":skip"
QUIT_COMMAND = ":quit"
MODES = {"learn": StudyMode.LEARN, "mistakes": StudyMode.REVIEW_MISTAKES}


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    backend: Annotated[
        str | None, typer.Option(help="Storage backend: json, library, sqlite, http.")
    ] = None,
    data_dir: Annotated[Path | None, typer.Option(help="Directory for local stores.")] = None,
):
    """Global settings for fluentflow."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"backend": backend, "data_dir": data_dir, "verbose": verbose}
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


def _resolve_with_overrides(ctx: typer.Context, **overrides: Any) -> AppConfig:
    merged = dict((ctx.obj or {}).get("overrides", {}))
    merged.update(overrides)
    return resolve_config(merged)


def _build_service(config: AppConfig) -> StudyService:
    from fluentflow.application.factory import build_study_service

    return build_study_service(config)


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning application errors into a red message and exit 1."""
    try:
        return asyncio.run(coro)
    except FluentFlowError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _format_time(ms: int | None) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


# ---------------------------------------------------------------------------
# Library commands
# ---------------------------------------------------------------------------


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Text file with one sentence per line.")],
    title: Annotated[
        str | None, typer.Option(help="Book title. Defaults to the file name.")
    ] = None,
    mode: Annotated[
        ImportMode,
        typer.Option(help="bilingual: 'Chinese === English' lines; translate: Chinese only."),
    ] = ImportMode.BILINGUAL,
):
    """[bold green]Import[/bold green] a text file as a new study book."""
    if not path.exists():
        typer.secho(f"File not found: {path}", fg="red", err=True)
        raise typer.Exit(1)
    content = path.read_text(encoding="utf-8")
    config = _resolve_with_overrides(ctx)

    async def run():
        service = _build_service(config)
        try:
            return await service.import_book(title or path.stem, content, mode)
        finally:
            await service.close()

    book = _run(run())
    typer.secho(f"Created '{book.title}' ({book.id}) with {len(book.cards)} cards.", fg="green")


@app.command("books")
def books(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List study books with due and mistake counts."""
    config = _resolve_with_overrides(ctx)

    async def run():
        service = _build_service(config)
        try:
            return await service.list_summaries()
        finally:
            await service.close()

    summaries = _run(run())

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": s.book_id,
                        "title": s.title,
                        "total": s.total,
                        "due": s.due,
                        "mistakes": s.mistakes,
                        "mastered": s.mastered,
                    }
                    for s in summaries
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    if not summaries:
        typer.secho("No study books yet. Use 'fluentflow import' to add one.", fg="yellow")
        return
    for s in summaries:
        typer.echo(
            f"{s.book_id}  {s.title}  cards={s.total} due={s.due} "
            f"mistakes={s.mistakes} mastered={s.mastered}"
        )


@app.command("show")
def show(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id.")],
):
    """Show every card of a book with its review state."""
    config = _resolve_with_overrides(ctx)

    async def run():
        service = _build_service(config)
        try:
            return await service.books.load_book(book_id)
        finally:
            await service.close()

    book = _run(run())
    typer.secho(f"{book.title} ({len(book.cards)} cards)", bold=True)
    for card in book.cards:
        flag = " [skipped]" if card.is_skipped else ""
        typer.echo(
            f"  #{card.id} L{card.memory_level}/{MASTERED_LEVEL} "
            f"next={_format_time(card.next_review)}{flag}"
        )
        typer.echo(f"      {card.chinese}")
        typer.echo(f"      {card.english}")
        if card.incorrect_answers:
            typer.secho(f"      misses: {', '.join(card.incorrect_answers)}", fg="yellow")


@app.command("delete")
def delete(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Delete a study book and its progress."""
    if not yes and not typer.confirm(f"Delete book {book_id}?"):
        raise typer.Abort()
    config = _resolve_with_overrides(ctx)

    async def run():
        service = _build_service(config)
        try:
            await service.books.delete_book(book_id)
        finally:
            await service.close()

    _run(run())
    typer.secho(f"Deleted {book_id}.", fg="green")


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


def _read_answer(card, answer_mode: AnswerMode) -> str:
    reference = card.english if card.kind is CardKind.SENTENCE else card.word
    typer.secho(f"\n{card.chinese}", bold=True)

    if answer_mode is AnswerMode.AI:
        return typer.prompt("Your translation", default="", show_default=False).strip()

    typer.echo(f"  {mask_sentence(reference)}")
    raw = typer.prompt("Your answer", default="", show_default=False).strip()
    if raw in (SKIP_COMMAND, QUIT_COMMAND):
        return raw
    words = raw.split()
    # Bare words fill the blanks around the reference punctuation
    if len(words) == answer_slots(reference):
        return assemble_answer(reference, words)
    return raw


async def _study_loop(
    service: StudyService, session: StudySession, answer_mode: AnswerMode
) -> None:
    if session.is_terminal:
        if session.status is SessionStatus.CAUGHT_UP:
            typer.secho("All caught up! Nothing is due right now.", fg="green")
        else:
            typer.secho("No mistakes to review.", fg="green")
        return

    typer.echo(
        f"Studying '{session.collection.title}' ({len(session.queue)} cards). "
        f"Type {SKIP_COMMAND} to skip, {QUIT_COMMAND} to stop."
    )
    correct = 0
    try:
        while not session.is_terminal:
            card = session.current_card
            typer.echo(f"[{session.position + 1}/{len(session.queue)}]")
            answer = _read_answer(card, answer_mode)

            if answer == QUIT_COMMAND:
                break
            if answer == SKIP_COMMAND:
                session.skip()
                continue
            if not answer.strip():
                typer.secho("Answer cannot be empty.", fg="yellow")
                continue

            outcome = await service.answer(session, answer, answer_mode)
            if outcome.is_correct:
                correct += 1
                typer.secho(f"✓ {outcome.reason}", fg="green")
            else:
                typer.secho(f"✗ {outcome.reason}", fg="red")
                if outcome.reason != f"The correct answer is: {outcome.expected}":
                    typer.echo(f"  Reference: {outcome.expected}")
            session.advance()
    except (typer.Abort, KeyboardInterrupt):
        # Ctrl-C or end of input; keep what was answered
        typer.echo("\nStopping early.")

    while True:
        try:
            await service.finish(session)
            break
        except PersistenceError as e:
            typer.secho(f"Could not save progress: {e}", fg="red", err=True)
            if not typer.confirm("Retry saving?", default=True):
                raise
    typer.secho(f"Session saved. {correct} correct this round.", fg="green")


def _start_and_study(
    config: AppConfig, book_id: str | None, mode: StudyMode, answer_mode: AnswerMode
) -> None:
    async def run():
        service = _build_service(config)
        try:
            if book_id is None:
                session = await service.start_word_drill(mode)
            else:
                session = await service.start(book_id, mode)
            await _study_loop(service, session, answer_mode)
        finally:
            await service.close()

    _run(run())


@app.command("study")
def study(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id.")],
    mode: Annotated[
        Literal["learn", "mistakes"],
        typer.Option(help="learn: due cards; mistakes: cards with wrong answers."),
    ] = "learn",
    ai: Annotated[
        bool, typer.Option("--ai/--fixed", help="Judge free-form answers with the AI.")
    ] = False,
):
    """[bold green]Study[/bold green] a book interactively."""
    config = _resolve_with_overrides(ctx)
    answer_mode = AnswerMode.AI if ai else AnswerMode.FIXED
    _start_and_study(config, book_id, MODES[mode], answer_mode)


# ---------------------------------------------------------------------------
# Words subgroup
# ---------------------------------------------------------------------------


@words_app.command("list")
def words_list(ctx: typer.Context):
    """List the words collected from missed sentences."""
    config = _resolve_with_overrides(ctx)

    async def run():
        service = _build_service(config)
        try:
            if service.words is None:
                return None
            return await service.words.load_word_book()
        finally:
            await service.close()

    book = _run(run())
    if book is None or not book.cards:
        typer.secho("The word book is empty.", fg="yellow")
        return
    typer.secho(f"{book.title} ({len(book.cards)} words)", bold=True)
    for card in book.cards:
        typer.echo(
            f"  {card.word} - {card.chinese}  L{card.memory_level} "
            f"next={_format_time(card.next_review)}"
        )


@words_app.command("study")
def words_study(
    ctx: typer.Context,
    ai: Annotated[
        bool, typer.Option("--ai/--fixed", help="Judge answers with the AI.")
    ] = False,
):
    """Drill due words from the word book."""
    config = _resolve_with_overrides(ctx)
    answer_mode = AnswerMode.AI if ai else AnswerMode.FIXED
    _start_and_study(config, None, StudyMode.LEARN, answer_mode)


# ---------------------------------------------------------------------------
# Server and migration
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = DEFAULT_SERVER_PORT,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = DEFAULT_SERVER_HOST,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the FluentFlow HTTP server."""
    import uvicorn

    typer.secho(f"Starting FluentFlow server on http://{host}:{port}", fg="green")
    uvicorn.run("fluentflow.server:app", host=host, port=port, reload=reload)


@app.command("migrate")
def migrate(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Text library directory (one folder per book).")],
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Preview without writing.")
    ] = False,
):
    """Copy a text library into the configured backend."""
    from fluentflow.application.factory import get_book_repository
    from fluentflow.infrastructure.adapters.library_store import LibraryBookRepository

    if not source.is_dir():
        typer.secho(f"Library directory not found: {source}", fg="red", err=True)
        raise typer.Exit(1)
    config = _resolve_with_overrides(ctx)

    async def run():
        library = LibraryBookRepository(source)
        target = get_book_repository(config)
        migrated, skipped = 0, 0
        try:
            for book in await library.list_books():
                if dry_run:
                    typer.echo(f"Would migrate '{book.title}' ({len(book.cards)} cards)")
                    continue
                try:
                    await target.create_book(book)
                    migrated += 1
                    typer.echo(f"Migrated '{book.title}' ({len(book.cards)} cards)")
                except ConflictError:
                    skipped += 1
                    logger.warning(f"Book {book.id} already exists in target; skipped")
        finally:
            await target.close()
        return migrated, skipped

    migrated, skipped = _run(run())
    if not dry_run:
        typer.secho(f"Migration complete: {migrated} migrated, {skipped} skipped.", fg="green")


@app.command("logs")
def logs(ctx: typer.Context):
    """Open the log directory."""
    config = _resolve_with_overrides(ctx)
    config.log_dir.mkdir(parents=True, exist_ok=True)
    typer.echo(str(config.log_dir))
    typer.launch(str(config.log_dir))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve_with_overrides(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("gemini_api_key"):
        d["gemini_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2))
