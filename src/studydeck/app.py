"""Interactive CLI application."""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table

from studydeck.config import Settings, get_settings
from studydeck.dashboard import (
    format_duration, get_recent_documents, get_recent_progress, get_score_color,
    get_study_stats, search_documents,
)
from studydeck.generation import GenerationService
from studydeck.importer import import_document
from studydeck.models import Deck, Document, Progress, ProgressSummary
from studydeck.session import SEQUENTIAL, SHUFFLED, SessionEngine
from studydeck.store import ContentStoreError, SQLiteContentStore

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The user asked to leave the current study session."""


def session_prompt(prompt: str, choices: Optional[list[str]] = None, **kwargs) -> str:
    if choices:
        kwargs["choices"] = [*choices, *EXIT_WORDS]
        kwargs.setdefault("show_choices", False)
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    return int(session_prompt(prompt, choices=choices))


def show_welcome():
    console.print(Panel(
        "[bold]Study Deck[/bold]\n[dim]Summaries, quizzes and flashcards from your notes[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("documents", "List and search your documents"),
        ("upload", "Add a study document"),
        ("quiz", "Take a document's quiz"),
        ("flashcards", "Study a document's flashcards"),
        ("dashboard", "Progress overview"),
        ("delete", "Remove a document"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def save_progress(store, user_id: str, summary: ProgressSummary) -> Optional[Progress]:
    """Persist a finished session; failures are reported, never raised."""
    try:
        return store.upsert_progress(
            user_id,
            summary.document_id,
            summary.quiz_score,
            summary.time_spent,
            summary.last_accessed,
        )
    except ContentStoreError as e:
        logger.error(f"Failed to save progress for {summary.document_id}: {e}")
        console.print(f"[red]Could not save your progress: {e}[/red]")
        console.print("[dim]Retake the deck to record it again.[/dim]")
        return None


def run_quiz_session(store, user_id: str, deck: Deck,
                     engine: Optional[SessionEngine] = None) -> Optional[ProgressSummary]:
    if len(deck) == 0:
        console.print("[yellow]No quiz questions for this document![/yellow]")
        return None
    engine = engine or SessionEngine()
    engine.start(deck, SEQUENTIAL)
    console.print(f"\n[bold]Quiz[/bold] - {len(deck)} questions  [dim](q to leave)[/dim]\n")

    snap = engine.snapshot()
    while not snap.completed:
        item = snap.current_item
        console.print(f"[bold]Q{snap.position + 1}/{snap.total}.[/bold] {item.question}\n")
        letters = [chr(ord("a") + i) for i in range(len(item.options))]
        for letter, option in zip(letters, item.options):
            console.print(f"  [cyan]{letter})[/cyan] {option}")
        choice = session_prompt("\nYour answer", choices=letters)
        answer = item.options[letters.index(choice.strip().lower())]
        if engine.record_quiz_answer(snap.position, answer):
            console.print("[green]Correct![/green]")
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{item.correct_answer}[/green]")
        if item.explanation:
            console.print(f"[dim]{item.explanation}[/dim]")
        console.print()
        snap = engine.snapshot()

    summary = engine.finish()
    color = get_score_color(summary.quiz_score)
    console.print(
        f"[bold]Score: {snap.score}/{snap.total} "
        f"([{color}]{summary.quiz_score}%[/{color}])[/bold]  "
        f"in {format_duration(summary.time_spent)}\n"
    )
    save_progress(store, user_id, summary)
    return summary


def _show_card(snap) -> None:
    card = snap.current_item
    console.print(Panel(
        card.front, title=f"Card {snap.position + 1}/{snap.total}",
        subtitle=f"Known: {snap.resolved_count}", border_style="cyan",
    ))
    if snap.answer_visible:
        console.print(Panel(card.back, border_style="green"))


def run_flashcard_session(store, user_id: str, deck: Deck, mode: str = SEQUENTIAL,
                          engine: Optional[SessionEngine] = None) -> Optional[ProgressSummary]:
    if len(deck) == 0:
        console.print("[yellow]No flashcards for this document![/yellow]")
        return None
    engine = engine or SessionEngine()
    engine.start(deck, mode)
    console.print(f"\n[bold]Flashcards[/bold] - {len(deck)} cards  [dim](q to leave)[/dim]\n")

    snap = engine.snapshot()
    while not snap.completed:
        _show_card(snap)
        action = session_prompt(
            "[f]lip  [k]nown  [u]nknown  [p]revious  [s]huffle  [r]eset",
            choices=["f", "k", "u", "p", "s", "r"], default="f",
        ).strip().lower()
        key = snap.current_item.id
        if action == "f":
            snap = engine.flip()
        elif action == "k":
            snap = engine.mark_resolved(key)
        elif action == "u":
            snap = engine.mark_unresolved(key)
        elif action == "p":
            snap = engine.retreat()
        elif action == "s":
            snap = engine.shuffle()
            console.print("[dim]Deck shuffled.[/dim]")
        elif action == "r":
            snap = engine.reset()
            console.print("[dim]Back to the first card.[/dim]")
        console.print()

    summary = engine.finish()
    console.print(
        f"[bold]Session complete![/bold] Known {snap.resolved_count}/{snap.total} "
        f"in {format_duration(summary.time_spent)}\n"
    )
    save_progress(store, user_id, summary)
    return summary


def pick_document(store, user_id: str) -> Optional[Document]:
    documents = store.list_documents(user_id)
    if not documents:
        console.print("[yellow]No documents yet. Use 'upload' to add one.[/yellow]")
        return None
    for i, doc in enumerate(documents, 1):
        console.print(f"  [cyan]{i}[/cyan]) {doc.title}")
    choice = session_int_prompt("Select document", choices=[str(i) for i in range(1, len(documents) + 1)])
    return documents[choice - 1]


def cmd_documents(store, settings: Settings):
    term = Prompt.ask("Search (Enter for all)", default="")
    documents = search_documents(store, settings.user_id, term)
    if not documents:
        console.print("[yellow]No matching documents.[/yellow]")
        return
    table = Table(title="Documents")
    table.add_column("Title", style="cyan")
    table.add_column("Added")
    table.add_column("Summary")
    for doc in documents:
        summary = doc.summary or ""
        if len(summary) > 120:
            summary = summary[:120] + "..."
        table.add_row(doc.title, (doc.created_at or "")[:10], summary)
    console.print(table)


def cmd_upload(store, settings: Settings):
    if not settings.has_ai_configured():
        console.print("[red]Set OPENAI_API_KEY to generate study material.[/red]")
        return
    generator = GenerationService.from_settings(settings)
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    with console.status("Generating summary, quiz and flashcards..."):
        result = import_document(
            store, generator, settings.user_id, file_path,
            quiz_count=settings.quiz_count, flashcard_count=settings.flashcard_count,
        )
    console.print(Panel(result.summary.summary, title=result.document.title, border_style="green"))
    for point in result.summary.key_points:
        console.print(f"  - {point}")
    console.print(
        f"[green]Imported {result.document.title} ({result.length} chars): "
        f"{len(result.quiz_items)} questions, {len(result.flashcards)} flashcards[/green]"
    )


def cmd_quiz(store, settings: Settings):
    console.print("\n[bold]Practice Quiz[/bold]")
    doc = pick_document(store, settings.user_id)
    if doc is None:
        return
    deck = Deck(doc.id, store.list_quiz_items(doc.id))
    run_quiz_session(store, settings.user_id, deck)


def cmd_flashcards(store, settings: Settings):
    console.print("\n[bold]Flashcard Drill[/bold]")
    doc = pick_document(store, settings.user_id)
    if doc is None:
        return
    mode = Prompt.ask("Order", choices=[SEQUENTIAL, SHUFFLED], default=SEQUENTIAL)
    deck = Deck(doc.id, store.list_flashcards(doc.id))
    run_flashcard_session(store, settings.user_id, deck, mode)


def cmd_dashboard(store, settings: Settings):
    stats = get_study_stats(store, settings.user_id)
    summarized_pct = round(stats["summarized"] / stats["documents"] * 100) if stats["documents"] else 0
    console.print(Panel(
        f"Documents: [bold]{stats['documents']}[/bold]  |  "
        f"Summarized: [bold]{stats['summarized']}[/bold] ({summarized_pct}%)  |  "
        f"Quiz questions: [bold]{stats['quizzes']}[/bold]  |  "
        f"Flashcards: [bold]{stats['flashcards']}[/bold]  |  "
        f"Study time: [bold]{format_duration(stats['total_time'])}[/bold]  |  "
        f"Avg quiz: [bold]{stats['avg_quiz_score']}%[/bold]",
        title="Dashboard", border_style="blue",
    ))

    titles = {d.id: d.title for d in store.list_documents(settings.user_id)}
    recent = get_recent_progress(store, settings.user_id)
    if recent:
        table = Table(title="Recent Activity")
        table.add_column("Document", style="cyan")
        table.add_column("Quiz", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Last studied")
        for p in recent:
            if p.quiz_score is None:
                score = "-"
            else:
                color = get_score_color(p.quiz_score)
                score = f"[{color}]{p.quiz_score}%[/{color}]"
            table.add_row(
                titles.get(p.document_id, p.document_id), score,
                format_duration(p.time_spent), (p.last_accessed or "")[:16].replace("T", " "),
            )
        console.print(table)

    docs = get_recent_documents(store, settings.user_id)
    if docs:
        console.print("\n[bold]Recent documents:[/bold]")
        for d in docs:
            console.print(f"  [cyan]{d.title}[/cyan] [dim]{(d.created_at or '')[:10]}[/dim]")


def cmd_delete(store, settings: Settings):
    doc = pick_document(store, settings.user_id)
    if doc is None:
        return
    if not Confirm.ask(f"Delete '{doc.title}'? This cannot be undone", default=False):
        return
    if store.delete_document(doc.id):
        console.print(f"[green]Deleted {doc.title}[/green]")
    else:
        console.print("[yellow]Document was already gone.[/yellow]")


COMMANDS = {
    "documents": cmd_documents,
    "upload": cmd_upload,
    "quiz": cmd_quiz,
    "flashcards": cmd_flashcards,
    "dashboard": cmd_dashboard,
    "delete": cmd_delete,
}


def main():
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper(), format="<level>{message}</level>")

    store = SQLiteContentStore(settings.db_path)
    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="dashboard").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]Happy studying![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(store, settings)
        except SessionExitRequested:
            console.print("[dim]Session abandoned. Back to the menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
