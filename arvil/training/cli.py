"""
Arvil: terminal front end for the training core.

Commands:
- arvil due           - List facts due for re-testing
- arvil add           - Track a fact manually
- arvil review        - Re-test due facts
- arvil phonetic      - NATO phonetic drill on given plates
- arvil ndm           - Record a National Decision Model write-up
- arvil stats         - Progress, competency tier and rank
- arvil history       - Recent drill results
- arvil achievements  - Achievement unlocks
- arvil export        - Write all data as JSON
- arvil import        - Restore an export document
- arvil reset         - Clear all progress (backup first)
"""
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from arvil.config import Settings, get_settings

from .achievements import calculate_xp, get_achievements, rank_for_xp, xp_progress
from .drills import DrillRecorder, FactOutcome, new_drill_result
from .errors import StoreImportError
from .models import DAY_MS, NDMEntry, SpacedItem, generate_id, ms_to_datetime, now_ms
from .phonetic import check_nato_answer, plate_to_nato
from .scheduler import SM2Scheduler, accuracy_to_quality, get_competency_level
from .state_store import SQLiteStateStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="arvil",
    help="Arvil: recall drills with spaced repetition",
    no_args_is_help=True,
)
console = Console()

PHONETIC_PASS_ACCURACY = 80.0

TIER_STYLES = {
    "gold": "bold yellow",
    "silver": "bold white",
    "bronze": "bold dark_orange",
}


def _open_store(settings: Settings | None = None) -> SQLiteStateStore:
    settings = settings or get_settings()
    store = SQLiteStateStore(settings.resolved_db_path)
    store.backup_dir = settings.data_dir / "backups"
    return store


def _scheduler(store: SQLiteStateStore, settings: Settings | None = None) -> SM2Scheduler:
    settings = settings or get_settings()
    return SM2Scheduler(store, settings.get_sm2_config())


def _normalize(text: str) -> str:
    return "".join(text.split()).upper()


def _format_due(item: SpacedItem, now: int) -> str:
    if item.is_due(now):
        overdue_days = (now - item.next_review) // DAY_MS
        return "[yellow]due[/yellow]" if overdue_days == 0 else f"[red]{overdue_days}d overdue[/red]"
    return item.next_review_at.strftime("%Y-%m-%d %H:%M")


# =============================================================================
# Item Commands
# =============================================================================


@app.command()
def due(
    item_type: Optional[str] = typer.Option(
        None,
        "--type", "-t",
        help="Only show facts from this drill type",
    ),
) -> None:
    """List facts due for re-testing."""
    store = _open_store()
    now = now_ms()
    items = store.get_due_items(now, item_type=item_type)

    if not items:
        console.print("[green]Nothing due. All caught up.[/green]")
        return

    table = Table(title=f"{len(items)} due")
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Fact")
    table.add_column("Reps", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Status")

    for item in items:
        table.add_row(
            item.id,
            item.item_type,
            item.content,
            str(item.repetitions),
            f"{item.ease_factor:.2f}",
            _format_due(item, now),
        )

    console.print(table)


@app.command()
def add(
    item_type: str = typer.Argument(..., help="Drill type, e.g. reg-plate"),
    content: str = typer.Argument(..., help="The fact to track"),
) -> None:
    """Track a fact for spaced re-testing."""
    store = _open_store()
    item = _scheduler(store).create_spaced_item(item_type, content)
    console.print(
        f"[green]Tracking[/green] {item.content!r} ({item.item_type}), "
        f"first review {item.next_review_at:%Y-%m-%d %H:%M}"
    )


def _grade_recall() -> int:
    """Self-grade a recall."""
    console.print("\n[dim]Rate your recall:[/dim]")
    console.print("  5 = Perfect recall")
    console.print("  4 = Correct with hesitation")
    console.print("  3 = Correct with difficulty")
    console.print("  2 = Incorrect, but knew it")
    console.print("  1 = Incorrect, vaguely familiar")
    console.print("  0 = Complete blackout")

    return IntPrompt.ask("Grade", choices=["0", "1", "2", "3", "4", "5"])


@app.command()
def review(
    item_type: Optional[str] = typer.Option(
        None,
        "--type", "-t",
        help="Only review facts from this drill type",
    ),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum facts to review"),
    flash: Optional[float] = typer.Option(
        None,
        "--flash", "-f",
        help="Seconds to show each fact before recall",
    ),
    self_grade: bool = typer.Option(
        False,
        "--self-grade",
        help="Grade recall 0-5 yourself instead of typing the fact",
    ),
) -> None:
    """
    Re-test facts that are due.

    Each fact is flashed, hidden, then recalled. A typed recall is marked
    right or wrong ignoring spacing and case.
    """
    settings = get_settings()
    store = _open_store(settings)
    scheduler = _scheduler(store, settings)
    flash_seconds = settings.review_flash_seconds if flash is None else flash

    items = scheduler.get_due_items(item_type=item_type)[:limit]
    if not items:
        console.print("[green]Nothing due for review![/green]")
        raise typer.Exit(0)

    correct_count = 0
    try:
        for i, item in enumerate(items, 1):
            console.print(Panel(
                item.content,
                title=f"{i}/{len(items)}  |  {item.item_type}",
                title_align="left",
                border_style="cyan",
                padding=(1, 2),
            ))
            if flash_seconds > 0:
                time.sleep(flash_seconds)
                console.clear()

            if self_grade:
                grade = _grade_recall()
            else:
                answer = Prompt.ask("Recall")
                correct = _normalize(answer) == _normalize(item.content)
                grade = accuracy_to_quality(100 if correct else 0)

            updated = scheduler.process_review(item, grade)
            if grade >= 3:
                correct_count += 1
                console.print(f"[green]Correct[/green]  next in {updated.interval}d")
            else:
                console.print(
                    f"[red]Missed[/red]  expected {item.content!r}, back tomorrow"
                )
    except KeyboardInterrupt:
        console.print("\n[yellow]Review interrupted.[/yellow]")

    console.print(f"\n[bold]{correct_count}/{len(items)} recalled[/bold]")


# =============================================================================
# Drill Commands
# =============================================================================


@app.command()
def phonetic(
    plates: list[str] = typer.Argument(..., help="Plates to transcribe, e.g. AB12CDE"),
) -> None:
    """Transcribe plates into the NATO phonetic alphabet."""
    settings = get_settings()
    store = _open_store(settings)
    recorder = DrillRecorder(store, _scheduler(store, settings))

    rounds = []
    facts = []
    for plate in plates:
        expected = plate_to_nato(plate)
        console.print(Panel(plate.upper(), border_style="cyan", padding=(1, 2)))

        start = time.time()
        answer = Prompt.ask("NATO")
        elapsed_ms = int((time.time() - start) * 1000)

        score = check_nato_answer(expected, answer)
        passed = score.accuracy >= PHONETIC_PASS_ACCURACY
        style = "green" if passed else "red"
        console.print(f"[{style}]{score.accuracy:.0f}%[/{style}]  {' '.join(expected)}")

        rounds.append({
            "plate": plate,
            "expected": expected,
            "answer": answer,
            "matches": score.matches,
            "accuracy": score.accuracy,
            "timeMs": elapsed_ms,
        })
        facts.append(FactOutcome(content=plate.upper(), correct=passed))

    accuracy = sum(r["accuracy"] for r in rounds) / len(rounds)
    speed = sum(r["timeMs"] for r in rounds) / len(rounds)
    result = new_drill_result(
        "phonetic",
        accuracy=accuracy,
        speed_ms=speed,
        difficulty=3,
        details={"results": rounds},
    )
    summary = recorder.complete_drill(result, facts)

    tier = get_competency_level(accuracy)
    console.print(
        f"\n[{TIER_STYLES[tier.value]}]{tier.label}[/{TIER_STYLES[tier.value]}]  "
        f"{accuracy:.1f}% accuracy, {summary.missed} new fact(s) to revisit"
    )


@app.command()
def ndm(
    drill_id: Optional[str] = typer.Option(None, "--drill", help="Link to a drill result id"),
) -> None:
    """Record a National Decision Model write-up."""
    store = _open_store()
    stages = {}
    for stage in ("gather", "assess", "powers", "options", "action", "review"):
        stages[stage] = Prompt.ask(stage.capitalize(), default="")

    entry = NDMEntry(id=generate_id(), timestamp=now_ms(), drill_id=drill_id, **stages)
    store.save_ndm_entry(entry)
    console.print(f"[green]Saved NDM entry {entry.id}[/green]")


# =============================================================================
# Progress Commands
# =============================================================================


@app.command()
def stats() -> None:
    """Show training statistics and progress."""
    store = _open_store()
    user_stats = store.get_user_stats()
    results = store.get_drill_results()
    xp = calculate_xp(results)
    rank = rank_for_xp(xp)
    progress = xp_progress(xp)
    tier = get_competency_level(user_stats.total_accuracy)

    console.print("\n[bold cyan]Training Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Drills completed", str(user_stats.total_drills))
    table.add_row("Average accuracy", f"{user_stats.total_accuracy:.1f}%")
    table.add_row("Best accuracy", f"{user_stats.best_accuracy:.1f}%")
    table.add_row("Competency", f"[{TIER_STYLES[tier.value]}]{tier.label}[/{TIER_STYLES[tier.value]}]")
    table.add_row("Streak", f"{user_stats.streak} day(s)")
    table.add_row("Plates", f"{user_stats.plates_correct}/{user_stats.plates_attempted}")
    table.add_row("Scenes", f"{user_stats.scenes_correct}/{user_stats.scenes_attempted}")
    table.add_row("Facts tracked", str(len(store.get_all())))
    table.add_row("Facts due", str(store.count_due_items()))
    table.add_row("Rank", f"{rank.icon} {rank.rank}")
    table.add_row("XP", f"{xp} ({progress.percent:.0f}% to {progress.next_threshold})")

    console.print(table)


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Number of results to show"),
) -> None:
    """Show recent drill results."""
    store = _open_store()
    results = store.get_drill_results()[-limit:][::-1]

    if not results:
        console.print("[dim]No drills recorded yet.[/dim]")
        return

    table = Table()
    table.add_column("When")
    table.add_column("Drill")
    table.add_column("Accuracy", justify="right")
    table.add_column("Speed", justify="right")
    table.add_column("Tier")

    for r in results:
        tier = get_competency_level(r.accuracy)
        table.add_row(
            ms_to_datetime(r.timestamp).strftime("%Y-%m-%d %H:%M"),
            r.drill_type,
            f"{r.accuracy:.0f}%",
            f"{r.speed_ms / 1000:.1f}s",
            f"[{TIER_STYLES[tier.value]}]{tier.label}[/{TIER_STYLES[tier.value]}]",
        )

    console.print(table)


@app.command()
def achievements() -> None:
    """List achievements and which are unlocked."""
    store = _open_store()
    unlocks = get_achievements(store.get_drill_results(), store.get_user_stats())

    table = Table(title=f"{sum(ok for _, ok in unlocks)}/{len(unlocks)} unlocked")
    table.add_column("")
    table.add_column("Achievement")
    table.add_column("Category", style="dim")

    for achievement, unlocked in unlocks:
        mark = "[green]✓[/green]" if unlocked else "[dim]·[/dim]"
        title = f"[bold]{achievement.title}[/bold]" if unlocked else achievement.title
        table.add_row(mark, f"{achievement.icon} {title}\n[dim]{achievement.description}[/dim]",
                      achievement.category.value)

    console.print(table)


# =============================================================================
# Data Commands
# =============================================================================


@app.command("export")
def export_data(
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Write to this file instead of stdout",
    ),
) -> None:
    """Export all progress as a JSON document."""
    document = _open_store().export_all()
    if output is None:
        typer.echo(document)
        return
    output.write_text(document, encoding="utf-8")
    console.print(f"[green]Exported to {output}[/green]")


@app.command("import")
def import_data(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Export document"),
) -> None:
    """Restore progress from an export document."""
    store = _open_store()
    try:
        counts = store.import_data(source.read_text(encoding="utf-8"))
    except StoreImportError as e:
        console.print(f"[red]Import failed:[/red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[green]Restored[/green] {counts['spacedItems']} facts, "
        f"{counts['drillResults']} results, {counts['ndmEntries']} NDM entries"
    )


@app.command()
def reset(
    force: bool = typer.Option(
        False,
        "--force", "--yes", "-y",
        help="Skip confirmation",
    ),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not write a backup first"),
) -> None:
    """Clear all progress for a fresh start."""
    if not force and not Confirm.ask("Delete ALL progress? A backup is written first.", default=False):
        raise typer.Exit(0)

    store = _open_store()
    backup_file = store.clear_all(backup=not no_backup)
    if backup_file:
        console.print(f"Backup saved: {backup_file}")
    console.print("[green]All progress cleared[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def configure_logging(settings: Settings) -> None:
    """Route loguru to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="1 MB",
            retention=5,
        )


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
