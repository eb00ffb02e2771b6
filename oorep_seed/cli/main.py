"""
Typer CLI for the OOREP seeding pipeline.

Commands:
    oorep-seed seed                    - Seed from the configured source
    oorep-seed seed --file oorep.sql   - Seed from a SQL dump (gzip allowed)
    oorep-seed seed --dry-run          - Run against an in-memory store
    oorep-seed verify                  - Count seeded data against expected volumes
    oorep-seed clear --yes             - Delete seeded classical-homeopathy data

Usage:
    oorep-seed --help
    python -m oorep_seed seed --file ../oorep.sql.gz
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from oorep_seed.exceptions import SeedError

app = typer.Typer(
    help="oorep-seed: load the OOREP repertory into the clinic knowledge base",
    no_args_is_help=True,
)

console = Console()

LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Replace loguru's default sink with stderr and an optional rotating file."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)"
    ),
) -> None:
    """Seed the clinic knowledge base from OOREP."""
    settings = get_settings()
    configure_logging((log_level or settings.log_level).upper(), settings.log_file)


# ========================================
# SEED
# ========================================


@app.command("seed")
def seed(
    file: Path = typer.Option(
        None, "--file", "-f", help="OOREP SQL dump (overrides OOREP_SQL_FILE)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Load into an in-memory store instead of MongoDB"
    ),
) -> None:
    """
    Extract, transform and load OOREP rubrics, remedies and mappings.

    Safe to re-run: existing records are detected by natural key and skipped.

    Examples:
        oorep-seed seed --file oorep.sql.gz
        oorep-seed seed                    # reads OOREP_DB_* PostgreSQL settings
    """
    from oorep_seed.etl import run_seed

    settings = get_settings()
    dry_run = dry_run or settings.dry_run

    rprint("\n[bold cyan]OOREP -> Knowledge Base Seed[/bold cyan]")
    rprint(f"  Source: {file or settings.oorep_sql_file or 'PostgreSQL'}")
    rprint(f"  Dry run: {dry_run}\n")

    try:
        result = run_seed(settings, dump_file=file, dry_run=dry_run)
    except SeedError as exc:
        logger.error("Seed aborted: {}", exc)
        rprint(f"[red]Seed aborted:[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Seed Results", show_header=True)
    table.add_column("Entity", style="cyan")
    table.add_column("Extracted", justify="right")
    table.add_column("Accepted", justify="right")
    table.add_column("Dropped", style="dim")
    table.add_column("Inserted", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Skipped", justify="right", style="dim")
    table.add_column("Failed", justify="right", style="red")

    for row in result.summary_rows():
        dropped = ", ".join(f"{reason}={count}" for reason, count in row["dropped"].items())
        table.add_row(
            row["entity"],
            str(row["extracted"]),
            str(row["accepted"]),
            dropped or "-",
            str(row["inserted"]),
            str(row["updated"]),
            str(row["skipped"]),
            str(row["failed"]) if row["failed"] else "-",
        )

    console.print(table)
    if result.malformed:
        rprint(f"[yellow]Malformed source rows skipped:[/yellow] {dict(result.malformed)}")
    rprint(f"\nCompleted in {result.duration_seconds:.1f}s")

    if not result.success:
        rprint(f"[red]{result.failed} records failed to load[/red]")
        raise typer.Exit(code=1)


# ========================================
# VERIFY / CLEAR
# ========================================


@app.command("verify")
def verify() -> None:
    """Count seeded data and compare it with the expected OOREP volumes."""
    from oorep_seed.db import open_store
    from oorep_seed.etl import verify_seed

    try:
        with open_store(get_settings()) as store:
            report = verify_seed(store)
    except SeedError as exc:
        rprint(f"[red]Verification failed:[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title="Knowledge Base Contents")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Rubrics", str(report.rubrics_total))
    table.add_row("  global", str(report.rubrics_global))
    for repertory, count in report.rubrics_by_type.items():
        table.add_row(f"  {repertory}", str(count))
    table.add_row("Remedies", str(report.remedies_total))
    table.add_row("  global", str(report.remedies_global))
    table.add_row("Mappings", str(report.mappings_total))
    for repertory, count in report.mappings_by_type.items():
        table.add_row(f"  {repertory}", str(count))
    table.add_row("Orphaned rubric refs", str(report.orphaned_rubric_refs))
    table.add_row("Orphaned remedy refs", str(report.orphaned_remedy_refs))
    console.print(table)

    for check in report.checks:
        mark = "[green]OK[/green]" if check.passed else "[red]LOW[/red]"
        rprint(f"  {mark} {check.name}: {check.actual} (expected ~{check.expected})")

    if report.sample_mappings:
        rprint("\n[bold]Sample mappings[/bold]")
        for sample in report.sample_mappings:
            rubric = (sample["rubric"] or "N/A")[:40]
            rprint(f"  [{sample['repertoryType']}] grade {sample['grade']}: {sample['remedy']} -> {rubric}")

    colour = "green" if report.passed else "yellow"
    rprint(f"\n[{colour}]Seeding verification: {report.verdict}[/{colour}]")


@app.command("clear")
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete seeded classical-homeopathy rubrics, remedies and all mappings."""
    from oorep_seed.db import open_store
    from oorep_seed.etl import clear_seeded_data

    if not yes and not typer.confirm("Delete all seeded OOREP data?"):
        raise typer.Abort()

    try:
        with open_store(get_settings()) as store:
            deleted = clear_seeded_data(store)
    except SeedError as exc:
        rprint(f"[red]Clear failed:[/red] {exc}")
        raise typer.Exit(code=1)

    for collection, count in deleted.items():
        rprint(f"  Deleted {count} from [cyan]{collection}[/cyan]")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
