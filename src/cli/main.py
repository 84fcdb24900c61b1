"""
Typer CLI for the paper-practice service.

Commands:
    paper-practice db init                  - Initialize database tables
    paper-practice catalog import PATH      - Publish papers from JSON seed files
    paper-practice catalog verify           - Check every paper holds questions 1..100
    paper-practice catalog list             - List published papers
    paper-practice leaderboard show         - Show the global leaderboard
    paper-practice leaderboard rebuild      - Recompute the leaderboard from results
    paper-practice user sessions USER_ID    - List a user's in-progress sessions
    paper-practice user results USER_ID     - List a user's completed attempts
    paper-practice user reset USER_ID       - Clear all of a user's sessions

Usage:
    paper-practice --help
    paper-practice catalog import data/papers
    paper-practice user reset candidate-42 --yes
"""

from __future__ import annotations

from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from src.core.logging_config import configure_logging
from src.quiz.errors import PracticeError

app = typer.Typer(
    help="paper-practice CLI: catalog, leaderboard and user maintenance",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Lazily builds the session factory and service so ``--help`` never touches
    the database.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self.settings = get_settings()
        self._session_factory = session_factory
        self._service = None

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            from src.db.database import SessionLocal

            self._session_factory = SessionLocal
        return self._session_factory

    @property
    def service(self):
        """Lazy load PracticeService."""
        if self._service is None:
            from src.quiz.service import PracticeService

            self._service = PracticeService(self.session_factory, settings=self.settings)
        return self._service


def _build_context() -> CLIContext:
    """Build CLI context with dependency injection."""
    return CLIContext()


def _fail(exc: PracticeError) -> None:
    rprint(f"[red]✗[/red] {exc.message}")
    for key, value in exc.details.items():
        rprint(f"  [dim]{key}:[/dim] {value}")
    raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Maintenance commands for the quiz-practice backend."""
    if ctx.obj is None:
        ctx.obj = _build_context()
    if verbose:
        configure_logging(level="DEBUG")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init(ctx: typer.Context) -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from src.db.database import init_db

    logger.info("Initializing database tables...")
    init_db(bind=ctx.obj.session_factory.kw["bind"])
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# CATALOG COMMANDS
# ========================================

catalog_app = typer.Typer(help="Question catalog (import, verify, list)")
app.add_typer(catalog_app, name="catalog")


@catalog_app.command("import")
def catalog_import(
    ctx: typer.Context,
    path: Path | None = typer.Argument(
        None, help="Seed file or directory (default: CATALOG_DIR setting)"
    ),
) -> None:
    """Publish papers from JSON seed files. Already published papers are left as-is."""
    from src.db.database import session_scope
    from src.quiz.catalog_loader import CatalogLoader

    source = path or Path(ctx.obj.settings.catalog_dir)
    try:
        with session_scope(ctx.obj.session_factory) as db:
            loader = CatalogLoader(db, ctx.obj.settings.questions_per_paper)
            summary = loader.load_directory(source) if source.is_dir() else loader.load_file(source)
    except PracticeError as exc:
        _fail(exc)

    rprint(
        f"[green]✓[/green] {len(summary.created)} papers published, "
        f"{len(summary.unchanged)} unchanged"
    )


@catalog_app.command("verify")
def catalog_verify(ctx: typer.Context) -> None:
    """Check that every paper holds exactly questions 1..N."""
    settings = ctx.obj.settings
    try:
        issues = ctx.obj.service.verify_catalog()
        paper_count = len(ctx.obj.service.list_papers())
    except PracticeError as exc:
        _fail(exc)

    if paper_count != settings.paper_count:
        rprint(
            f"[yellow]![/yellow] {paper_count} papers published, "
            f"{settings.paper_count} expected"
        )

    if not issues:
        rprint(f"[green]✓[/green] {paper_count} papers verified")
        return

    table = Table(title="Inconsistent papers")
    table.add_column("Paper", style="cyan")
    table.add_column("Questions", justify="right")
    table.add_column("Missing")
    table.add_column("Unexpected")
    for issue in issues:
        table.add_row(
            issue.paper_name,
            str(issue.question_count),
            _compact(issue.missing_numbers),
            _compact(issue.unexpected_numbers),
        )
    console.print(table)
    raise typer.Exit(code=1)


@catalog_app.command("list")
def catalog_list(ctx: typer.Context) -> None:
    """List published papers."""
    papers = ctx.obj.service.list_papers()

    table = Table(title=f"Papers ({len(papers)})")
    table.add_column("Paper", style="cyan")
    table.add_column("Title")
    table.add_column("Questions", justify="right")
    for paper in papers:
        table.add_row(paper["name"], paper["title"] or "", str(paper["question_count"]))
    console.print(table)


def _compact(numbers: list[int], limit: int = 10) -> str:
    if len(numbers) <= limit:
        return ", ".join(str(n) for n in numbers)
    return ", ".join(str(n) for n in numbers[:limit]) + f" (+{len(numbers) - limit})"


# ========================================
# LEADERBOARD COMMANDS
# ========================================

leaderboard_app = typer.Typer(help="Global leaderboard")
app.add_typer(leaderboard_app, name="leaderboard")


def _print_leaderboard(entries) -> None:
    table = Table(title="Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Paper")
    table.add_column("Completed")
    for entry in entries:
        table.add_row(
            str(entry.rank),
            entry.display_name,
            str(entry.score),
            entry.paper_name,
            entry.completed_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@leaderboard_app.command("show")
def leaderboard_show(ctx: typer.Context) -> None:
    """Show the current leaderboard."""
    try:
        entries = ctx.obj.service.get_leaderboard()
    except PracticeError as exc:
        _fail(exc)
    if not entries:
        rprint("[dim]No results yet[/dim]")
        return
    _print_leaderboard(entries)


@leaderboard_app.command("rebuild")
def leaderboard_rebuild(ctx: typer.Context) -> None:
    """Recompute the leaderboard from all stored results."""
    try:
        entries = ctx.obj.service.rebuild_leaderboard()
    except PracticeError as exc:
        _fail(exc)
    rprint(f"[green]✓[/green] Leaderboard rebuilt with {len(entries)} entries")
    if entries:
        _print_leaderboard(entries)


# ========================================
# USER COMMANDS
# ========================================

user_app = typer.Typer(help="Per-user sessions, results and reset")
app.add_typer(user_app, name="user")


@user_app.command("sessions")
def user_sessions(ctx: typer.Context, user_id: str = typer.Argument(..., help="User id")) -> None:
    """List a user's in-progress sessions."""
    try:
        sessions = ctx.obj.service.list_sessions(user_id)
    except PracticeError as exc:
        _fail(exc)

    table = Table(title=f"In-progress sessions for {user_id}")
    table.add_column("Paper", style="cyan")
    table.add_column("Question", justify="right")
    table.add_column("Answered", justify="right")
    table.add_column("Version", justify="right")
    table.add_column("Last updated")
    for snapshot in sessions:
        table.add_row(
            snapshot.paper_name,
            str(snapshot.current_question_index),
            str(snapshot.answered_count),
            str(snapshot.version),
            snapshot.last_updated.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@user_app.command("results")
def user_results(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    paper: str | None = typer.Option(None, "--paper", "-p", help="Only this paper"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows"),
) -> None:
    """List a user's completed attempts, most recent first."""
    try:
        results = ctx.obj.service.list_results(user_id, paper, limit)
    except PracticeError as exc:
        _fail(exc)

    table = Table(title=f"Results for {user_id}")
    table.add_column("Paper", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Wrong", justify="right", style="red")
    table.add_column("Minutes", justify="right")
    table.add_column("Completed")
    for record in results:
        table.add_row(
            record.paper_name,
            str(record.score),
            str(record.wrong_answers),
            str(record.time_taken_minutes),
            record.completed_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@user_app.command("reset")
def user_reset(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear every in-progress session of a user. Results are kept."""
    if not yes:
        typer.confirm(f"Clear all in-progress sessions of {user_id}?", abort=True)

    try:
        report = ctx.obj.service.reset_user(user_id)
    except PracticeError as exc:
        _fail(exc)

    rprint(f"[green]✓[/green] Cleared {report.sessions_cleared} sessions for {user_id}")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging(level="WARNING")
    app()


if __name__ == "__main__":
    main()
