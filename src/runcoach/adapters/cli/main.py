"""
adapters.cli.main - Terminal front end for the coaching workflows.

Commands
--------
  init-db         Create tables, optionally register the athlete
  morning         Run the morning briefing
  chat            Ask the coaches (one message, or interactive without one)
  post-run        Sync and analyze the latest run
  weekly          Review readiness and adjust next week
  weekly-summary  Summarize the week that is ending
  board           Show recent whiteboard entries

Every command takes ``--user`` (env RUNCOACH_USER). Configuration comes
from the environment / .env (see infrastructure.config).

Usage
-----
  runcoach init-db --name "Sam" --timezone America/Denver
  runcoach morning
  runcoach chat "how did my long run look?"
  runcoach post-run --feedback "legs heavy" --rpe 7
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from runcoach import __version__
from runcoach.adapters.cli.session import ChatSession, clear_session, load_session, save_session
from runcoach.domain.entities import User
from runcoach.domain.exceptions import CoachError
from runcoach.domain.models import WhiteboardQuery
from runcoach.factory import ServiceFactory
from runcoach.infrastructure.config import Settings
from runcoach.infrastructure.log import configure_logging
from runcoach.workflows import (
    ChatFlowOptions,
    MorningFlowOptions,
    PostRunFlowOptions,
    WeeklyReviewOptions,
    WeeklySummaryOptions,
    run_chat_flow,
    run_morning_flow,
    run_post_run_flow,
    run_weekly_review_flow,
    run_weekly_summary_flow,
)
from runcoach.workflows.base import StageOutcome

console = Console()
app = typer.Typer(
    help="Running coach CLI",
    add_completion=False,
    no_args_is_help=True,
)

UserOption = typer.Option("default", "--user", "-u", envvar="RUNCOACH_USER", help="Athlete id.")

_STATUS_STYLE = {"ok": "green", "failed": "bold red", "skipped": "dim"}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

async def _make_factory() -> ServiceFactory:
    try:
        settings = Settings.from_env()
    except CoachError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=2)
    factory = ServiceFactory(settings)
    await factory.initialize()
    return factory


async def _timezone_for(factory: ServiceFactory, user_id: str) -> str:
    user = await factory.store.users.get_by_id(user_id)
    return user.timezone if user and user.timezone else factory.settings.default_timezone


def _print_stages(stages: tuple[StageOutcome, ...]) -> None:
    t = Table(box=box.SIMPLE, show_header=True, padding=(0, 2))
    t.add_column("Stage", style="bold")
    t.add_column("Status")
    t.add_column("Time", justify="right")
    t.add_column("Error", style="red")
    for s in stages:
        style = _STATUS_STYLE[s.status]
        t.add_row(s.name, f"[{style}]{s.status}[/{style}]", f"{s.duration_ms:.0f}ms", s.error or "")
    console.print(t)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"runcoach v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands: Setup
# ---------------------------------------------------------------------------

@app.command("init-db")
def init_db(
    user_id: str = UserOption,
    name: Optional[str] = typer.Option(None, "--name", help="Register the athlete under this name."),
    tz: Optional[str] = typer.Option(None, "--timezone", help="IANA timezone of the athlete."),
) -> None:
    """Create the database tables (and the athlete, with --name)."""
    async def _run() -> None:
        factory = await _make_factory()
        if name:
            user = await factory.store.users.save(User(
                id=user_id, name=name, timezone=tz or factory.settings.default_timezone,
            ))
            console.print(f"Registered [bold]{user.name}[/bold] ({user.id}, {user.timezone})")
        console.print(Panel(
            f"[bold green]Database ready[/bold green] at {factory.settings.db_path}",
            border_style="green",
        ))

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Workflows
# ---------------------------------------------------------------------------

@app.command()
def morning(
    user_id: str = UserOption,
    skip_sync: bool = typer.Option(False, "--skip-sync", help="Do not contact the tracker."),
) -> None:
    """Run the morning briefing."""
    async def _run() -> None:
        factory = await _make_factory()
        tz = await _timezone_for(factory, user_id)
        with console.status("[bold cyan]Preparing your morning briefing…", spinner="dots"):
            result = await run_morning_flow(
                factory.store, factory.llm, user_id, tz,
                MorningFlowOptions(skip_metrics_sync=skip_sync, skip_activity_sync=skip_sync),
                tracker_factory=factory.tracker_factory,
                agents=factory.agents,
            )

        if result.health_analysis:
            h = result.health_analysis
            score = f" ({h.recovery_score}%)" if h.recovery_score is not None else ""
            body = h.summary + "".join(f"\n- {c}" for c in h.concerns)
            console.print(Panel(body, title=f"Recovery{score}", border_style="yellow" if h.concerns else "green"))
        if result.training_analysis:
            t = result.training_analysis
            console.print(Panel(
                f"{t.summary}\n\n[bold]Today:[/bold] {t.recommendation or '-'}",
                title="Training", border_style="blue",
            ))
        _print_stages(result.stages)
        if not result.success:
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command()
def chat(
    message: Optional[str] = typer.Argument(None, help="Message; omit for an interactive session."),
    user_id: str = UserOption,
    new: bool = typer.Option(False, "--new", help="Start a fresh conversation."),
) -> None:
    """Ask the coaches a question."""
    async def _run() -> None:
        factory = await _make_factory()
        settings = factory.settings
        tz = await _timezone_for(factory, user_id)
        router = factory.create_router()
        if new:
            clear_session(settings.session_dir)
        session = load_session(settings.session_dir, user_id, settings.session_ttl_minutes)

        async def answer(text: str) -> None:
            nonlocal session
            console.print()
            result = await run_chat_flow(
                factory.store, factory.llm, user_id, text, tz,
                ChatFlowOptions(
                    session_id=session.session_id if session else None,
                    on_chunk=lambda chunk: console.print(chunk, end="", markup=False, highlight=False),
                    agent_options=factory.agent_options,
                ),
                router=router,
                agents=factory.agents,
            )
            console.print()
            console.print(f"[dim]{result.agent_id} · {result.num_turns} turn(s) · ${result.cost_usd:.4f}[/dim]")
            if not result.success:
                console.print(Markdown(result.response))
                for error in result.errors:
                    console.print(f"[red]{error}[/red]")
            if result.session_id:
                session = ChatSession(session_id=result.session_id, user_id=user_id, agent_id=result.agent_id)
                save_session(settings.session_dir, session)

        if message:
            await answer(message)
            return

        console.print(Panel(
            "[bold]Coach chat[/bold]\nType your question, or [bold]exit[/bold] / [bold]quit[/bold] to stop.",
            border_style="cyan",
        ))
        while True:
            try:
                text = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye![/dim]")
                break
            if text.strip().lower() in ("exit", "quit", "q", "bye"):
                console.print("[dim]Goodbye![/dim]")
                break
            if text.strip():
                await answer(text)

    asyncio.run(_run())


@app.command("post-run")
def post_run(
    user_id: str = UserOption,
    feedback: Optional[str] = typer.Option(None, "--feedback", "-f", help="How the run felt."),
    rpe: Optional[int] = typer.Option(None, "--rpe", min=1, max=10, help="Perceived exertion 1-10."),
    workout_id: Optional[str] = typer.Option(None, "--workout-id", help="Attach the run to this workout."),
    on_date: Optional[str] = typer.Option(None, "--date", help="Activity date (YYYY-MM-DD)."),
    force: bool = typer.Option(False, "--force", help="Re-sync even if already synced."),
) -> None:
    """Sync the latest run and get the coach's take on it."""
    async def _run() -> None:
        factory = await _make_factory()
        tz = await _timezone_for(factory, user_id)
        with console.status("[bold cyan]Syncing and analyzing your run…", spinner="dots"):
            result = await run_post_run_flow(
                factory.store, factory.llm, user_id, tz,
                PostRunFlowOptions(
                    date=on_date,
                    force_resync=force,
                    target_workout_id=workout_id,
                    athlete_feedback=feedback,
                    perceived_exertion=rpe,
                ),
                tracker_factory=factory.tracker_factory,
                agents=factory.agents,
            )
        title = f"{result.workout.title} ({result.sync_action})" if result.workout else "Post-run"
        console.print(Panel(Markdown(result.conversation_starter), title=title, border_style="green"))
        _print_stages(result.stages)
        if not result.success:
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command()
def weekly(
    user_id: str = UserOption,
    no_apply: bool = typer.Option(False, "--no-apply", help="Propose adjustments without saving them."),
    today: Optional[str] = typer.Option(None, "--today", help="Review as of this date (YYYY-MM-DD)."),
) -> None:
    """Review readiness and adjust next week's plan."""
    async def _run() -> None:
        factory = await _make_factory()
        tz = await _timezone_for(factory, user_id)
        with console.status("[bold cyan]Reviewing the week ahead…", spinner="dots"):
            result = await run_weekly_review_flow(
                factory.store, factory.llm, user_id, tz,
                WeeklyReviewOptions(
                    today=date.fromisoformat(today) if today else None,
                    apply_adjustments=not no_apply,
                    agent_options=factory.agent_options,
                ),
                agents=factory.agents,
            )
        if result.readiness:
            r = result.readiness
            console.print(f"Readiness: [bold]{r.recommendation}[/bold] ({', '.join(r.notes)})")
        for adj in result.adjustments:
            console.print(f"  • {adj.workout_id}: {adj.reason}")
        console.print(Panel(
            result.week_preview or "[dim]No preview[/dim]",
            title=f"Week {result.week_number}: {result.week_start} to {result.week_end}",
            border_style="blue",
        ))
        _print_stages(result.stages)
        if not result.success:
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command("weekly-summary")
def weekly_summary(
    user_id: str = UserOption,
    today: Optional[str] = typer.Option(None, "--today", help="Summarize the week containing this date (YYYY-MM-DD)."),
) -> None:
    """Summarize the week that is ending and save it for later prompts."""
    async def _run() -> None:
        factory = await _make_factory()
        tz = await _timezone_for(factory, user_id)
        with console.status("[bold cyan]Summarizing the week…", spinner="dots"):
            result = await run_weekly_summary_flow(
                factory.store, factory.llm, user_id, tz,
                WeeklySummaryOptions(
                    today=date.fromisoformat(today) if today else None,
                    agent_options=factory.agent_options,
                ),
                agents=factory.agents,
            )
        s = result.stats
        console.print(
            f"[bold]{s.total_miles:g} mi[/bold] in {s.total_duration_minutes} min · "
            f"{s.workouts_completed} completed, {s.workouts_skipped} skipped · "
            f"pace {s.avg_pace or 'n/a'} · HR {s.avg_heart_rate or 'n/a'}"
        )
        console.print(Panel(
            Markdown(result.summary) if result.summary else "[dim]No summary[/dim]",
            title=f"Week {result.week_number}: {result.week_start} to {result.week_end}",
            border_style="blue",
        ))
        _print_stages(result.stages)
        if not result.success:
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command()
def board(
    user_id: str = UserOption,
    entry_type: list[str] = typer.Option([], "--type", "-t", help="Filter by entry type (repeatable)."),
    author: list[str] = typer.Option([], "--author", "-a", help="Filter by agent id (repeatable)."),
    hours: float = typer.Option(72, "--hours", help="Look back this many hours."),
    limit: int = typer.Option(20, "--limit", "-n"),
) -> None:
    """Show recent whiteboard entries."""
    async def _run() -> None:
        factory = await _make_factory()
        entries = await factory.store.board.query(user_id, WhiteboardQuery(
            entry_types=tuple(entry_type), authors=tuple(author), since_hours=hours, limit=limit,
        ))
        if not entries:
            console.print("[dim]The whiteboard is empty.[/dim]")
            return
        t = Table(box=box.SIMPLE, padding=(0, 1))
        t.add_column("P", justify="right")
        t.add_column("Type", style="bold")
        t.add_column("Author")
        t.add_column("Entry")
        t.add_column("Date", style="dim")
        for e in entries:
            text = f"[bold]{e.title}[/bold]\n{e.content}" if e.title else e.content
            t.add_row(str(e.priority), e.entry_type, e.agent_id, text, e.context_date or e.created_at[:10])
        console.print(t)

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level."),
) -> None:
    """Running coach CLI"""
    settings_level = "DEBUG" if verbose else None
    try:
        settings = Settings.from_env()
        configure_logging(settings_level or settings.log_level, settings.log_json)
    except CoachError:
        configure_logging(settings_level or "INFO")


if __name__ == "__main__":
    app()
