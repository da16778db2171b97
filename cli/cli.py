"""Developer CLI for the plan generation pipeline.

Drives the same orchestrator code path as production: create a job from a
profile file, then advance it one step at a time or until it is terminal.

Usage:
    fitplan init-db
    fitplan start profile.json --user-id 42
    fitplan check-goal --weight 80 --target 74 --weeks 8 --goal loss
    fitplan advance <job_id>
    fitplan run <job_id>
    fitplan status <job_id>
"""

import json
from pathlib import Path

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from fitplan.config.settings import settings
from fitplan.core.logger import setup_logger
from fitplan.db.session import init_db
from fitplan.generation.errors import (
    DataIntegrityError,
    GenerationTransportError,
    JobBusyError,
    JobNotFoundError,
    PersistenceError,
)
from fitplan.generation.jobs import JobState, JobStatus
from fitplan.generation.orchestrator import build_orchestrator
from fitplan.profile.energy import assess_weight_goal
from fitplan.profile.models import Goal, UserProfile

app = typer.Typer(help="Progressive fitness plan generation", no_args_is_help=True)
console = Console()

EXIT_FAILED = 1
EXIT_BUSY = 2

_STATUS_STYLES: dict[JobStatus, str] = {
    JobStatus.PENDING: "white",
    JobStatus.GENERATING: "cyan",
    JobStatus.COMPLETED: "green",
    JobStatus.ERROR: "red",
}

_GOAL_STYLES = {"possible": "green", "challenging": "yellow", "not_possible": "red"}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging")) -> None:
    setup_logger(level="DEBUG" if verbose else settings.log_level, log_file=settings.log_file)


def _render_state(state: JobState, title: str = "Generation job") -> None:
    style = _STATUS_STYLES.get(state.status, "white")
    table = Table(show_header=False, box=None)
    table.add_row("job_id", state.job_id)
    table.add_row("status", f"[{style}]{state.status}[/{style}]")
    table.add_row("step", f"{state.current_step}/{state.total_steps}")
    if state.result_plan_id:
        table.add_row("plan_id", state.result_plan_id)
    if state.error_detail:
        table.add_row("error", f"[red]{escape(state.error_detail)}[/red]")
    console.print(Panel(table, title=title, border_style=style))


def _advance_once(job_id: str) -> JobState:
    """Advance a job, mapping pipeline errors to exit codes."""
    try:
        return build_orchestrator().advance(job_id)
    except JobNotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_FAILED) from e
    except JobBusyError as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        _render_state(e.state, title="Current state")
        raise typer.Exit(EXIT_BUSY) from e
    except (PersistenceError, GenerationTransportError) as e:
        console.print(f"[red]{type(e).__name__}: {escape(str(e))}[/red]")
        console.print("Nothing was written; the job can be advanced again.")
        raise typer.Exit(EXIT_FAILED) from e
    except DataIntegrityError as e:
        console.print(f"[red]Job record is inconsistent: {escape(str(e))}[/red]")
        raise typer.Exit(EXIT_FAILED) from e


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables."""
    init_db()
    console.print("[green]Database schema ready[/green]")


@app.command()
def start(
    profile_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with the user profile"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="Owning user id"),
) -> None:
    """Create a new generation job for a profile."""
    try:
        profile = UserProfile.model_validate(json.loads(profile_path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid profile file {profile_path}:[/red]\n{escape(str(e))}")
        raise typer.Exit(EXIT_FAILED) from e

    try:
        state = build_orchestrator().start(user_id, profile)
    except PersistenceError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_FAILED) from e
    _render_state(state, title="Job created")


@app.command("check-goal")
def check_goal(
    weight: float = typer.Option(..., "--weight", min=0.1, help="Current weight in kg"),
    target: float = typer.Option(..., "--target", min=0.1, help="Target weight in kg"),
    weeks: int = typer.Option(..., "--weeks", min=1, help="Weeks to reach the target"),
    goal: Goal = typer.Option(..., "--goal", help="Declared goal"),
) -> None:
    """Check whether a weight goal is realistic. Exits 1 when it is not."""
    assessment = assess_weight_goal(weight, target, weeks, goal)
    style = _GOAL_STYLES[assessment.status]
    console.print(f"[{style}]{assessment.status}[/{style}]: {assessment.weekly_change_kg:.2f} kg/week")
    if assessment.status == "not_possible":
        raise typer.Exit(EXIT_FAILED)


@app.command()
def advance(job_id: str = typer.Argument(..., help="Job to advance")) -> None:
    """Run the next step of a job."""
    state = _advance_once(job_id)
    _render_state(state)
    if state.status == JobStatus.ERROR:
        raise typer.Exit(EXIT_FAILED)


@app.command()
def run(
    job_id: str = typer.Argument(..., help="Job to run"),
    max_steps: int = typer.Option(0, "--max-steps", help="Stop after this many advance calls (0 = total steps)"),
) -> None:
    """Advance a job until it completes or fails."""
    state = _advance_once(job_id)
    limit = max_steps or state.total_steps
    calls = 1
    console.print(f"step {state.current_step}/{state.total_steps}: {state.status}")

    while state.status not in (JobStatus.COMPLETED, JobStatus.ERROR) and calls < limit:
        state = _advance_once(job_id)
        calls += 1
        console.print(f"step {state.current_step}/{state.total_steps}: {state.status}")

    if state.status not in (JobStatus.COMPLETED, JobStatus.ERROR):
        logger.bind(job_id=job_id, calls=calls).warning("Advance call limit reached before job finished")
    _render_state(state)
    if state.status == JobStatus.ERROR:
        raise typer.Exit(EXIT_FAILED)


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Job to inspect"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show a job's state."""
    try:
        state = build_orchestrator().status(job_id)
    except JobNotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_FAILED) from e

    if as_json:
        console.print(JSON(json.dumps(state.to_dict())))
    else:
        _render_state(state)


if __name__ == "__main__":
    app()
