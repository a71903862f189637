"""FrostLine CLI — risk scoring for temperature-controlled vehicles and trips.

Commands:
  init-db       — create database tables
  vehicle-risk  — score one vehicle and store a snapshot
  trip-risk     — forecast one trip and store a snapshot
  score-fleet   — score every active vehicle (or trip)
  history       — show stored snapshots for a vehicle or trip
"""
from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from frostline.config import settings
from frostline.exceptions import DataUnavailableError, NotFoundError
from frostline.models.base import EntityKind, RiskLevelEnum

app = typer.Typer(
    name="frostline",
    help="Risk scoring for temperature-controlled vehicles and trips.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_LEVEL_STYLE = {
    RiskLevelEnum.LOW: "green",
    RiskLevelEnum.MEDIUM: "yellow",
    RiskLevelEnum.HIGH: "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(level="DEBUG" if verbose else settings.LOG_LEVEL)


def _build_data_source():
    from frostline.database import SessionLocal
    from frostline.repository import SqlAlchemyRiskDataSource

    return SqlAlchemyRiskDataSource(SessionLocal)


def _run(coro):
    """Run a coroutine, mapping engine errors to exit codes (1 not found, 2 data store)."""
    try:
        return asyncio.run(coro)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except DataUnavailableError as e:
        console.print(f"[red]Data store unavailable: {e}[/red]")
        raise typer.Exit(2)


def _level(level: RiskLevelEnum) -> str:
    style = _LEVEL_STYLE.get(level, "white")
    return f"[{style}]{level.value}[/{style}]"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command():
    """Create all database tables."""
    from frostline.database import init_db

    with console.status("[bold]Creating database..."):
        _run(init_db())
    console.print("[green]Database ready.[/green]")



@app.command("vehicle-risk")
def vehicle_risk(vehicle_id: str = typer.Argument(..., help="Vehicle identifier")):
    """Score a vehicle's current risk."""
    from frostline.modules.vehicle_risk import VehicleRiskScorer

    result = _run(VehicleRiskScorer(_build_data_source()).score(vehicle_id))
    console.print(f"Vehicle [cyan]{vehicle_id}[/cyan]: {result.score}/100 {_level(result.level)}")
    for reason in result.reasons:
        console.print(f"  • {escape(reason)}")


@app.command("trip-risk")
def trip_risk(trip_id: str = typer.Argument(..., help="Trip identifier")):
    """Forecast a trip's risk and completion time."""
    from frostline.modules.trip_risk import TripRiskForecaster

    result = _run(TripRiskForecaster(_build_data_source()).forecast(trip_id))
    console.print(f"Trip [cyan]{trip_id}[/cyan]: {result.score}/100 {_level(result.level)}")
    console.print(
        f"  Predicted completion: {result.predicted_completion:%Y-%m-%d %H:%M} UTC "
        f"(delay {result.expected_delay_minutes} min)"
    )
    for reason in result.reasons:
        console.print(f"  • {escape(reason)}")


@app.command("score-fleet")
def score_fleet(
    trips: bool = typer.Option(False, "--trips", help="Forecast active trips instead of vehicles"),
    concurrency: int = typer.Option(0, "--concurrency", help="Parallel scoring calls (0 = settings)"),
):
    """Score every active vehicle (or trip)."""
    from frostline.modules.fleet_risk import forecast_trips, score_vehicles

    batch = forecast_trips if trips else score_vehicles
    summary = _run(batch(_build_data_source(), concurrency=concurrency or None))

    table = Table(title="Active trips" if trips else "Active vehicles")
    table.add_column("ID", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    for subject_id, result in sorted(
        summary["results"].items(), key=lambda item: item[1].score, reverse=True,
    ):
        table.add_row(subject_id, str(result.score), _level(result.level))
    console.print(table)

    if summary["failed"]:
        console.print(f"[yellow]{len(summary['failed'])} failed:[/yellow]")
        for subject_id, message in summary["failed"].items():
            console.print(f"  {subject_id}: {message}")


@app.command("history")
def history(
    kind: EntityKind = typer.Argument(..., help="vehicle or trip"),
    subject_id: str = typer.Argument(..., help="Vehicle or trip identifier"),
    limit: int = typer.Option(20, "--limit", "-n", help="Snapshots to show"),
):
    """Show stored risk snapshots, newest first."""
    from frostline.modules.risk_history import get_risk_history

    snapshots = _run(get_risk_history(_build_data_source(), kind, subject_id, limit))
    if not snapshots:
        console.print(f"[yellow]No snapshots for {kind.value} {subject_id}[/yellow]")
        return

    table = Table(title=f"Risk history: {kind.value} {subject_id}")
    table.add_column("Calculated (UTC)")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    if kind == EntityKind.TRIP:
        table.add_column("Delay (min)", justify="right")
    table.add_column("Reasons")
    for snap in snapshots:
        row = [f"{snap.calculated_at:%Y-%m-%d %H:%M}", str(snap.score), _level(snap.level)]
        if kind == EntityKind.TRIP:
            row.append(str(snap.expected_delay_minutes or 0))
        row.append(escape("; ".join(snap.reasons)))
        table.add_row(*row)
    console.print(table)


if __name__ == "__main__":
    app()
