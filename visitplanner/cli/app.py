"""
Caregiver CLI application using Typer.
"""

from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.entitlements import StaticEntitlements
from ..adapters.sqlite_store import SQLiteVisitStore
from ..config import AppConfig, configure_logging, get_default_config_path
from ..domain.exceptions import SlotConflict, VisitPlannerError
from ..domain.slot_planner import SlotPlanner
from ..services.profile_service import ProfileService
from ..services.schedule_service import ScheduleService

app = typer.Typer(
    name="visitplanner",
    help="Plan baby visits and share bookable time slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config = AppConfig.load_or_default(config_file or get_default_config_path())
    configure_logging(config.log_level)
    return config


def _open_store(config: AppConfig) -> SQLiteVisitStore:
    store = SQLiteVisitStore(config.database_path)
    store.init_schema()
    return store


def _schedule_service(config: AppConfig, store: SQLiteVisitStore) -> ScheduleService:
    return ScheduleService(
        store,
        SlotPlanner(timezone=config.timezone),
        StaticEntitlements(config.premium_accounts),
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def serve(
    config_file: ConfigOption = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Interface to bind")] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="Port to listen on")] = None,
):
    """
    Run the public booking API.
    """
    import uvicorn

    from ..api.app import create_app

    config = _load_config(config_file)
    api = create_app(store=_open_store(config), config=config)

    uvicorn.run(
        api,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


@app.command()
def caregiver(
    email: Annotated[str, typer.Argument(help="Caregiver e-mail address")],
    config_file: ConfigOption = None,
):
    """
    Register a caregiver and print their id.
    """
    try:
        config = _load_config(config_file)
        profile = ProfileService(_open_store(config)).register_caregiver(email)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print(f"[green]✓ Caregiver {profile.email}[/green] id: [bold]{profile.id}[/bold]")


@app.command()
def baby(
    user_id: Annotated[str, typer.Argument(help="Caregiver id")],
    name: Annotated[Optional[str], typer.Option("--name", help="Baby's name")] = None,
    gender: Annotated[Optional[str], typer.Option("--gender", help="male or female")] = None,
    config_file: ConfigOption = None,
):
    """
    Record the baby's name and gender shown to visitors.
    """
    try:
        config = _load_config(config_file)
        record = ProfileService(_open_store(config)).set_baby(user_id, name=name, gender=gender)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print(f"[green]✓ Saved baby {record.name or '(unnamed)'}[/green]")


@app.command()
def create_schedule(
    user_id: Annotated[str, typer.Argument(help="Caregiver id")],
    start: Annotated[str, typer.Option("--start", help="First visiting day (YYYY-MM-DD)")],
    end: Annotated[Optional[str], typer.Option("--end", help="Last visiting day (YYYY-MM-DD), defaults to start")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="Schedule name")] = None,
    message: Annotated[Optional[str], typer.Option("--message", help="Message shown to visitors")] = None,
    config_file: ConfigOption = None,
):
    """
    Create a visiting window and print its sharing code.
    """
    try:
        config = _load_config(config_file)
        service = _schedule_service(config, _open_store(config))
        schedule = service.create_schedule(
            user_id=user_id,
            start_date=start,
            end_date=end or start,
            name=name,
            custom_message=message,
        )
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold green]✓ Schedule created![/bold green]\n\n"
        f"[bold]Code:[/bold] {schedule.id}\n"
        f"[bold]Period:[/bold] {schedule.start_date.isoformat()} - {schedule.end_date.isoformat()}\n\n"
        "Now add visiting slots with 'visitplanner add-slots'.",
        title="Schedule"
    ))


@app.command("list")
def list_schedules(
    user_id: Annotated[str, typer.Argument(help="Caregiver id")],
    config_file: ConfigOption = None,
):
    """
    List a caregiver's schedules, newest first.
    """
    try:
        config = _load_config(config_file)
        schedules = _schedule_service(config, _open_store(config)).list_schedules(user_id)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    if not schedules:
        console.print("[yellow]No schedules yet.[/yellow]")
        return

    table = Table(title="Schedules", show_header=True, header_style="bold cyan")
    table.add_column("Code", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Period")

    for schedule in schedules:
        table.add_row(
            schedule.id,
            schedule.name or "-",
            f"{schedule.start_date.isoformat()} - {schedule.end_date.isoformat()}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def update_schedule(
    schedule_id: Annotated[str, typer.Argument(help="Schedule code")],
    start: Annotated[Optional[str], typer.Option("--start", help="New first day (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="New last day (YYYY-MM-DD)")] = None,
    name: Annotated[Optional[str], typer.Option("--name", help="New schedule name")] = None,
    message: Annotated[Optional[str], typer.Option("--message", help="New message shown to visitors")] = None,
    config_file: ConfigOption = None,
):
    """
    Change a schedule's dates, name or visitor message.
    """
    changes = {
        key: value
        for key, value in {
            "start_date": start,
            "end_date": end,
            "name": name,
            "custom_message": message,
        }.items()
        if value is not None
    }

    try:
        config = _load_config(config_file)
        schedule = _schedule_service(config, _open_store(config)).update_schedule(
            schedule_id, **changes
        )
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print(
        f"[green]✓ Schedule updated:[/green] {schedule.name or schedule.id} "
        f"({schedule.start_date.isoformat()} - {schedule.end_date.isoformat()})"
    )


@app.command()
def delete_schedule(
    schedule_id: Annotated[str, typer.Argument(help="Schedule code")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Delete without asking")] = False,
    config_file: ConfigOption = None,
):
    """
    Delete a schedule with all its slots and bookings.
    """
    if not yes and not typer.confirm(
        "Delete this schedule? All its slots and bookings will be removed."
    ):
        raise typer.Exit(1)

    try:
        config = _load_config(config_file)
        _schedule_service(config, _open_store(config)).delete_schedule(schedule_id)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print("[green]✓ Schedule deleted.[/green]")


@app.command()
def add_slots(
    schedule_id: Annotated[str, typer.Argument(help="Schedule code")],
    day: Annotated[str, typer.Option("--date", help="Day (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--from", help="Start time (HH:MM)")],
    end: Annotated[str, typer.Option("--to", help="End time (HH:MM)")],
    duration: Annotated[Optional[str], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
    max_people: Annotated[Optional[str], typer.Option("--max-people", "-m", help="People per slot")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Create non-conflicting slots without asking")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show the slots without creating them")] = False,
    config_file: ConfigOption = None,
):
    """
    Split a time range into slots and add them to a schedule.

    Examples:

        visitplanner add-slots <code> --date 2025-03-01 --from 14:00 --to 17:00

        visitplanner add-slots <code> --date 2025-03-01 --from 09:00 --to 09:50 -d 30 -m 4
    """
    try:
        config = _load_config(config_file)
        service = _schedule_service(config, _open_store(config))
        request = {
            "day": day,
            "start_time": start,
            "end_time": end,
            "duration_minutes": duration or config.defaults.slot_duration_minutes,
            "max_people": max_people or config.defaults.max_people,
        }

        if dry_run:
            plan = service.plan_slots(schedule_id, **request)
            for candidate in plan.clean:
                console.print(
                    f"  {candidate.start_time_label()} ({candidate.duration_minutes} min,"
                    f" up to {candidate.max_people})"
                )
            for label in plan.conflict_labels():
                console.print(f"  [yellow]{label} conflicts with an existing slot[/yellow]")
            return

        try:
            created = service.add_slots(schedule_id, **request)
        except SlotConflict as conflict:
            console.print(f"[yellow]⚠ {conflict}[/yellow]")
            if not yes and not typer.confirm(
                "Continue anyway? The conflicting slots will not be created."
            ):
                raise typer.Exit(1)
            created = service.add_slots(schedule_id, skip_conflicts=True, **request)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    if not created:
        console.print("[yellow]⚠ No slot was created because of conflicts with existing slots.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(created)} slot(s) created:[/bold green]")
    for slot in created:
        console.print(
            f"  {slot.start_time.strftime('%H:%M')} - {slot.end_time().strftime('%H:%M')}"
            f" ({slot.duration_minutes} min, up to {slot.max_people})"
        )


@app.command()
def edit_slot(
    slot_id: Annotated[str, typer.Argument(help="Slot id")],
    day: Annotated[Optional[str], typer.Option("--date", help="New day (YYYY-MM-DD)")] = None,
    start: Annotated[Optional[str], typer.Option("--from", help="New start time (HH:MM)")] = None,
    duration: Annotated[Optional[str], typer.Option("--duration", "-d", help="New length in minutes")] = None,
    max_people: Annotated[Optional[str], typer.Option("--max-people", "-m", help="New capacity")] = None,
    skipped: Annotated[Optional[bool], typer.Option("--skipped/--open", help="Mark as a break or reopen")] = None,
    config_file: ConfigOption = None,
):
    """
    Change a single slot.
    """
    changes = {
        key: value
        for key, value in {
            "date": day,
            "start_time": start,
            "duration_minutes": duration,
            "max_people": max_people,
            "is_skipped": skipped,
        }.items()
        if value is not None
    }

    try:
        config = _load_config(config_file)
        slot = _schedule_service(config, _open_store(config)).update_slot(slot_id, **changes)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print(
        f"[green]✓ Slot updated:[/green] {slot.date.isoformat()} "
        f"{slot.start_time.strftime('%H:%M')} ({slot.duration_minutes} min)"
    )


@app.command()
def delete_slot(
    slot_id: Annotated[str, typer.Argument(help="Slot id")],
    config_file: ConfigOption = None,
):
    """
    Delete a slot and its bookings.
    """
    try:
        config = _load_config(config_file)
        _schedule_service(config, _open_store(config)).delete_slot(slot_id)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    console.print("[green]✓ Slot deleted.[/green]")


@app.command()
def show(
    schedule_id: Annotated[str, typer.Argument(help="Schedule code")],
    config_file: ConfigOption = None,
):
    """
    List a schedule's slots and who booked them.
    """
    try:
        config = _load_config(config_file)
        service = _schedule_service(config, _open_store(config))
        schedule = service.get_schedule(schedule_id)
        occupancies = service.visits(schedule_id)
    except (FileNotFoundError, ValueError, VisitPlannerError) as e:
        _fail(e)

    if not occupancies:
        console.print("[yellow]No slots created yet.[/yellow]")
        return

    table = Table(
        title=schedule.name or f"Schedule {schedule.id}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Date", style="bold")
    table.add_column("Time")
    table.add_column("Occupancy", justify="right")
    table.add_column("Visitors", style="dim")
    table.add_column("Slot id", style="dim")

    for occupancy in occupancies:
        slot = occupancy.slot
        day = pendulum.datetime(
            slot.date.year, slot.date.month, slot.date.day
        ).format("ddd DD.MM.YYYY")
        time_label = f"{slot.start_time.strftime('%H:%M')} - {slot.end_time().strftime('%H:%M')}"
        if slot.is_skipped:
            table.add_row(day, time_label, "[yellow]break[/yellow]", "", slot.id)
            continue
        visitors = ", ".join(
            f"{booking.visitor_name} ({booking.number_of_people})" for booking in occupancy.bookings
        )
        table.add_row(
            day,
            time_label,
            f"{occupancy.total_people}/{slot.max_people}",
            visitors,
            slot.id,
        )

    console.print()
    console.print(table)
    if schedule.custom_message:
        console.print(f"\n[italic]{schedule.custom_message}[/italic]")
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]visitplanner[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
