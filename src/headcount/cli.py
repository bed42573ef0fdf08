"""Headcount CLI entry point."""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from headcount.domain import EventSnapshot, HeadcountError

console = Console()

# Type variable for async function return types
T = TypeVar("T")


def run_async(coro: Callable[[], Awaitable[T]]) -> T:
    """Run an async function with proper database cleanup.

    This ensures the database connection is properly closed after the
    async function completes, preventing hanging CLI commands due to
    aiosqlite's background thread. Domain errors are printed and turned
    into a non-zero exit.
    """
    from headcount.db import close_database

    async def wrapped() -> T:
        try:
            return await coro()
        finally:
            await close_database()

    try:
        return asyncio.run(wrapped())
    except HeadcountError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise SystemExit(1) from e


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


async def _service(ctx: click.Context):
    """Build an event service on the configured database."""
    from headcount.db import get_database
    from headcount.events import get_notifier
    from headcount.service import EventService

    db = await get_database(ctx.obj["db_path"])
    return EventService(db, get_notifier())


def _print_snapshot(snapshot: EventSnapshot) -> None:
    event = snapshot.event
    console.print(f"[bold cyan]{event.title}[/bold cyan] [dim]({event.id})[/dim]")
    console.print(f"{event.date:%Y-%m-%d %H:%M}  ·  {len(snapshot.signups)}/{event.capacity} signed up")

    table = Table(title="Signups")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Joined")

    position = 1
    for signup in snapshot.confirmed:
        table.add_row(str(position), signup.name, "[green]confirmed[/green]", signup.timestamp.strftime("%Y-%m-%d %H:%M:%S"))
        position += 1
    for signup in snapshot.waitlisted:
        table.add_row(str(position), signup.name, "[yellow]waitlisted[/yellow]", signup.timestamp.strftime("%Y-%m-%d %H:%M:%S"))
        position += 1

    if snapshot.signups:
        console.print(table)
    else:
        console.print("[yellow]No signups yet[/yellow]")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option(
    "--db-path",
    type=click.Path(dir_okay=False),
    envvar="HEADCOUNT_DB",
    help="Database path (default: ~/.headcount/headcount.db)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db_path: str | None) -> None:
    """Headcount - event signups with live-updating lists."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db_path"] = db_path
    setup_logging(verbose)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, reload: bool) -> None:
    """Start the Headcount API server."""
    import uvicorn

    # The app is imported by path, so hand the database location over via env
    if ctx.obj["db_path"]:
        os.environ["HEADCOUNT_DB"] = ctx.obj["db_path"]

    console.print(f"[bold green]Starting Headcount API server on {host}:{port}[/bold green]")

    uvicorn.run(
        "headcount.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize the Headcount database."""
    from headcount.db import get_database

    async def do_init() -> None:
        db = await get_database(ctx.obj["db_path"])
        console.print(f"[green]Database initialized at {db.db_path}[/green]")

    run_async(do_init)


@cli.group()
def event() -> None:
    """Manage events."""
    pass


@event.command("list")
@click.pass_context
def event_list(ctx: click.Context) -> None:
    """List all events, newest first."""

    async def do_list() -> None:
        service = await _service(ctx)
        events = await service.list_events()

        if not events:
            console.print("[yellow]No events found[/yellow]")
            return

        table = Table(title="Events")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Date")
        table.add_column("Signups")
        table.add_column("Created")

        for e in events:
            color = "red" if e.signup_count >= e.capacity else "green"
            table.add_row(
                e.id,
                e.title[:40],
                e.date.strftime("%Y-%m-%d %H:%M"),
                f"[{color}]{e.signup_count}/{e.capacity}[/{color}]",
                e.created_at.strftime("%Y-%m-%d"),
            )

        console.print(table)

    run_async(do_list)


@event.command("create")
@click.argument("title")
@click.option(
    "--date",
    "-d",
    "date",
    required=True,
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"]),
    help="When the event takes place",
)
@click.option("--capacity", "-c", required=True, type=click.IntRange(min=1), help="Number of confirmed spots")
@click.pass_context
def event_create(ctx: click.Context, title: str, date: datetime, capacity: int) -> None:
    """Create a new event."""

    async def do_create() -> None:
        service = await _service(ctx)
        created = await service.create_event(title, date, capacity)
        console.print(f"[green]Created event: {created.title} ({created.id})[/green]")
        console.print(f"Share link path: /event/{created.id}")

    run_async(do_create)


@event.command("show")
@click.argument("event_id")
@click.pass_context
def event_show(ctx: click.Context, event_id: str) -> None:
    """Show an event with its confirmed and waitlisted signups."""

    async def do_show() -> None:
        service = await _service(ctx)
        _print_snapshot(await service.get_event(event_id))

    run_async(do_show)


@event.command("delete")
@click.argument("event_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def event_delete(ctx: click.Context, event_id: str, yes: bool) -> None:
    """Delete an event and all of its signups."""
    if not yes:
        click.confirm(f"Delete event {event_id} and all of its signups?", abort=True)

    async def do_delete() -> None:
        service = await _service(ctx)
        await service.delete_event(event_id)
        console.print(f"[green]Deleted event {event_id}[/green]")

    run_async(do_delete)


@cli.group()
def signup() -> None:
    """Add or remove names on an event."""
    pass


@signup.command("add")
@click.argument("event_id")
@click.argument("name")
@click.pass_context
def signup_add(ctx: click.Context, event_id: str, name: str) -> None:
    """Sign NAME up for an event."""

    async def do_add() -> None:
        service = await _service(ctx)
        snapshot = await service.add_signup(event_id, name)
        if any(s.name == name.strip() for s in snapshot.waitlisted):
            console.print(f"[yellow]{name.strip()} added to the waitlist[/yellow]")
        else:
            console.print(f"[green]{name.strip()} is confirmed[/green]")

    run_async(do_add)


@signup.command("remove")
@click.argument("event_id")
@click.argument("name")
@click.pass_context
def signup_remove(ctx: click.Context, event_id: str, name: str) -> None:
    """Remove NAME from an event."""

    async def do_remove() -> None:
        service = await _service(ctx)
        snapshot = await service.remove_signup(event_id, name)
        console.print(f"[green]Removed {name.strip()}[/green]")
        _print_snapshot(snapshot)

    run_async(do_remove)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
