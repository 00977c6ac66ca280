"""CLI for browsing and annotating a campaign activity log."""

import json
import logging
import time
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .codec import format_event_label
from .config import load_settings
from .errors import ActivityLogError
from .models import ACTOR_TYPES, EVENT_TYPES
from .notifier import ChangeNotifier
from .service import ActivityLogService
from .store import ActivityLogStore, CacheState
from .timeutil import format_relative_time, format_timestamp, from_ms, parse_time_reference, to_ms

console = Console()


def _print_events(events) -> None:
    table = Table()
    table.add_column("When", style="dim")
    table.add_column("Game Date", style="magenta")
    table.add_column("Type", style="cyan")
    table.add_column("Actor", style="green")
    table.add_column("Description")
    table.add_column("ID", style="yellow")

    for event in events:
        table.add_row(
            format_relative_time(from_ms(event.timestamp)),
            event.game_date or "",
            format_event_label(event.type),
            event.actor_display,
            Text(event.description),
            event.id,
        )
    console.print(table)


def _print_result(result, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_summary(), indent=2))
        return
    if not result.events:
        console.print("[dim]No events[/dim]")
        return
    _print_events(result.events)
    shown_to = result.offset + len(result.events)
    console.print(f"[dim]Showing {result.offset + 1}-{shown_to} of {result.total}[/dim]")
    if result.has_more:
        console.print(f"[dim]More available with --offset {shown_to}[/dim]")


@click.group()
@click.option(
    "--log-path",
    envvar="CAMPAIGN_LOG_PATH",
    type=click.Path(path_type=Path),
    help="Path to the activity log Markdown file",
)
@click.option("--campaign", envvar="CAMPAIGN_ID", help="Campaign id to read and write")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, log_path, campaign, verbose):
    """Campaign activity log - browse, search and annotate game events."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    settings = load_settings(Path.cwd())
    if log_path:
        settings["log_path"] = log_path
    if campaign:
        settings["campaign_id"] = campaign

    store = ActivityLogStore.from_path(
        settings["log_path"], preview_length=settings["preview_length"]
    )
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["store"] = store
    ctx.obj["service"] = ActivityLogService(store, settings["campaign_id"])


@cli.command("list")
@click.option("-t", "--type", "event_types", multiple=True, type=click.Choice(EVENT_TYPES), help="Event type (repeatable)")
@click.option("--actor-type", "actor_types", multiple=True, type=click.Choice(ACTOR_TYPES), help="Actor type (repeatable)")
@click.option("--actor", "actor_names", multiple=True, help="Actor name substring (repeatable)")
@click.option("--since", help="Only events at or after this time (ISO, relative, or named)")
@click.option("--until", help="Only events at or before this time")
@click.option("--game-from", help="Only events on or after this game date")
@click.option("--game-to", help="Only events on or before this game date")
@click.option("--all-campaigns", is_flag=True, help="Do not filter by campaign")
@click.option("-n", "--limit", type=int, default=None, help="Page size (default from settings)")
@click.option("--offset", type=int, default=0, help="Events to skip")
@click.option("--oldest-first", is_flag=True, help="Sort ascending by time")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_events(
    ctx, event_types, actor_types, actor_names, since, until, game_from, game_to,
    all_campaigns, limit, offset, oldest_first, as_json,
):
    """List events, newest first.

    Examples:
        campaign-log list --type shop_transaction --since "7 days ago"
        campaign-log list --actor Alice --oldest-first
    """
    settings = ctx.obj["settings"]
    try:
        result = ctx.obj["store"].query(
            campaign_id=None if all_campaigns else settings["campaign_id"],
            event_types=list(event_types) or None,
            actor_types=list(actor_types) or None,
            actor_names=list(actor_names) or None,
            start_date=to_ms(parse_time_reference(since)) if since else None,
            end_date=to_ms(parse_time_reference(until)) if until else None,
            game_start_date=game_from,
            game_end_date=game_to,
            sort_order="asc" if oldest_first else "desc",
            offset=offset,
            limit=limit or settings["page_size"],
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)
    _print_result(result, as_json)


@cli.command()
@click.argument("text")
@click.option("-n", "--limit", type=int, default=None, help="Page size (default from settings)")
@click.option("--offset", type=int, default=0, help="Matches to skip")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(ctx, text, limit, offset, as_json):
    """Search descriptions and note content (case-insensitive)."""
    service = ctx.obj["service"]
    result = service.search_activity_log(
        text, limit=limit or ctx.obj["settings"]["page_size"], offset=offset
    )
    _print_result(result, as_json)


@cli.command()
@click.argument("event_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx, event_id, as_json):
    """Show a single event with its metadata and notes."""
    event = ctx.obj["store"].get(event_id)
    if event is None:
        console.print(f"[red]Error:[/red] Event with ID {event_id} not found")
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps(event.to_wire(), indent=2, ensure_ascii=False))
        return

    when = from_ms(event.timestamp)
    console.print(f"[bold]{format_event_label(event.type)}[/bold] [yellow]{event.id}[/yellow]")
    console.print(f"When:     {format_timestamp(event.timestamp)} ({format_relative_time(when)})")
    if event.game_date:
        console.print(f"Game:     {event.game_date}")
    console.print(f"Actor:    {event.actor_display} ({event.actor_type})")
    console.print(f"Campaign: {event.campaign_id}")
    console.print(f"Description: {event.description}", markup=False)
    console.print()

    for key, value in event.metadata.to_wire().items():
        console.print(Text.assemble((f"  {key}", "cyan"), f": {value}"))

    if event.notes:
        console.print()
        updated = (
            f" [dim](updated {format_timestamp(event.notes_last_updated)})[/dim]"
            if event.notes_last_updated is not None
            else ""
        )
        console.print(f"[bold]Notes[/bold]{updated}")
        console.print(event.notes, markup=False)


@cli.command()
@click.argument("event_id")
@click.argument("text", required=False, default="")
@click.option("--clear", is_flag=True, help="Remove the notes instead")
@click.pass_context
def note(ctx, event_id, text, clear):
    """Set or clear the GM notes on an event."""
    if not text and not clear:
        console.print("[red]Error:[/red] Provide note text or --clear")
        ctx.exit(1)
    try:
        ctx.obj["service"].update_event_notes(event_id, "" if clear else text)
    except ActivityLogError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)
    if clear:
        console.print(f"[green]✓[/green] Cleared notes on {event_id}")
    else:
        console.print(f"[green]✓[/green] Updated notes on {event_id}")


@cli.command("add-note")
@click.argument("title")
@click.option("-c", "--content", default="", help="Note body (Markdown)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--category", help="Free-form category")
@click.option("--game-date", help="In-game date label")
@click.option("--actor", "actor_name", help="Who is writing the note")
@click.pass_context
def add_note(ctx, title, content, tags, category, game_date, actor_name):
    """Append a custom note event."""
    try:
        event = ctx.obj["service"].log_custom_note(
            title,
            content,
            tags=list(tags) or None,
            category=category,
            actor_name=actor_name,
            game_date=game_date,
        )
    except ActivityLogError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)
    console.print(f"[green]✓[/green] Added note [yellow]{event.id}[/yellow] {title}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def corrupted(ctx, as_json):
    """List entry blocks that failed to decode."""
    entries = ctx.obj["store"].corrupted_entries
    if as_json:
        click.echo(json.dumps([entry.to_dict() for entry in entries], indent=2))
        return
    if not entries:
        console.print("[green]No corrupted entries[/green]")
        return

    console.print(f"[yellow]{len(entries)} corrupted entries[/yellow]")
    for entry in entries:
        console.print()
        console.print(f"[bold]Line {entry.line_number}:[/bold] [red]{entry.error}[/red]")
        preview = entry.raw_content.splitlines()[:3]
        for line in preview:
            console.print(f"    {line}", style="dim", markup=False, highlight=False)


@cli.command()
@click.option("--interval", type=float, default=1.0, help="Seconds between checks")
@click.pass_context
def watch(ctx, interval):
    """Print new events as the log file changes. Ctrl-C to stop."""
    store = ctx.obj["store"]
    seen = {event.id for event in store.events}
    console.print(f"Watching {ctx.obj['settings']['log_path']} ({len(seen)} events)")

    with ChangeNotifier(store):
        try:
            while True:
                time.sleep(interval)
                if store.state is CacheState.FRESH:
                    continue
                fresh = [e for e in reversed(store.events) if e.id not in seen]
                seen.update(e.id for e in fresh)
                if fresh:
                    _print_events(fresh)
        except KeyboardInterrupt:
            console.print("[dim]Stopped[/dim]")


if __name__ == "__main__":
    cli()
