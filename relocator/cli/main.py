"""
Relocator CLI - Scan, save and re-acquire form elements from the terminal.
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Tuple
import json
import logging
import shutil

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from relocator.core.config import TrackerConfig, VolatilityPolicy
from relocator.core.exceptions import ConfigError, RelocatorError
from relocator.layers.sense.scanner import SavedConfigEntry
from relocator.persistence.config_store import ConfigStore

console = Console()

DEFAULT_STORE = "./.relocator/config.json"


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Selenium's wire-level chatter drowns everything else at DEBUG
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    console.print(f"[red]❌ Error: {message}[/red]")
    raise SystemExit(1)


def _tracker_config(ctx: click.Context, max_depth: int = 5) -> TrackerConfig:
    return TrackerConfig(
        volatility=VolatilityPolicy(max_depth=max_depth),
        store_path=ctx.obj["store"],
    )


@contextmanager
def _open_page(url: str, headless: bool, profile: str, config: TrackerConfig):
    """Open a browser on a URL and yield a channel to its tracker."""
    from relocator.core.channel import TrackerChannel
    from relocator.core.driver_factory import driver_session
    from relocator.core.tracker import PageTracker

    with driver_session(headless=headless, profile_path=profile) as driver:
        driver.get(url)
        tracker = PageTracker(driver, config)
        try:
            yield tracker, TrackerChannel(tracker)
        finally:
            tracker.close()


def _hold(tracker, seconds: float) -> None:
    if seconds > 0:
        console.print(f"[dim]Keeping overlays for {seconds:g}s...[/dim]")
        tracker.run_for(seconds)


def _descriptor_table(descriptors: List[Dict[str, Any]]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="green")
    table.add_column("Label", style="yellow", max_width=30)
    table.add_column("Name / Text", max_width=30)
    table.add_column("Container", style="dim", max_width=60)
    for d in descriptors:
        table.add_row(
            str(d["index"]),
            d["elementType"],
            d.get("label") or "",
            d.get("name") or d.get("buttonText") or d.get("dataName") or "",
            d["containerPath"],
        )
    return table


def _entry_table(entries: List[Dict[str, Any]]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="green")
    table.add_column("Label", style="yellow", max_width=30)
    table.add_column("Fallback", max_width=30)
    table.add_column("Container", style="dim", max_width=60)
    for i, e in enumerate(entries):
        table.add_row(
            str(i),
            e["elementType"],
            e.get("label") or "",
            e.get("fallbackName") or e.get("buttonText") or e.get("dataName") or "",
            e.get("containerSelector") or "",
        )
    return table


browser_options = [
    click.option('--headless/--headed', default=False, help='Run browser in headless mode'),
    click.option('--profile', default=None, help='Browser profile directory (keeps logins)'),
    click.option('--hold', default=0.0, type=float, help='Seconds to keep overlays on screen'),
]


def with_browser_options(func):
    for option in reversed(browser_options):
        func = option(func)
    return func


@click.group()
@click.option('--store', default=DEFAULT_STORE, help='Saved configuration file')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, store, verbose):
    """🎯 Relocator - Stable element tracking for web forms

    Scan a page, save the fields you care about, and find them again
    after the page reloads with regenerated ids and classes.
    """
    ctx.ensure_object(dict)
    ctx.obj["store"] = store
    configure_logging(verbose)


@cli.command()
@click.argument('url')
@with_browser_options
@click.option('--max-depth', default=5, type=int, help='Selector depth cap')
@click.pass_context
def scan(ctx, url, headless, profile, hold, max_depth):
    """
    Scan a page and list every trackable element.

    \b
    Example:

        relocator scan "https://example.com/form" --hold 10
    """
    console.print(Panel.fit(
        f"[bold blue]🔍 Scan[/bold blue]\n[dim]{url}[/dim]",
        border_style="blue"
    ))
    try:
        with _open_page(url, headless, profile, _tracker_config(ctx, max_depth)) as (tracker, channel):
            descriptors = channel.request("SCAN_ALL")
            console.print(_descriptor_table(descriptors))
            console.print(f"\n[bold]{len(descriptors)}[/bold] elements found")
            _hold(tracker, hold)
    except RelocatorError as e:
        _fail(str(e))


@cli.command()
@click.argument('url')
@click.option('--index', '-i', 'indexes', multiple=True, type=int, required=True,
              help='Scan index to save (repeatable)')
@with_browser_options
@click.option('--max-depth', default=5, type=int, help='Selector depth cap')
@click.pass_context
def save(ctx, url, indexes, headless, profile, hold, max_depth):
    """
    Scan a page and save the chosen elements.

    \b
    Example:

        relocator save "https://example.com/form" -i 0 -i 3
    """
    try:
        with _open_page(url, headless, profile, _tracker_config(ctx, max_depth)) as (tracker, channel):
            channel.request("SCAN_ALL")
            entries = channel.request("SAVE_BY_INDEXES", {"indexes": list(indexes)})
            ConfigStore(ctx.obj["store"]).save([SavedConfigEntry.from_dict(e) for e in entries])
            console.print(_entry_table(entries))
            console.print(f"[green]✅ Saved {len(entries)} entries[/green] [dim]({ctx.obj['store']})[/dim]")
            _hold(tracker, hold)
    except RelocatorError as e:
        _fail(str(e))


@cli.command()
@click.argument('url')
@with_browser_options
@click.option('--json', 'as_json', is_flag=True, help='Print results as JSON')
@click.pass_context
def extract(ctx, url, headless, profile, hold, as_json):
    """
    Find the saved elements on a page and read their values.

    \b
    Example:

        relocator extract "https://example.com/form" --json
    """
    store = ConfigStore(ctx.obj["store"])
    try:
        entries = store.load()
        if not entries:
            _fail("No saved configuration")
        config = [e.to_dict() for e in entries]

        with _open_page(url, headless, profile, _tracker_config(ctx)) as (tracker, channel):
            results = channel.request("EXTRACT_BY_CONFIG", {"config": config})
            if as_json:
                click.echo(json.dumps(results, indent=2, ensure_ascii=False))
            else:
                table = Table(show_header=True, header_style="bold cyan")
                table.add_column("#", style="dim", justify="right")
                table.add_column("Label", style="yellow", max_width=30)
                table.add_column("Value", style="green", max_width=50)
                table.add_column("Found by", style="dim")
                for r in results:
                    table.add_row(str(r["configIndex"]), r.get("label") or "", r["value"], r["foundBy"])
                console.print(table)
                console.print(f"\n[bold]Extracted {len(results)}/{len(entries)}[/bold]")
            _hold(tracker, hold)
    except RelocatorError as e:
        _fail(str(e))


@cli.command()
@click.argument('url')
@click.option('--headless/--headed', default=True, help='Run browser in headless mode')
@click.option('--profile', default=None, help='Browser profile directory (keeps logins)')
@click.option('--output', '-o', default=None, help='Write layout JSON to a file')
@click.pass_context
def replica(ctx, url, headless, profile, output):
    """
    Lay out the saved elements relative to the page.

    \b
    Example:

        relocator replica "https://example.com/form" -o layout.json
    """
    store = ConfigStore(ctx.obj["store"])
    try:
        config = [e.to_dict() for e in store.load()]
        with _open_page(url, headless, profile, _tracker_config(ctx)) as (_, channel):
            layout = channel.request("GENERATE_REPLICA_DATA", {"config": config})
    except RelocatorError as e:
        _fail(str(e))
        return

    text = json.dumps(layout, indent=2, ensure_ascii=False)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        console.print(f"[green]✅ Wrote {len(layout)} layout entries to {output}[/green]")
    else:
        click.echo(text)


@cli.command()
@click.argument('url')
@click.argument('index', type=int)
@click.option('--config', 'from_config', is_flag=True,
              help='INDEX is a saved entry position instead of a scan index')
@with_browser_options
@click.pass_context
def highlight(ctx, url, index, from_config, headless, profile, hold):
    """
    Briefly highlight one element.

    \b
    Examples:

        relocator highlight "https://example.com/form" 4

        relocator highlight "https://example.com/form" 0 --config
    """
    config = _tracker_config(ctx)
    try:
        with _open_page(url, headless, profile, config) as (tracker, channel):
            if from_config:
                entries = ConfigStore(ctx.obj["store"]).load()
                if not 0 <= index < len(entries):
                    _fail(f"No saved entry at position {index}")
                channel.request("HIGHLIGHT_BY_CONFIG_ENTRY", {
                    "configIndex": index,
                    "config": entries[index].to_dict(),
                })
                duration = config.entry_highlight_seconds
            else:
                channel.request("SCAN_ALL")
                channel.request("CLEAR_HIGHLIGHT")
                channel.request("HIGHLIGHT_BY_INDEX", {"index": index})
                duration = config.index_highlight_seconds
            tracker.run_for(max(hold, duration))
    except RelocatorError as e:
        _fail(str(e))


@cli.command()
@click.pass_context
def show(ctx):
    """Show the saved configuration."""
    store = ConfigStore(ctx.obj["store"])
    try:
        entries = store.load()
    except RelocatorError as e:
        _fail(str(e))
        return

    if not entries:
        console.print("[yellow]No saved configuration[/yellow]")
        return
    console.print(_entry_table([e.to_dict() for e in entries]))
    console.print(f"[dim]{store.path} (timestamp {store.timestamp})[/dim]")


@cli.command(name="export")
@click.option('--output', '-o', default=None, help='Write to a file instead of stdout')
@click.pass_context
def export_config(ctx, output):
    """Export the saved configuration as JSON."""
    store = ConfigStore(ctx.obj["store"])
    try:
        entries = store.load()
    except RelocatorError as e:
        _fail(str(e))
        return

    if not entries:
        _fail("No configuration to export")
    text = store.export_json(entries)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        console.print(f"[green]📤 Exported {len(entries)} entries to {output}[/green]")
    else:
        click.echo(text)


@cli.command(name="import")
@click.argument('source', type=click.File('r', encoding='utf-8'))
@click.pass_context
def import_config(ctx, source):
    """
    Import a configuration exported earlier (use - for stdin).

    \b
    Example:

        relocator import exported.json
    """
    store = ConfigStore(ctx.obj["store"])
    try:
        entries = store.import_json(source.read())
    except RelocatorError as e:
        _fail(f"Import failed: {e}")
        return
    console.print(f"[green]✅ Imported {len(entries)} entries[/green]")


@cli.command(name="clear-config")
@click.pass_context
def clear_config(ctx):
    """Delete the saved configuration."""
    if ConfigStore(ctx.obj["store"]).clear():
        console.print("[green]🧹 Saved configuration cleared[/green]")
    else:
        console.print("[yellow]Nothing to clear[/yellow]")


CHROME_BINARIES = ("google-chrome", "google-chrome-stable", "chromium", "chromium-browser", "chrome")


def _store_status(path: str) -> Tuple[bool, str]:
    store = ConfigStore(path)
    if not store.exists():
        return True, "[yellow]Not saved yet[/yellow]"
    try:
        entries = store.load()
    except ConfigError as e:
        return False, f"[red]❌ Unreadable: {e}[/red]"
    return True, f"[green]✅ {len(entries)} entries[/green]"


@cli.command()
@click.pass_context
def doctor(ctx):
    """
    Check that relocator can drive a browser and read its saved configuration.
    """
    console.print(Panel.fit(
        "[bold cyan]🩺 Relocator Doctor[/bold cyan]\n"
        "[dim]Browser, libraries and store[/dim]",
        border_style="cyan"
    ))
    console.print()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Check", style="blue")
    table.add_column("Needed for", style="dim")
    table.add_column("Status")

    problems = 0
    for package, role in [
        ("selenium", "Scanning, resolving and overlays"),
        ("click", "Command line"),
        ("rich", "Tables and log output"),
    ]:
        try:
            __import__(package)
            table.add_row(package, role, "[green]✅ Installed[/green]")
        except ImportError:
            table.add_row(package, role, "[red]❌ Missing[/red]")
            problems += 1

    browser = next((shutil.which(name) for name in CHROME_BINARIES if shutil.which(name)), None)
    if browser:
        table.add_row("Chrome", "Opening pages", f"[green]✅ {browser}[/green]")
    else:
        # Selenium Manager can still fetch a browser, so this is only a warning
        table.add_row("Chrome", "Opening pages", "[yellow]Not on PATH[/yellow]")

    store_ok, store_status = _store_status(ctx.obj["store"])
    table.add_row("Saved configuration", "extract, replica, highlight", store_status)
    if not store_ok:
        problems += 1

    console.print(table)
    console.print()

    if not problems:
        console.print("[bold green]✅ Relocator is ready.[/bold green]")
    else:
        console.print(f"[red]❌ {problems} problem(s) found.[/red]")
        raise SystemExit(1)


@cli.command()
def version():
    """Show version information."""
    from relocator import __version__
    console.print(f"Relocator v{__version__}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
