# rental_monitor/cli.py
"""Command line entry point: ``rental-monitor [test|run-once|start|status]``."""
import signal
import threading

import typer

from .config import Settings, load_settings
from .db import engine, init_db
from .monitor import RunController
from .scheduler import start_scheduler, stop_scheduler
from .utils import logger

app = typer.Typer(
    add_completion=False,
    help="Watch a rental search and email new listings as they appear.",
)


@app.callback(invoke_without_command=True)
def usage(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _controller() -> RunController:
    settings = load_settings()
    init_db(engine)
    show_config(settings)
    return RunController(settings)


def show_config(settings: Settings) -> None:
    search = settings.search
    typer.echo("Current Configuration:")
    typer.echo(f"   Location: {search.location}")
    typer.echo(f"   Check-in: {search.checkin}")
    typer.echo(f"   Check-out: {search.checkout}")
    typer.echo(f"   Guests: {search.guests}")
    typer.echo(f"   Min Bedrooms: {search.min_bedrooms}")
    typer.echo(f"   Max Price: ${search.max_price}")
    typer.echo(f"   Room Type: {search.room_type}")
    typer.echo(f"   Max Pages: {search.max_pages}")
    typer.echo(f"   Monitor Interval: {settings.monitor.interval_minutes} minutes")
    typer.echo(f"   Notifications: {'Enabled' if settings.monitor.enable_notifications else 'Disabled'}")
    typer.echo(f"   Headless Mode: {settings.browser.headless}\n")


@app.command()
def test() -> None:
    """Test all components (scraper, database, notifications)."""
    results = _controller().test_components()
    for name, ok in results.items():
        typer.echo(f"   {name}: {'ok' if ok else 'FAILED'}")


@app.command("run-once")
def run_once() -> None:
    """Run the monitor once and exit."""
    stats = _controller().start()
    typer.echo(
        f"Found {stats.listings_found} listings, {stats.new_listings} new "
        f"(success={stats.success}{', ' + stats.error_message if stats.error_message else ''})"
    )


@app.command()
def start() -> None:
    """Start scheduled monitoring; Ctrl+C stops it after the current run."""
    controller = _controller()
    interval = controller.settings.monitor.interval_minutes
    stop = threading.Event()

    def _on_signal(signum, _frame):
        logger.info("Received %s. Stopping monitor...", signal.Signals(signum).name)
        stop.set()
        controller.request_stop()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    scheduler = None
    try:
        controller.start()
        if stop.is_set():
            return
        scheduler = start_scheduler(controller, interval)
        typer.echo(f"Monitor is now running every {interval} minutes. Press Ctrl+C to stop.")
        while not stop.wait(1.0):
            pass
    finally:
        if scheduler is not None:
            stop_scheduler(scheduler, controller)
        else:
            controller.shutdown()
        engine.dispose()


@app.command()
def status() -> None:
    """Show monitor status and statistics."""
    info = _controller().status()
    store = info.store
    typer.echo(f"Running: {'Yes' if info.is_running else 'No'}")
    typer.echo("\nDatabase Stats:")
    typer.echo(f"   Total Listings: {store.total}")
    typer.echo(f"   New Listings: {store.new}")
    typer.echo(f"   Notified Listings: {store.notified}")
    typer.echo(f"   Last Seen: {store.last_seen or 'Never'}")
    typer.echo(f"\nSearch URL:\n   {info.search_url}")


@app.command()
def recent(limit: int = typer.Option(10, help="How many listings to show.")) -> None:
    """List the most recently seen listings."""
    for listing in _controller().recent_listings(limit):
        flag = "new" if listing.is_new and not listing.notified else "seen"
        typer.echo(f"{listing.last_seen:%Y-%m-%d %H:%M}  [{flag}]  {listing.price or '?':>14}  {listing.title}  {listing.url}")


@app.command()
def reset(yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.")) -> None:
    """Clear the new/notified flags on every stored listing."""
    if not yes:
        typer.confirm("Clear new/notified flags on all listings?", abort=True)
    count = _controller().reset_flags()
    typer.echo(f"Reset {count} listings.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
