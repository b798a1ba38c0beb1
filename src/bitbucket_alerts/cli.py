"""CLI entry point for bitbucket-alerts."""

import click
from rich.console import Console
from rich.table import Table

from .config import load_config
from .logging_setup import configure_logging

console = Console()


@click.group()
@click.option("--config", "-c", default="bitbucket-alerts.yaml", help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def main(ctx, config, verbose):
    """Desktop alerts for Bitbucket pull requests and their builds."""
    ctx.ensure_object(dict)
    cfg = load_config(config)
    configure_logging("DEBUG" if verbose else cfg["logging"]["level"])
    ctx.obj["config"] = cfg


def _service(ctx):
    from .service import build_service

    if "service" not in ctx.obj:
        ctx.obj["service"] = build_service(ctx.obj["config"])
    return ctx.obj["service"]


@main.command()
@click.option("--interval", type=float, help="Override seconds between passes")
@click.pass_context
def watch(ctx, interval):
    """Poll Bitbucket on a fixed period until interrupted."""
    from .service import Scheduler
    from .store import ALERTS_KEY

    service = _service(ctx)
    period = interval or ctx.obj["config"]["schedule"]["interval_seconds"]

    def _on_change(key, old_value, new_value):
        if key == ALERTS_KEY:
            console.print(f"[dim]Alerts updated: {len(new_value or [])} tracked[/]")

    unsubscribe = service.store.subscribe(_on_change)
    scheduler = Scheduler(service, period)
    scheduler.start()
    console.print(f"[bold blue]Watching[/] every {scheduler.interval_seconds:.0f}s. Press Ctrl+C to stop.")
    try:
        while not scheduler.wait(1):
            pass
    except KeyboardInterrupt:
        console.print("\nStopping...")
    finally:
        scheduler.stop(timeout=30)
        unsubscribe()


@main.command(name="run-once")
@click.pass_context
def run_once(ctx):
    """Run a single reconciliation pass."""
    stats = _service(ctx).run_pass()
    if stats is None:
        console.print("Nothing to do.")
        return
    console.print(
        f"[bold green]✓[/] {stats['processed']} processed, {stats['removed']} removed, "
        f"{stats['stale']} stale, {stats['pending_removal']} pending removal"
    )


@main.command()
@click.argument("url", required=False)
@click.option("--organisation", "-o", help="Workspace / organisation")
@click.option("--repository", "-r", help="Repository slug")
@click.option("--request", "request_number", type=int, help="Pull request number")
@click.pass_context
def add(ctx, url, organisation, repository, request_number):
    """Track a pull request, given its URL or its parts."""
    from .service import parse_pull_request_url

    if url:
        parsed = parse_pull_request_url(url)
        if parsed is None:
            raise click.BadParameter("not a Bitbucket pull request URL", param_hint="URL")
        organisation, repository, request_number = parsed
    elif not (organisation and repository and request_number):
        raise click.UsageError("Give a pull request URL or all of --organisation, --repository and --request")

    result = _service(ctx).handle_message(
        {
            "type": "new-alert",
            "organisation": organisation,
            "repository": repository,
            "requestNumber": str(request_number),
        }
    )
    if result.get("confirmed"):
        console.print(f"[bold green]✓[/] Tracking {organisation}/{repository} #{request_number}")
    elif result.get("alreadyExists"):
        console.print(f"[yellow]Already tracking {organisation}/{repository} #{request_number}[/]")
    else:
        console.print(f"[red]Error: {result.get('message')}[/]")
        ctx.exit(1)


@main.command()
@click.argument("alert_id")
@click.pass_context
def remove(ctx, alert_id):
    """Stop tracking an alert by id (organisation--repository--number)."""
    if _service(ctx).remove_alert(alert_id):
        console.print(f"[bold green]✓[/] Removed {alert_id}")
    else:
        console.print(f"[yellow]No alert with id {alert_id}[/]")


@main.command(name="list")
@click.pass_context
def list_alerts(ctx):
    """Show tracked pull requests."""
    alerts = _service(ctx).list_alerts()
    if not alerts:
        console.print("No alerts. Add one with `bitbucket-alerts add URL`.")
        return

    table = Table(title="Tracked pull requests")
    table.add_column("ID")
    table.add_column("State")
    table.add_column("Build")
    table.add_column("Branch")
    table.add_column("Tag")
    table.add_column("Last change")
    table.add_column("Flags")

    for alert in alerts:
        flags = []
        if alert.stale:
            flags.append("stale")
        if alert.pending_removal:
            flags.append("retiring")
        branch = f"{alert.source_branch} → {alert.destination_branch}" if alert.source_branch else "-"
        table.add_row(
            alert.id,
            alert.request_state or "-",
            alert.build_state or "-",
            branch,
            alert.build_tag or "-",
            alert.last_change.astimezone().strftime("%Y-%m-%d %H:%M") if alert.last_change else "-",
            ", ".join(flags),
        )
    console.print(table)


@main.command()
@click.option("--username", prompt=True, help="Bitbucket username")
@click.option("--app-password", prompt=True, hide_input=True, help="Read-only Bitbucket app password")
@click.pass_context
def login(ctx, username, app_password):
    """Store the Bitbucket username and app password."""
    from .store import write_credentials

    write_credentials(_service(ctx).store, username, app_password)
    console.print("[bold green]✓[/] Credentials saved")


@main.command()
@click.option(
    "--require-interaction/--no-require-interaction",
    default=None,
    help="Keep notifications on screen until dismissed",
)
@click.pass_context
def settings(ctx, require_interaction):
    """Show or change notification settings."""
    from .store import read_require_interaction, write_require_interaction

    store = _service(ctx).store
    if require_interaction is not None:
        write_require_interaction(store, require_interaction)
    current = read_require_interaction(store)
    console.print(f"Notifications require interaction: [bold]{'yes' if current else 'no'}[/]")


@main.command(name="test-notification")
@click.pass_context
def test_notification(ctx):
    """Send a sample notification to check the desktop setup."""
    _service(ctx).notifier.send_test_notification()


if __name__ == "__main__":
    main()
