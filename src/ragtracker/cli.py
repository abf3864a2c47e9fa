"""CLI — init, serve, status, weeks, token, purge, send-reminders, send-dashboard."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ragtracker.auth.jwt import create_token
from ragtracker.config import Config
from ragtracker.core import weeks
from ragtracker.errors import RagTrackerError
from ragtracker.runtime import Tracker, open_tracker
from ragtracker.storage.sqlite_store import SQLiteStore

_DEFAULT_WORKSPACE = "~/.ragtracker"


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)
        ],
        force=True,
    )


def _load(path: str) -> Config:
    workspace = Path(path).expanduser().resolve()
    config = Config.load(workspace)
    _setup_logging(config.log_level)
    if not config.db_path.exists():
        click.echo(
            f"Error: No database at {config.db_path}. Run 'ragtracker init' first.", err=True
        )
        sys.exit(1)
    return config


def _run_job(config: Config, job) -> object:
    async def _go() -> object:
        tracker = await open_tracker(config)
        try:
            return await job(tracker)
        finally:
            await tracker.close()

    try:
        return asyncio.run(_go())
    except RagTrackerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(package_name="ragtracker")
def main() -> None:
    """RAG Tracker — weekly project status reporting."""


@main.command()
@click.argument("path", type=click.Path(), default=_DEFAULT_WORKSPACE)
@click.option("--admin-name", default=None, help="Bootstrap an admin with this name")
@click.option("--admin-email", default=None, help="Bootstrap an admin with this email")
def init(path: str, admin_name: str | None, admin_email: str | None) -> None:
    """Initialize a RAG Tracker workspace."""
    workspace = Path(path).expanduser().resolve()
    config = Config(workspace_path=workspace)

    async def _init() -> str | None:
        config.save()
        tracker = await open_tracker(config)
        try:
            if admin_email:
                admin = await tracker.directory.bootstrap_admin(
                    name=admin_name or admin_email.split("@")[0], email=admin_email
                )
                return admin.id
            return None
        finally:
            await tracker.close()

    try:
        admin_id = asyncio.run(_init())
    except RagTrackerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Initialized workspace at {workspace}")
    click.echo(f"Database: {config.db_path}")
    if admin_id:
        click.echo(f"Admin user: {admin_id} ({admin_email})")
    click.echo("Add to Claude Desktop config:")
    click.echo(f'  "ragtracker": {{"command": "ragtracker", "args": ["serve", "{workspace}"]}}')


@main.command()
@click.argument("path", type=click.Path(exists=True), default=_DEFAULT_WORKSPACE)
@click.option("--transport", type=click.Choice(["stdio"]), default="stdio")
def serve(path: str, transport: str) -> None:
    """Start the MCP server."""
    config = _load(path)

    from ragtracker.server import create_server

    server = create_server(str(config.db_path), config=config)
    server.run(transport=transport)  # type: ignore[arg-type]


@main.command()
@click.argument("path", type=click.Path(exists=True), default=_DEFAULT_WORKSPACE)
def status(path: str) -> None:
    """Show database status."""
    config = _load(path)

    async def _status() -> dict:
        store = SQLiteStore(config.db_path)
        try:
            await store.initialize()
            return await store.get_stats()
        finally:
            await store.close()

    stats = asyncio.run(_status())
    stats["retention_months"] = config.retention_months
    stats["smtp"] = config.smtp_host or "log-only"
    click.echo(json.dumps(stats, indent=2))


@main.command("weeks")
@click.option("--months", type=int, default=6, help="Retention window in months")
def list_weeks(months: int) -> None:
    """List the selectable reporting weeks, newest first."""
    if months < 1:
        click.echo("Error: --months must be at least 1", err=True)
        sys.exit(1)

    table = Table(title=f"Reporting weeks (last {months} months)")
    table.add_column("Week", style="cyan")
    table.add_column("Starts")
    table.add_column("Range", style="dim")
    for slot in weeks.week_range(months):
        table.add_row(slot.week_key, slot.week_start_date.isoformat(), slot.label)
    Console().print(table)


@main.command()
@click.argument("email")
@click.option(
    "--path", "path", type=click.Path(exists=True), default=_DEFAULT_WORKSPACE,
    help="Workspace path",
)
def token(email: str, path: str) -> None:
    """Issue an access token for an active user."""
    config = _load(path)

    async def _lookup() -> dict | None:
        store = SQLiteStore(config.db_path)
        try:
            await store.initialize()
            return await store.get_user_by_email(email)
        finally:
            await store.close()

    user = asyncio.run(_lookup())
    if user is None or not user["is_active"]:
        click.echo(f"Error: No active user with email {email}", err=True)
        sys.exit(1)

    click.echo(
        create_token(user["id"], user["role"], config.jwt_secret, config.token_exp_minutes)
    )


@main.command()
@click.argument("path", type=click.Path(exists=True), default=_DEFAULT_WORKSPACE)
def purge(path: str) -> None:
    """Delete reports older than the retention window."""
    config = _load(path)

    async def _purge(tracker: Tracker) -> int:
        return await tracker.jobs.purge()

    deleted = _run_job(config, _purge)
    click.echo(f"Purged {deleted} report(s) older than {config.retention_months} months")


@main.command("send-reminders")
@click.argument("path", type=click.Path(exists=True), default=_DEFAULT_WORKSPACE)
def send_reminders(path: str) -> None:
    """Remind PMs about this week's pending reports."""
    config = _load(path)

    async def _send(tracker: Tracker):
        return await tracker.jobs.send_reminders()

    report = _run_job(config, _send)
    Console().print(
        Panel(
            f"Week {report.week_key}: {report.summary()}",
            title="Reminders",
        )
    )


@main.command("send-dashboard")
@click.argument("path", type=click.Path(exists=True), default=_DEFAULT_WORKSPACE)
@click.option("--to", "recipients", multiple=True, help="Override recipients (repeatable)")
def send_dashboard(path: str, recipients: tuple[str, ...]) -> None:
    """E-mail this week's dashboard to executives."""
    config = _load(path)

    async def _send(tracker: Tracker):
        return await tracker.jobs.send_dashboard(list(recipients) or None)

    report = _run_job(config, _send)
    table = Table(title=f"Dashboard — week {report.week_key}")
    table.add_column("Recipient", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for r in report.results:
        style = "green" if r.status == "sent" else "red"
        table.add_row(r.recipient, f"[{style}]{r.status}[/{style}]", r.error or "")
    console = Console()
    console.print(table)
    console.print(report.summary())
    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
