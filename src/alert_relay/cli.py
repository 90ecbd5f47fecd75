"""Command-line interface for the alert relay.

Usage:
    alert-relay serve --port 3000
    alert-relay rules
    alert-relay resolve "DBC ANEXOS MANTTO AlertaPrl 2024.pdf"
    alert-relay resolve report.pdf --recipients "a@example.com; b@example.com"
    alert-relay mailtest
    alert-relay verify

Every command reads the same configuration as the server: ``--config`` (or
``RELAY_CONFIG``) plus the environment variables documented in
:mod:`alert_relay.config_loader`.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from alert_relay.config_loader import RelaySettings, load_settings
from alert_relay.core import AlertRelay
from alert_relay.exceptions import ConfigurationError, NoRecipientsMatched
from alert_relay.logger import configure_logging
from alert_relay.resolver import resolve

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def _settings(ctx: click.Context) -> RelaySettings:
    return ctx.obj["settings"]


@click.group()
@click.version_option(package_name="alert-mail-relay")
@click.option(
    "--config",
    "-c",
    "config_path",
    envvar="RELAY_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="INI configuration file (default: config.ini).",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """Forward uploaded alert files by email."""
    try:
        settings = load_settings(config_path)
    except ConfigurationError as e:
        print_error(str(e))
        sys.exit(2)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["config_path"] = config_path


@main.command("serve")
@click.option("--host", "-h", default=None, help="Host to bind to (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (default from config).")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the HTTP server."""
    import uvicorn

    settings = _settings(ctx)
    configure_logging(settings.log_level)
    if ctx.obj.get("config_path"):
        # uvicorn imports alert_relay.server by name, in a fresh subprocess when
        # reloading; the environment is the only channel that reaches it there
        os.environ["RELAY_CONFIG"] = ctx.obj["config_path"]
    host = host or settings.http_host
    port = port or settings.http_port
    console.print(f"[bold]{settings.service_name}[/bold] listening on {host}:{port}")
    uvicorn.run("alert_relay.server:app", host=host, port=port, reload=reload)


@main.command("rules")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_rules(ctx: click.Context, as_json: bool) -> None:
    """Show the recipient rule table in match order."""
    rules = _settings(ctx).rules
    if as_json:
        print_json([rule.model_dump() for rule in rules])
        return
    if not rules:
        console.print("[yellow]No recipient rules configured.[/yellow]")
        return

    table = Table(title="Recipient rules")
    table.add_column("#", justify="right")
    table.add_column("Match token", style="cyan")
    table.add_column("Recipients")
    for index, rule in enumerate(rules, start=1):
        table.add_row(str(index), rule.match_token, ", ".join(rule.addresses))
    console.print(table)


@main.command("resolve")
@click.argument("file_name")
@click.option("--subject", default=None, help="Subject override.")
@click.option("--body", default=None, help="Body override.")
@click.option("--recipients", default=None, help="Recipients override, ';' or ',' separated.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve_command(
    ctx: click.Context,
    file_name: str,
    subject: str | None,
    body: str | None,
    recipients: str | None,
    as_json: bool,
) -> None:
    """Show who would receive FILE_NAME, without sending anything."""
    try:
        plan = resolve(file_name, subject, body, recipients, _settings(ctx).rules)
    except NoRecipientsMatched as e:
        print_error(e.message)
        sys.exit(1)

    if as_json:
        print_json(plan.model_dump())
        return
    console.print(f"[bold]Subject:[/bold] {plan.subject}")
    console.print(f"[bold]To:[/bold] {', '.join(plan.recipients)}")
    console.print(f"[bold]Attachment:[/bold] {plan.attachment_name}")
    source = f"rule '{plan.matched_token}'" if plan.matched_token else "recipients override"
    console.print(f"[bold]Matched by:[/bold] {source}")


@main.command("mailtest")
@click.pass_context
def mailtest(ctx: click.Context) -> None:
    """Send a message without attachment to the SMTP account itself."""
    settings = _settings(ctx)
    configure_logging(settings.log_level)
    outcome = run_async(AlertRelay(settings).send_probe())
    if not outcome.sent:
        print_error(outcome.error or "SMTP send failed")
        sys.exit(1)
    print_success(f"Test message sent to {settings.smtp.user or settings.sender.address}")


@main.command("verify")
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Check connectivity and credentials against the SMTP relay."""
    settings = _settings(ctx)
    configure_logging(settings.log_level)
    if not run_async(AlertRelay(settings).verify_smtp()):
        print_error(f"SMTP relay {settings.smtp.host}:{settings.smtp.port} is not available")
        sys.exit(1)
    print_success(f"SMTP relay {settings.smtp.host}:{settings.smtp.port} verified")


if __name__ == "__main__":
    main()
