#!/usr/bin/env python3
"""
devtrace - unified debugging logs for local web development

Starts your dev server, a log viewer and a monitored browser, and writes server
output, browser console, network errors and screenshots into one log file.
"""
import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel

from devtrace import __version__

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="devtrace")
def cli():
    """devtrace - unified debugging logs for local web development"""
    pass


@cli.command()
@click.option("--port", "-p", type=int, default=None, help="Port your dev server listens on (default: 3000)")
@click.option("--reporting-port", type=int, default=None, help="Port for the log viewer (default: 3684)")
@click.option("--server-command", "-s", default=None, help="Command that starts your dev server (default: npm run dev)")
@click.option("--profile-dir", type=click.Path(path_type=Path), default=None, help="Browser profile directory")
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Unified log file path")
@click.option("--headless/--no-headless", default=None, help="Run the monitored browser headless")
def start(port, reporting_port, server_command, profile_dir, log_file, headless):
    """Start the dev server, log viewer and monitored browser"""
    from devtrace.config import SessionConfig
    from devtrace.errors import DevtraceError, SessionInterrupted
    from devtrace.logging_config import setup_logging

    setup_logging()
    config = SessionConfig.from_env(
        port=port,
        reporting_port=reporting_port,
        server_command=server_command,
        profile_dir=profile_dir,
        log_file=log_file,
        headless=headless,
    )

    console.print(Panel.fit(
        f"[bold cyan]devtrace[/bold cyan] v{__version__}\n"
        f"[dim]App on http://localhost:{config.port} - viewer on http://localhost:{config.reporting_port}[/dim]",
        border_style="cyan"
    ))

    try:
        asyncio.run(_run_session(config))
    except SessionInterrupted:
        # Ctrl+C during startup; whatever was already spawned keeps running
        sys.exit(0)
    except DevtraceError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        # Interrupt before the handler was installed
        sys.exit(0)


async def _run_session(config):
    from devtrace.session import start_session

    controller = await start_session(config)
    await controller.wait_until_interrupted()


@cli.command()
@click.option("--port", type=int, default=3684, help="Port to bind the log viewer to")
@click.option("--log-file", type=click.Path(path_type=Path), required=True, help="Unified log file to display")
@click.option("--screenshot-dir", type=click.Path(path_type=Path), default=None, help="Directory served under /screenshots")
def viewer(port: int, log_file: Path, screenshot_dir: Path):
    """Run the log viewer in the foreground"""
    from devtrace.logging_config import setup_logging
    from devtrace.viewer.__main__ import run_viewer

    setup_logging()
    console.print("[bold cyan]Starting devtrace log viewer...[/bold cyan]")
    console.print(f"URL: http://localhost:{port}/logs")
    run_viewer(port=port, log_file=log_file, screenshot_dir=screenshot_dir)


if __name__ == "__main__":
    cli()
