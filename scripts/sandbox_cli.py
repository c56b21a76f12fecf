#!/usr/bin/env python3
"""
Sandbox CLI - run commands in remote sandboxes from the terminal.

Usage:
  python scripts/sandbox_cli.py list                        # List sandboxes
  python scripts/sandbox_cli.py run my-box -- ls -la        # Run and stream output
  python scripts/sandbox_cli.py logs my-box <command-id>    # Follow command logs

Connection settings come from BUDDY_* environment variables or a .env file;
--workspace, --project and --region override them.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from rich.console import Console
from rich.table import Table
from rich import box

from buddy_sandbox import (
    ConnectionConfig,
    Sandbox,
    SandboxApiClient,
    SandboxSDKError,
    setup_logging,
)
from buddy_sandbox.config import load_settings

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    "RUNNING": "green",
    "STARTING": "yellow",
    "RESTARTING": "yellow",
    "STOPPING": "yellow",
    "STOPPED": "dim",
    "FAILED": "red",
}


def build_connection(args) -> ConnectionConfig:
    return ConnectionConfig(
        workspace=args.workspace,
        project=args.project,
        region=args.region,
    )


# ============================================================================
# Commands
# ============================================================================

async def cmd_list(args):
    """List the project's sandboxes."""
    async with SandboxApiClient.from_connection(build_connection(args)) as api:
        summaries = await api.list_sandboxes()

    if not summaries:
        console.print("[dim]No sandboxes found.[/dim]")
        return 0

    table = Table(title=f"Sandboxes ({len(summaries)})", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Identifier")
    table.add_column("Name")
    table.add_column("Status", justify="center")

    for summary in summaries:
        status = summary.status or "unknown"
        style = STATUS_STYLES.get(status, "white")
        table.add_row(
            summary.id,
            summary.identifier or "",
            summary.name or "",
            f"[{style}]{status}[/{style}]",
        )

    console.print(table)
    return 0


async def cmd_run(args):
    """Run a command and stream its output live."""
    command_line = " ".join(args.cmd)
    if not command_line:
        err_console.print("[red]Error:[/red] No command given")
        return 2

    sandbox = await Sandbox.get(args.identifier, connection=build_connection(args))
    async with sandbox:
        if args.detached:
            command = await sandbox.run_command(command_line, detached=True)
            console.print(f"[cyan]Command submitted:[/cyan] {command.id}")
            return 0

        command = await sandbox.run_command(
            command_line, stdout=sys.stdout, stderr=sys.stderr
        )

    style = "green" if command.exit_code == 0 else "red"
    err_console.print(
        f"[{style}]Exit code {command.exit_code}[/{style}] "
        f"[dim]({command.status}, command {command.id})[/dim]"
    )
    return command.exit_code


async def cmd_logs(args):
    """Print the logs of an existing command."""
    sandbox = await Sandbox.get(args.identifier, connection=build_connection(args))
    async with sandbox:
        stream = sandbox.api.stream_command_logs(
            sandbox.id, args.command_id, follow=not args.no_follow
        )
        async with stream:
            async for record in stream:
                target = sys.stdout if record.stream == "stdout" else sys.stderr
                target.write(record.data + "\n")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Sandbox CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list                          # List sandboxes in the project
  %(prog)s run my-box -- npm test        # Run a command, stream output
  %(prog)s run --detached my-box -- make # Submit without waiting
  %(prog)s logs my-box cmd-123           # Follow logs of a command
  %(prog)s logs my-box cmd-123 --no-follow
"""
    )
    parser.add_argument("--workspace", help="Workspace (default: BUDDY_WORKSPACE)")
    parser.add_argument("--project", help="Project (default: BUDDY_PROJECT)")
    parser.add_argument("--region", help="API region: US, EU or AP")
    parser.add_argument("--log-level", help="Log level (default: BUDDY_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # list
    subparsers.add_parser("list", help="List sandboxes")

    # run
    run_p = subparsers.add_parser("run", help="Run a command in a sandbox")
    run_p.add_argument("identifier", help="Sandbox identifier")
    run_p.add_argument("cmd", nargs=argparse.REMAINDER, help="Command to run")
    run_p.add_argument("-d", "--detached", action="store_true", help="Do not wait")

    # logs
    logs_p = subparsers.add_parser("logs", help="Print command logs")
    logs_p.add_argument("identifier", help="Sandbox identifier")
    logs_p.add_argument("command_id", help="Command ID")
    logs_p.add_argument("--no-follow", action="store_true", help="Print logs so far and exit")

    args = parser.parse_args()
    if getattr(args, "cmd", None) and args.cmd[0] == "--":
        args.cmd = args.cmd[1:]

    settings = load_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_format)

    handlers = {
        "list": cmd_list,
        "run": cmd_run,
        "logs": cmd_logs,
    }

    try:
        exit_code = asyncio.run(handlers[args.command](args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except SandboxSDKError as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
