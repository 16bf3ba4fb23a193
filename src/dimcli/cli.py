"""
dim-cli - Main command-line interface.

Usage: dim-cli [options] <command> [arguments]

Startup order: logging, package metadata, plugin discovery and option
composition, the startup gate (data store), then argument parsing and
dispatch of exactly one command.
"""

import asyncio
import logging
import sys
from typing import Any, Optional, Sequence

import click
import typer
from rich.console import Console
from rich.markup import escape
from rich.padding import Padding
from rich.table import Table
from rich.text import Text

from dimcli import __version__
from dimcli.bootstrap import StartupGate
from dimcli.config import settings
from dimcli.dispatcher import DispatchGroup, Dispatcher, DispatchState
from dimcli.exceptions import BootstrapError, DiscoveryError, ExecutionError
from dimcli.logging_config import setup_logging
from dimcli.metadata import PackageInfo, load_package_info
from dimcli.plugins.options import GLOBAL_OPTIONS, OptionSpec
from dimcli.plugins.registry import CommandRegistry

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="dim-cli",
    help="DIM CLI - command line tools suite for the DIM ecosystem",
    cls=DispatchGroup,
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

LABEL = "green"
KEYWORD = "yellow"

LIST_DESCRIPTION = "List all available commands (Print this help message)"
SERVE_DESCRIPTION = (
    "Make the DIM CLI command line tools suite available through a HTTP API. "
    "(not yet implemented)"
)


def _version_callback(ctx: typer.Context, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    state: Optional[DispatchState] = ctx.obj
    console.print(state.package.version if state is not None else __version__)
    raise typer.Exit()


@app.callback()
def root(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Print the version number",
    ),
) -> None:
    """
    DIM CLI - command line tools suite for the DIM ecosystem.

    Run the `list` command to see all available commands.
    """


def _row_table(rows: list[tuple[str, str]], key_style: str) -> Padding:
    table = Table(box=None, show_header=False, padding=(0, 2), pad_edge=False)
    table.add_column(no_wrap=True)
    table.add_column()
    for key, value in rows:
        table.add_row(Text(key, style=key_style), Text(value))
    return Padding(table, (0, 0, 0, 4))


def render_listing(
    package: PackageInfo,
    registry: CommandRegistry,
    global_options: Sequence[OptionSpec] = GLOBAL_OPTIONS,
    out: Optional[Console] = None,
) -> None:
    """Print usage, version, commands, global options and credits."""
    out = out or console

    commands = [("list", LIST_DESCRIPTION)]
    for name in sorted(registry.commands):
        schema = registry.commands[name].schema
        commands.append((schema.signature, schema.description))
    commands.append(("serve <arguments>", SERVE_DESCRIPTION))

    options = [(option.signature, option.description) for option in global_options]

    out.print()
    out.print(
        f"  [{LABEL}]Usage:[/] "
        f"[{KEYWORD}]{escape(package.name)} <command> {escape('[options]')}[/]"
    )
    out.print()
    out.print(f"  [{LABEL}]Version:[/] [{KEYWORD}]v{escape(package.version)}[/]")
    out.print()
    out.print(f"  [{LABEL}]Commands:[/]")
    out.print()
    out.print(_row_table(commands, KEYWORD))
    out.print()
    out.print(f"  [{LABEL}]Options:[/]")
    out.print()
    out.print(_row_table(options, KEYWORD))
    out.print()
    out.print(f"  [{LABEL}]Credits To:[/]")
    out.print()
    out.print(f"    [{LABEL}]Author:[/] {escape(package.author)}")
    for contributor in package.contributors:
        out.print(f"    [{LABEL}]Contributor:[/] {escape(contributor.display)}")
    out.print()


@app.command("list")
def list_commands(ctx: typer.Context) -> None:
    """
    List all available commands (Print this help message)
    """
    state: Optional[DispatchState] = ctx.obj
    if state is None:
        render_listing(load_package_info(), CommandRegistry({}))
        return
    render_listing(state.package, state.registry, state.registry.global_options)


@app.command()
def serve() -> None:
    """
    Make the DIM CLI command line tools suite available through a HTTP API.

    Reserved for a future HTTP mode; currently does nothing.
    """
    logger.info("serve is not implemented yet")
    console.print("[yellow]The serve command is not implemented yet.[/yellow]")


def _exit_code(outcome: Any) -> int:
    if isinstance(outcome, int) and not isinstance(outcome, bool):
        return outcome
    return 0


async def _run(argv: list[str]) -> int:
    try:
        setup_logging(context="cli", settings=settings)
    except PermissionError:
        logging.basicConfig(level=logging.INFO)

    try:
        package = load_package_info(settings.package_file)
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        return 1

    try:
        registry = CommandRegistry.from_directory(
            settings.plugin_dir, package, settings.networks
        )
    except DiscoveryError as e:
        logger.error(str(e))
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        return 1
    logger.debug(
        "Registered %d command(s) from plugin(s): %s",
        len(registry),
        ", ".join(registry.identifiers),
    )

    gate = StartupGate.from_settings(settings)
    try:
        token = await gate.open()
    except BootstrapError as e:
        err_console.print(escape(str(e)), style="red")
        return 1

    dispatcher = Dispatcher(app, registry, package)
    try:
        outcome = await dispatcher.dispatch(argv, token)
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except typer.TyperException as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(e.format_message())}")
        return e.exit_code
    except (click.exceptions.Abort, typer.Abort):
        err_console.print("Aborted!")
        return 1
    except ExecutionError as e:
        logger.error(str(e))
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        if logging.getLogger().isEnabledFor(logging.DEBUG):
            err_console.print_exception()
        return 1
    finally:
        await token.store.close()

    return _exit_code(outcome)


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run one command and return the process exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    return asyncio.run(_run(args))


def main() -> None:
    try:
        code = run()
    except KeyboardInterrupt:
        err_console.print("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
