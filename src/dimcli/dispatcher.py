"""
Command dispatcher.

Registers every plugin-backed command next to the built-in commands,
parses the process arguments and runs the selected plugin: ``init`` first,
then ``await run``. One command executes per process. Dispatching requires
the ReadinessToken produced by the startup gate.
"""

import inspect
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Optional, Sequence

import click
import typer
from typer.core import TyperGroup

from dimcli.bootstrap import ReadinessToken
from dimcli.exceptions import BootstrapError, ExecutionError, UnknownCommandError
from dimcli.logging_config import enable_verbose_logging
from dimcli.metadata import PackageInfo
from dimcli.plugins.base import Invocation
from dimcli.plugins.options import InvocationSchema
from dimcli.plugins.registry import CommandRegistry, RegisteredCommand

logger = logging.getLogger(__name__)


class DispatchGroup(TyperGroup):
    """Command group that reports unknown commands as UnknownCommandError."""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[Optional[str], Optional[click.Command], list[str]]:
        cmd_name = click.utils.make_str(args[0])
        if not ctx.resilient_parsing and not cmd_name.startswith("-"):
            lookup = cmd_name
            if ctx.token_normalize_func is not None:
                lookup = ctx.token_normalize_func(cmd_name)
            if self.get_command(ctx, lookup) is None:
                raise UnknownCommandError(cmd_name, ctx=ctx)
        return super().resolve_command(ctx, args)


@dataclass(frozen=True)
class DispatchState:
    """Context object shared with the built-in commands."""

    package: PackageInfo
    registry: CommandRegistry
    token: ReadinessToken


class Dispatcher:
    """
    Parses argv against the registered commands and runs the selected one.

    Example:
        >>> dispatcher = Dispatcher(app, registry, package)
        >>> outcome = await dispatcher.dispatch(["wallet", "-N", "testnet"], token)
    """

    def __init__(
        self,
        app: typer.Typer,
        registry: CommandRegistry,
        package: PackageInfo,
        prog_name: Optional[str] = None,
    ) -> None:
        self.app = app
        self.registry = registry
        self.package = package
        self.prog_name = prog_name or package.name

    def build_cli(self, token: ReadinessToken) -> click.Group:
        """Command group with the built-in commands plus one command per plugin."""
        group = typer.main.get_group(self.app)
        for name, entry in self.registry.commands.items():
            group.add_command(self._build_command(entry, token), name)
        return group

    async def dispatch(self, argv: Sequence[str], token: ReadinessToken) -> Any:
        """
        Parse argv and run the selected command.

        Returns:
            Whatever the command produced (a plugin's run() result, or the
            exit code click returns for --help/--version)

        Raises:
            BootstrapError: If no valid readiness token is given
            click.ClickException: For usage errors, including
                OptionValidationError and UnknownCommandError
            typer.TyperException: For usage errors typer reports itself,
                such as an unknown root option
            ExecutionError: If the plugin fails
        """
        if not isinstance(token, ReadinessToken):
            raise BootstrapError(
                "Commands cannot run before the startup gate has completed"
            )

        cli = self.build_cli(token)
        state = DispatchState(package=self.package, registry=self.registry, token=token)
        try:
            outcome = cli.main(
                args=list(argv),
                prog_name=self.prog_name,
                standalone_mode=False,
                obj=state,
            )
        except (click.exceptions.Exit, typer.Exit) as e:
            # --help on a plugin command exits through click, not typer
            return e.exit_code
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    def _build_command(
        self, entry: RegisteredCommand, token: ReadinessToken
    ) -> click.Command:
        schema = entry.schema
        return click.Command(
            name=schema.name,
            params=schema.to_click_params(),
            callback=self._make_callback(entry, token),
            help=schema.description,
            short_help=schema.description,
        )

    def _make_callback(
        self, entry: RegisteredCommand, token: ReadinessToken
    ) -> Callable[..., Any]:
        # click calls this once parsing and validation succeeded; the
        # returned coroutine is awaited by dispatch()
        def callback(**params: Any) -> Any:
            invocation = self._build_invocation(entry.schema, params, token)
            return self._execute(entry, invocation)

        return callback

    def _build_invocation(
        self, schema: InvocationSchema, params: dict[str, Any], token: ReadinessToken
    ) -> Invocation:
        argument_names = {argument.name for argument in schema.arguments}
        arguments: dict[str, Any] = {}
        options: dict[str, Any] = {}
        for key, value in params.items():
            if key in argument_names:
                arguments[key] = list(value) if isinstance(value, tuple) else value
            else:
                options[key] = value

        return Invocation(
            command=schema.name,
            arguments=MappingProxyType(arguments),
            options=MappingProxyType(options),
            package=self.package,
            store=token.store,
        )

    async def _execute(self, entry: RegisteredCommand, invocation: Invocation) -> Any:
        if invocation.verbose:
            enable_verbose_logging()

        logger.debug(f"Dispatching '{entry.name}' (plugin {entry.identifier})")
        try:
            entry.plugin.init(invocation)
            result = entry.plugin.run(invocation)
            if inspect.isawaitable(result):
                result = await result
        except ExecutionError as e:
            if e.command is None:
                e.command = entry.name
            raise
        except Exception as e:
            raise ExecutionError(str(e) or type(e).__name__, command=entry.name) from e

        logger.debug(f"Command '{entry.name}' finished")
        return result
