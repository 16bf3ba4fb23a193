"""Custom exceptions for dim-cli."""

from typing import Optional

import click


class DimCliError(Exception):
    """Base exception for all dim-cli errors."""

    pass


class DiscoveryError(DimCliError):
    """Raised when a command plugin cannot be loaded or registered."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Failed to load command plugin '{identifier}': {reason}")


class OptionDeclarationError(DimCliError):
    """Raised when a flag signature is malformed or collides with another flag."""

    pass


class BootstrapError(DimCliError):
    """Raised when the data store cannot be opened before dispatch."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\nSTARTUP FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


class OptionValidationError(click.BadParameter, DimCliError):
    """Raised at parse time when an option value does not match its pattern."""

    def __init__(
        self,
        value: str,
        pattern: str,
        ctx: Optional[click.Context] = None,
        param: Optional[click.Parameter] = None,
    ):
        self.value = value
        self.pattern = pattern
        super().__init__(
            f"{value!r} does not match the expected format {pattern!r}.",
            ctx=ctx,
            param=param,
        )


class UnknownCommandError(click.UsageError, DimCliError):
    """Raised when the requested command matches no registered command."""

    def __init__(self, command_name: str, ctx: Optional[click.Context] = None):
        self.command_name = command_name
        super().__init__(
            f"No such command '{command_name}'. Run 'list' to see available commands.",
            ctx=ctx,
        )


class ExecutionError(DimCliError):
    """Raised when a command plugin fails while preparing or running."""

    def __init__(self, message: str, command: Optional[str] = None):
        self.message = message
        self.command = command
        super().__init__(message)

    def __str__(self) -> str:
        if self.command:
            return f"Command '{self.command}' failed: {self.message}"
        return self.message
